"""Scheduled maintenance endpoints.

An external scheduler calls these with ``Authorization: Bearer <cron secret>``.
Nothing runs in the background inside the application itself.
"""

from fastapi import APIRouter, Depends

from ..core.dependencies import AppState, get_app_state, verify_cron_secret
from ..core.errors import InternalError
from ..core.logging import cron_logger
from ..core.session_store import SessionStoreError
from ..core.storage import StorageError

router = APIRouter(
    prefix="/api/cron",
    tags=["cron"],
    dependencies=[Depends(verify_cron_secret)],
)


@router.get("/publish-scheduled")
async def publish_scheduled(state: AppState = Depends(get_app_state)):
    """Publish scheduled posts whose publish time has passed."""
    try:
        published = state.posts.publish_scheduled()
    except StorageError as e:
        cron_logger.error("Error publishing scheduled posts: %s", e)
        raise InternalError(f"Error publishing scheduled posts: {e}") from e

    cron_logger.info("Published %d scheduled posts", len(published))
    state.audit_logger.log_cron_run("publish_scheduled", {"published": len(published)})

    return {
        "success": True,
        "message": f"Published {len(published)} scheduled posts",
        "published": [
            {"id": post.id, "title": post.title, "slug": post.slug}
            for post in published
        ],
    }


@router.get("/cleanup-tokens")
async def cleanup_tokens(state: AppState = Depends(get_app_state)):
    """Delete expired password reset tokens."""
    try:
        deleted = state.password_resets.cleanup_expired_tokens()
    except StorageError as e:
        cron_logger.error("Error cleaning up tokens: %s", e)
        raise InternalError(f"Error cleaning up tokens: {e}") from e

    cron_logger.info("Cleaned up %d expired tokens", deleted)
    state.audit_logger.log_cron_run("cleanup_tokens", {"deleted": deleted})

    return {
        "success": True,
        "message": f"Cleaned up {deleted} expired tokens",
        "deletedCount": deleted,
    }


@router.get("/daily-maintenance")
async def daily_maintenance(state: AppState = Depends(get_app_state)):
    """Run every maintenance step; a failing step does not stop the others."""
    results = {
        "publishedPosts": 0,
        "cleanedTokens": 0,
        "cleanedSessions": 0,
        "cleanedAuditEntries": 0,
        "errors": [],
    }

    try:
        results["publishedPosts"] = len(state.posts.publish_scheduled())
    except StorageError as e:
        cron_logger.error("Error publishing scheduled posts: %s", e)
        results["errors"].append("Failed to publish scheduled posts")

    try:
        results["cleanedTokens"] = state.password_resets.cleanup_expired_tokens()
    except StorageError as e:
        cron_logger.error("Error cleaning up tokens: %s", e)
        results["errors"].append("Failed to cleanup expired tokens")

    try:
        results["cleanedSessions"] = state.auth.cleanup_expired_sessions()
        state.auth.cleanup_rate_limits()
    except (SessionStoreError, OSError) as e:
        cron_logger.error("Error cleaning up sessions: %s", e)
        results["errors"].append("Failed to cleanup expired sessions")

    try:
        results["cleanedAuditEntries"] = state.audit_logger.cleanup_old_entries()
    except OSError as e:
        cron_logger.error("Error cleaning up audit log: %s", e)
        results["errors"].append("Failed to cleanup audit log")

    cron_logger.info("Daily maintenance finished: %s", results)
    state.audit_logger.log_cron_run("daily_maintenance", results)

    return {
        "success": not results["errors"],
        "message": (
            f"Daily maintenance completed: Published {results['publishedPosts']} posts, "
            f"cleaned {results['cleanedTokens']} tokens"
        ),
        "results": results,
    }
