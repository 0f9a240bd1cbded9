"""FastAPI dependency injection for blogdesk.

Services are built once in the application lifespan and stored on
``app.state.cms``; route handlers receive them (and the caller's session)
explicitly through these dependencies instead of reading module globals.
"""

import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from .audit_log import AuditLogger
from .auth import AuthManager, has_capability
from .config import AppConfig
from .errors import AuthenticationRequired, CMSError, PermissionDenied
from .models import Capability, Session
from .password_reset import PasswordResetService
from .posts import PostStore
from .settings import SettingsService
from .storage import Storage
from .users import UserStore


@dataclass
class AppState:
    """Application state container stored in ``app.state.cms``."""

    config: AppConfig
    storage: Storage
    auth: AuthManager
    users: UserStore
    settings: SettingsService
    posts: PostStore
    password_resets: PasswordResetService
    audit_logger: AuditLogger


class ServiceUnavailable(CMSError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"


def get_app_state(request: Request) -> AppState:
    """Get application state from request.

    Raises:
        ServiceUnavailable: If the lifespan has not run.
    """
    state = getattr(request.app.state, "cms", None)
    if state is None:
        raise ServiceUnavailable("Application not initialized")
    return state


def get_settings_service(state: AppState = Depends(get_app_state)) -> SettingsService:
    return state.settings


async def get_current_session(
    request: Request,
    state: AppState = Depends(get_app_state),
) -> Optional[Session]:
    """Get current user session if logged in, else None."""
    return state.auth.verify_session(request.cookies.get("session_id"))


async def require_session(
    session: Optional[Session] = Depends(get_current_session),
) -> Session:
    """Require an authenticated session.

    Raises:
        AuthenticationRequired: If not authenticated.
    """
    if session is None:
        raise AuthenticationRequired()
    return session


def require_capability(capability: Capability, message: str = "Insufficient permissions"):
    """Create a dependency that requires a capability.

    Args:
        capability: Capability the session must hold.
        message: Error message for callers lacking it.

    Returns:
        Dependency function resolving to the session.
    """
    async def check_capability(session: Session = Depends(require_session)) -> Session:
        if not has_capability(session, capability):
            raise PermissionDenied(message)
        return session

    return check_capability


def require_admin():
    """Require the settings-management capability (admins)."""
    return require_capability(Capability.MANAGE_SETTINGS, "Admin access required")


async def require_csrf(
    request: Request,
    session: Session = Depends(require_session),
) -> None:
    """Require an ``X-CSRF-Token`` header matching the session token."""
    token = request.headers.get("X-CSRF-Token", "")
    if not token or not secrets.compare_digest(token, session.csrf_token):
        raise PermissionDenied("Invalid CSRF token")


async def verify_cron_secret(
    request: Request,
    state: AppState = Depends(get_app_state),
) -> None:
    """Require ``Authorization: Bearer <cron secret>``.

    An unset secret rejects every call.

    Raises:
        AuthenticationRequired: With the message "Unauthorized".
    """
    secret = state.config.cron_secret
    header = request.headers.get("authorization", "")
    if not secret or not secrets.compare_digest(
        header.encode("utf-8"), f"Bearer {secret}".encode("utf-8")
    ):
        raise AuthenticationRequired("Unauthorized")


def get_client_info(request: Request) -> dict:
    """Extract client ip and user agent from a request."""
    return {
        "ip": request.client.host if request.client else "unknown",
        "user_agent": request.headers.get("user-agent", ""),
    }
