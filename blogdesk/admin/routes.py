"""Admin pages and the admin settings API.

Pages live under ``/admin`` and are also covered by the access gate; the
JSON API lives under ``/api/admin/settings`` and answers 401/403 instead of
redirecting.
"""

import html

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import HTMLResponse

from ..core.dependencies import (
    AppState,
    get_app_state,
    get_client_info,
    require_admin,
    require_csrf,
)
from ..core.logging import admin_logger
from ..core.models import Session, SettingVisibility

router = APIRouter(prefix="/admin", tags=["admin"])
api_router = APIRouter(prefix="/api/admin/settings", tags=["admin"])


ADMIN_STYLES = """
    <style>
        * { box-sizing: border-box; }
        body {
            font-family: system-ui, -apple-system, sans-serif;
            margin: 0;
            background: #f5f5f5;
        }
        .header {
            background: #1e293b;
            color: white;
            padding: 1rem 2rem;
            display: flex;
            justify-content: space-between;
            align-items: center;
        }
        .header h1 { margin: 0; font-size: 1.5rem; }
        .header a { color: #94a3b8; text-decoration: none; }
        .header a:hover { color: white; }
        .container { max-width: 1200px; margin: 2rem auto; padding: 0 1rem; }
        .stats {
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(200px, 1fr));
            gap: 1rem;
            margin-bottom: 2rem;
        }
        .stat {
            background: white;
            padding: 1.5rem;
            border-radius: 8px;
            box-shadow: 0 1px 3px rgba(0,0,0,0.1);
        }
        .stat h3 { margin: 0 0 0.5rem; color: #64748b; font-size: 0.875rem; }
        .stat .value { font-size: 2rem; font-weight: 600; color: #1e293b; }
        .section {
            background: white;
            padding: 1.5rem;
            border-radius: 8px;
            box-shadow: 0 1px 3px rgba(0,0,0,0.1);
            margin-bottom: 1rem;
        }
        .section h2 { margin: 0 0 1rem; font-size: 1.25rem; }
        table { width: 100%; border-collapse: collapse; }
        th, td { text-align: left; padding: 0.75rem; border-bottom: 1px solid #e2e8f0; }
        th { font-weight: 600; color: #64748b; }
    </style>
"""


def _admin_page(title: str, session: Session, content: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <title>{html.escape(title)} - blogdesk</title>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1">
        {ADMIN_STYLES}
    </head>
    <body>
        <div class="header">
            <h1>blogdesk</h1>
            <div>
                <span>Signed in as {html.escape(session.user_id)}</span> |
                <a href="/admin/">Dashboard</a> |
                <a href="/admin/settings">Settings</a> |
                <a href="/signout">Sign out</a>
            </div>
        </div>
        <div class="container">
            {content}
        </div>
    </body>
    </html>
    """


# ============================================================================
# Pages
# ============================================================================

@router.get("/", response_class=HTMLResponse)
async def dashboard(
    session: Session = Depends(require_admin()),
    state: AppState = Depends(get_app_state),
):
    """Render admin dashboard with setting counts per category."""
    grouped = state.settings.get_grouped()

    stats = "".join(
        f"""
                <div class="stat">
                    <h3>{html.escape(category.title())}</h3>
                    <div class="value">{len(values)}</div>
                </div>"""
        for category, values in sorted(grouped.items())
    )
    content = f"""
            <div class="stats">{stats or '<div class="stat"><h3>Settings</h3><div class="value">0</div></div>'}
            </div>
            <div class="section">
                <h2>Active sessions</h2>
                <p>{state.auth.get_session_count()}</p>
            </div>
    """
    return HTMLResponse(_admin_page("Dashboard", session, content))


@router.get("/settings", response_class=HTMLResponse)
async def settings_page(
    session: Session = Depends(require_admin()),
    state: AppState = Depends(get_app_state),
):
    """Render every stored setting, grouped by category."""
    sections = []
    for category, values in sorted(state.settings.get_grouped().items()):
        rows = "".join(
            f"<tr><td>{html.escape(key)}</td><td>{html.escape(value)}</td></tr>"
            for key, value in sorted(values.items())
        )
        sections.append(
            f"""
            <div class="section">
                <h2>{html.escape(category.title())}</h2>
                <table>
                    <tr><th>Key</th><th>Value</th></tr>
                    {rows}
                </table>
            </div>"""
        )

    content = "".join(sections) or '<div class="section"><p>No settings stored yet.</p></div>'
    return HTMLResponse(_admin_page("Settings", session, content))


# ============================================================================
# Settings API
# ============================================================================

@api_router.get("")
async def list_settings(
    category: str | None = None,
    session: Session = Depends(require_admin()),
    state: AppState = Depends(get_app_state),
):
    """Get stored settings, unfiltered, optionally for one category."""
    if category:
        return state.settings.get_by_category(category)
    return state.settings.get_all()


@api_router.put("")
async def update_settings(
    request: Request,
    payload: dict[str, str] = Body(...),
    session: Session = Depends(require_admin()),
    _=Depends(require_csrf),
    state: AppState = Depends(get_app_state),
):
    """Sanitize, validate and store several settings."""
    updated = state.settings.update_settings(payload)

    state.audit_logger.log_settings_change(
        "update", sorted(updated), session.user_id, get_client_info(request)["ip"]
    )
    admin_logger.info("Settings updated by %s: %s", session.user_id, sorted(updated))

    return {
        "success": True,
        "message": "Settings updated successfully",
        "settings": updated,
    }


@api_router.post("")
async def initialize_settings(
    request: Request,
    session: Session = Depends(require_admin()),
    _=Depends(require_csrf),
    state: AppState = Depends(get_app_state),
):
    """Seed default settings without touching existing ones."""
    inserted = state.settings.initialize_defaults()

    state.audit_logger.log_settings_change(
        "seed", [], session.user_id, get_client_info(request)["ip"]
    )

    return {
        "success": True,
        "message": "Default settings initialized",
        "inserted": inserted,
    }


@api_router.get("/{category}")
async def get_category_settings(
    category: str,
    session: Session = Depends(require_admin()),
    state: AppState = Depends(get_app_state),
):
    """Get settings of one category. Unknown categories yield {}."""
    return state.settings.get_by_category(category)


@api_router.put("/{key}/visibility")
async def set_setting_visibility(
    key: str,
    request: Request,
    visibility: SettingVisibility = Body(..., embed=True),
    session: Session = Depends(require_admin()),
    _=Depends(require_csrf),
    state: AppState = Depends(get_app_state),
):
    """Mark a stored setting public or private."""
    state.settings.set_visibility(key, visibility)

    state.audit_logger.log_settings_change(
        "visibility", [key], session.user_id, get_client_info(request)["ip"]
    )
    admin_logger.info("Setting %s marked %s by %s", key, visibility.value, session.user_id)

    return {"success": True, "key": key, "visibility": visibility.value}


@api_router.delete("/{key}")
async def delete_setting(
    key: str,
    request: Request,
    session: Session = Depends(require_admin()),
    _=Depends(require_csrf),
    state: AppState = Depends(get_app_state),
):
    """Delete a stored setting."""
    state.settings.delete_setting(key)

    state.audit_logger.log_settings_change(
        "delete", [key], session.user_id, get_client_info(request)["ip"]
    )
    admin_logger.info("Setting %s deleted by %s", key, session.user_id)

    return {"success": True}
