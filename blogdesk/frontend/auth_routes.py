"""Sign-in, sign-out and forbidden pages.

The access gate sends anonymous callers here with the path they wanted in
``callbackUrl``; after a successful sign-in they are sent back to it.
"""

import html
import secrets
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..core.dependencies import AppState, get_app_state, get_client_info
from ..core.logging import auth_logger

router = APIRouter(tags=["auth"])


def _safe_callback(callback_url: str | None) -> str:
    """Only same-site relative paths are valid redirect targets."""
    if not callback_url or not callback_url.startswith("/") or callback_url.startswith("//"):
        return "/"
    if "\\" in callback_url:
        return "/"
    return callback_url


def _get_or_create_csrf_token(request: Request) -> tuple[str, bool]:
    """Get CSRF token from cookie or create a new one."""
    token = request.cookies.get("csrf_token")
    if token:
        return token, False
    return secrets.token_urlsafe(32), True


def _is_secure_request(request: Request) -> bool:
    if request.url.hostname in {"127.0.0.1", "localhost"}:
        return False
    return request.url.scheme == "https"


def _page(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1">
        <title>{title}</title>
        <style>
            * {{ box-sizing: border-box; }}
            body {{
                font-family: system-ui, -apple-system, sans-serif;
                margin: 0;
                background: #f5f5f5;
                min-height: 100vh;
                display: flex;
                align-items: center;
                justify-content: center;
                padding: 2rem;
            }}
            .auth-container {{
                background: white;
                border-radius: 12px;
                box-shadow: 0 10px 30px rgba(0,0,0,0.1);
                padding: 2.5rem;
                width: 100%;
                max-width: 420px;
            }}
            h1 {{ margin: 0 0 1.5rem; color: #1e293b; font-size: 1.75rem; }}
            .form-group {{ margin-bottom: 1.25rem; }}
            .form-group label {{ display: block; margin-bottom: 0.5rem; color: #374151; }}
            .form-group input {{
                width: 100%;
                padding: 0.75rem 1rem;
                border: 2px solid #e2e8f0;
                border-radius: 8px;
                font-size: 1rem;
            }}
            .btn {{
                width: 100%;
                padding: 0.75rem;
                background: #1e293b;
                color: white;
                border: none;
                border-radius: 8px;
                font-size: 1rem;
                cursor: pointer;
            }}
            .error-message {{
                background: #FEE2E2;
                color: #DC2626;
                padding: 0.75rem 1rem;
                border-radius: 8px;
                margin-bottom: 1rem;
            }}
            a {{ color: #3b82f6; }}
        </style>
    </head>
    <body>
        <div class="auth-container">
            {body}
        </div>
    </body>
    </html>
    """


def _signin_form(csrf_token: str, callback_url: str, error: str | None = None) -> str:
    error_html = f'<div class="error-message">{html.escape(error)}</div>' if error else ""
    return _page(
        "Sign in",
        f"""
            <h1>Sign in</h1>
            {error_html}
            <form method="POST" action="/signin">
                <input type="hidden" name="csrf_token" value="{html.escape(csrf_token)}">
                <input type="hidden" name="callbackUrl" value="{html.escape(callback_url)}">

                <div class="form-group">
                    <label for="email">Email</label>
                    <input type="email" id="email" name="email" required autocomplete="username">
                </div>

                <div class="form-group">
                    <label for="password">Password</label>
                    <input type="password" id="password" name="password" required autocomplete="current-password">
                </div>

                <button type="submit" class="btn">Sign in</button>
            </form>
        """,
    )


def _signin_response(
    request: Request,
    callback_url: str,
    error: str | None = None,
    status_code: int = 200,
) -> HTMLResponse:
    csrf_token, needs_cookie = _get_or_create_csrf_token(request)
    response = HTMLResponse(
        content=_signin_form(csrf_token, callback_url, error),
        status_code=status_code,
    )
    if needs_cookie:
        response.set_cookie(
            key="csrf_token",
            value=csrf_token,
            httponly=False,
            samesite="lax",
            secure=_is_secure_request(request),
            max_age=3600,
            path="/",
        )
    return response


@router.get("/signin", response_class=HTMLResponse)
async def signin_page(request: Request, callbackUrl: str | None = None):
    """Render the sign-in form."""
    return _signin_response(request, _safe_callback(callbackUrl))


@router.post("/signin")
async def signin_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    csrf_token: str = Form(...),
    callbackUrl: str = Form("/"),
    state: AppState = Depends(get_app_state),
):
    """Process the sign-in form."""
    callback_url = _safe_callback(callbackUrl)
    client = get_client_info(request)

    csrf_cookie = request.cookies.get("csrf_token", "")
    if not csrf_token or not csrf_cookie or not secrets.compare_digest(csrf_token, csrf_cookie):
        return _signin_response(request, callback_url, "Invalid request", status_code=403)

    if not state.auth.check_rate_limit(client["ip"]):
        auth_logger.warning("Sign-in rate limit exceeded for %s", client["ip"])
        state.audit_logger.log_login_failed(
            email, client["ip"], client["user_agent"], reason="rate_limited"
        )
        return _signin_response(
            request,
            callback_url,
            "Too many sign-in attempts. Please try again later.",
            status_code=429,
        )

    user = state.users.get_by_email(email)
    if not state.auth.authenticate(user, password):
        state.auth.record_login_attempt(client["ip"], False, client["user_agent"])
        state.audit_logger.log_login_failed(email, client["ip"], client["user_agent"])
        auth_logger.info("Failed sign-in from %s", client["ip"])
        return _signin_response(
            request, callback_url, "Invalid email or password", status_code=401
        )

    state.auth.record_login_attempt(client["ip"], True, client["user_agent"])
    session = state.auth.create_session(
        user_id=user.id,
        role=user.role,
        ip=client["ip"],
        user_agent=client["user_agent"],
    )
    state.users.record_login(user.id)
    state.audit_logger.log_login_success(user.id, client["ip"], client["user_agent"])
    auth_logger.info("User %s signed in", user.id)

    response = RedirectResponse(url=callback_url, status_code=303)
    response.set_cookie(
        key="session_id",
        value=session.session_id,
        httponly=True,
        samesite="lax",
        secure=_is_secure_request(request),
        max_age=state.config.session_lifetime_hours * 3600,
        path="/",
    )
    return response


@router.get("/signout")
async def signout(request: Request, state: AppState = Depends(get_app_state)):
    """Invalidate the current session and go home."""
    session_id = request.cookies.get("session_id")
    if session_id:
        session = state.auth.verify_session(session_id)
        state.auth.invalidate_session(session_id)
        if session:
            state.audit_logger.log_logout(session.user_id, get_client_info(request)["ip"])

    response = RedirectResponse(url="/", status_code=303)
    response.delete_cookie("session_id")
    return response


@router.get("/403", response_class=HTMLResponse)
async def forbidden_page():
    """Fixed page for signed-in users without admin access."""
    body = f"""
            <h1>403 - Forbidden</h1>
            <p>You do not have permission to access this page.</p>
            <p><a href="/">Back to the site</a> or <a href="/signin?{urlencode({"callbackUrl": "/admin"})}">sign in with another account</a>.</p>
    """
    return HTMLResponse(content=_page("Forbidden", body), status_code=403)
