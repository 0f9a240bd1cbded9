"""FastAPI application for blogdesk."""

import html
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.responses import HTMLResponse

from .admin.routes import api_router as admin_api_router
from .admin.routes import router as admin_router
from .core.access_middleware import AccessGate, AccessMiddleware
from .core.audit_log import AuditLogger
from .core.auth import AuthManager
from .core.config import AppConfig
from .core.dependencies import AppState, get_settings_service
from .core.error_handlers import register_error_handlers
from .core.logging import logger, setup_logging
from .core.password_reset import PasswordResetService
from .core.posts import PostStore
from .core.sanitize import Sanitizer
from .core.session_store import SessionStore
from .core.settings import SettingsService
from .core.settings_store import SettingsStore
from .core.storage import Storage
from .core.users import UserStore
from .cron.routes import router as cron_router
from .frontend.auth_routes import router as auth_router
from .frontend.settings_routes import router as settings_router


def build_gate(app_config: AppConfig) -> AccessGate:
    return AccessGate(
        protected_prefix=app_config.protected_prefix,
        signin_path=app_config.signin_path,
        forbidden_path=app_config.forbidden_path,
    )


def build_state(app_config: AppConfig) -> AppState:
    """Wire every service from configuration.

    Creates the data directory and an empty database on first run; default
    settings are seeded lazily by the first settings read.
    """
    app_config.ensure_directories()

    storage = Storage(app_config.db_path)
    if not storage.exists:
        storage.initialize()

    auth = AuthManager(
        bcrypt_rounds=app_config.bcrypt_rounds,
        session_lifetime_hours=app_config.session_lifetime_hours,
        rate_limit_attempts=app_config.rate_limit_attempts,
        rate_limit_window_minutes=app_config.rate_limit_window_minutes,
        session_store=SessionStore(app_config.sessions_file),
    )

    return AppState(
        config=app_config,
        storage=storage,
        auth=auth,
        users=UserStore(storage),
        settings=SettingsService(SettingsStore(storage), sanitizer=Sanitizer()),
        posts=PostStore(storage),
        password_resets=PasswordResetService(storage),
        audit_logger=AuditLogger(app_config.audit_log_path),
    )


def create_app(app_config: AppConfig | None = None) -> FastAPI:
    """Create the application.

    Args:
        app_config: Configuration; read from the environment if None.
    """
    app_config = app_config or AppConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(app_config.log_level, app_config.log_file)
        app.state.cms = build_state(app_config)
        logger.info("blogdesk started (data dir: %s)", app_config.data_dir)
        yield
        logger.info("blogdesk shutting down")

    app = FastAPI(
        title="blogdesk",
        description="Blog CMS access gate and site settings",
        version="0.1.0",
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.add_middleware(AccessMiddleware, gate=build_gate(app_config))

    app.include_router(auth_router)
    app.include_router(settings_router)
    app.include_router(admin_router)
    app.include_router(admin_api_router)
    app.include_router(cron_router)

    @app.get("/", response_class=HTMLResponse)
    async def home(settings: SettingsService = Depends(get_settings_service)):
        """Render the public home page."""
        values = settings.get_with_defaults()
        site_name = html.escape(values.get("site_name", ""))
        tagline = html.escape(values.get("site_tagline", ""))
        return HTMLResponse(f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1">
        <title>{site_name}</title>
    </head>
    <body>
        <h1>{site_name}</h1>
        <p>{tagline}</p>
        <p><a href="/signin">Sign in</a></p>
    </body>
    </html>
    """)

    return app


app = create_app()
