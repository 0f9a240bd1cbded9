"""Application configuration management."""

import os
import secrets
from pathlib import Path

from pydantic import BaseModel, Field


class AppConfig(BaseModel):
    """Application-wide configuration.

    These settings come from environment variables or defaults.
    Site settings (title, SEO, social links) live in the JSON store and are
    served by the settings service, not here.
    """

    # Paths
    base_dir: Path = Field(default_factory=lambda: Path.cwd())
    data_dir: Path = Field(default=None)

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    workers: int = 1

    # Security
    secret_key: str = Field(default_factory=lambda: secrets.token_hex(32))
    session_lifetime_hours: int = 4
    rate_limit_attempts: int = 5
    rate_limit_window_minutes: int = 15
    password_min_length: int = 12
    bcrypt_rounds: int = 12
    cron_secret: str | None = None

    # Access gate
    protected_prefix: str = "/admin"
    signin_path: str = "/signin"
    forbidden_path: str = "/403"

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None

    def __init__(self, **data):
        super().__init__(**data)
        if self.data_dir is None:
            self.data_dir = self.base_dir / "data"

    @property
    def db_path(self) -> Path:
        """Path to the JSON database file."""
        return self.data_dir / "db.json"

    @property
    def sessions_file(self) -> Path:
        """Path to sessions storage file."""
        return self.data_dir / "sessions.json"

    @property
    def audit_log_path(self) -> Path:
        """Path to audit log file."""
        return self.data_dir / "audit.log"

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls, base_dir: Path | None = None) -> "AppConfig":
        """Create configuration from environment variables.

        Args:
            base_dir: Base directory for the application.

        Returns:
            AppConfig instance.

        Raises:
            ValueError: If environment variable values are invalid.
        """
        if base_dir is None:
            base_dir = Path(os.getenv("BLOGDESK_BASE_DIR", Path.cwd()))

        def get_int_env(name: str, default: int, min_val: int, max_val: int) -> int:
            """Parse and validate integer environment variable."""
            value_str = os.getenv(name, str(default))
            try:
                value = int(value_str)
            except ValueError:
                raise ValueError(f"{name} must be an integer, got: {value_str}")
            if value < min_val or value > max_val:
                raise ValueError(f"{name} must be between {min_val} and {max_val}, got: {value}")
            return value

        data_dir = os.getenv("BLOGDESK_DATA_DIR")
        log_file = os.getenv("BLOGDESK_LOG_FILE")

        # data_dir falls back to base_dir/data in __init__ when omitted
        paths = {"data_dir": Path(data_dir)} if data_dir else {}

        return cls(
            base_dir=base_dir,
            **paths,
            host=os.getenv("BLOGDESK_HOST", "127.0.0.1"),
            port=get_int_env("BLOGDESK_PORT", 8000, 1, 65535),
            debug=os.getenv("BLOGDESK_DEBUG", "false").lower() == "true",
            workers=get_int_env("BLOGDESK_WORKERS", 1, 1, 32),
            secret_key=os.getenv("BLOGDESK_SECRET_KEY", secrets.token_hex(32)),
            session_lifetime_hours=get_int_env("BLOGDESK_SESSION_HOURS", 4, 1, 168),
            rate_limit_attempts=get_int_env("BLOGDESK_RATE_LIMIT_ATTEMPTS", 5, 1, 100),
            rate_limit_window_minutes=get_int_env("BLOGDESK_RATE_LIMIT_WINDOW", 15, 1, 1440),
            password_min_length=get_int_env("BLOGDESK_PASSWORD_MIN_LENGTH", 12, 8, 128),
            bcrypt_rounds=get_int_env("BLOGDESK_BCRYPT_ROUNDS", 12, 4, 16),
            cron_secret=os.getenv("BLOGDESK_CRON_SECRET") or os.getenv("CRON_SECRET") or None,
            log_level=os.getenv("BLOGDESK_LOG_LEVEL", "INFO"),
            log_file=Path(log_file) if log_file else None,
        )
