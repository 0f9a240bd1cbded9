"""Password reset tokens."""

import secrets
from datetime import datetime, timedelta

from .models import PasswordResetToken, utc_now
from .storage import Storage


class PasswordResetService:
    """Issues, validates and expires one-time reset tokens."""

    SECTION = "password_resets"

    def __init__(self, storage: Storage, lifetime_hours: int = 1):
        self.storage = storage
        self.lifetime = timedelta(hours=lifetime_hours)

    def issue_token(self, user_id: str) -> str:
        """Issue a fresh token, dropping the user's unused ones."""
        now = utc_now()
        token = PasswordResetToken(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            expires_at=now + self.lifetime,
            created_at=now,
        )
        with self.storage.transaction() as data:
            tokens = data.setdefault(self.SECTION, {})
            stale = [
                key for key, record in tokens.items()
                if record.get("user_id") == user_id and not record.get("used")
            ]
            for key in stale:
                del tokens[key]
            tokens[token.token] = token.model_dump(mode="json")
        return token.token

    def validate_token(self, token: str) -> bool:
        """Check that a token exists, is unused and has not expired."""
        record = self.storage.get(self.SECTION, {}).get(token)
        if not record:
            return False
        reset = PasswordResetToken(**record)
        return not reset.used and utc_now() <= reset.expires_at

    def cleanup_expired_tokens(self, now: datetime | None = None) -> int:
        """Delete every expired token. Returns the number deleted."""
        now = now or utc_now()
        with self.storage.transaction() as data:
            tokens = data.setdefault(self.SECTION, {})
            expired = [
                key for key, record in tokens.items()
                if PasswordResetToken(**record).expires_at < now
            ]
            for key in expired:
                del tokens[key]
        return len(expired)
