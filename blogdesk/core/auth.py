"""Authentication and authorization management."""

import secrets
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt as _bcrypt

from .logging import auth_logger
from .models import Capability, LoginAttempt, Role, Session, User
from .session_store import SessionStore, SessionStoreError


# Capability matrix: role -> granted capabilities
ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.USER: frozenset({Capability.VIEW_PUBLIC, Capability.COMMENT}),
}


def has_capability(session: Optional[Session], capability: Capability) -> bool:
    """Check whether a session grants a capability.

    Anonymous callers and sessions with a missing or unknown role get
    nothing.
    """
    if session is None:
        return False
    role = getattr(session, "role", None)
    try:
        granted = ROLE_CAPABILITIES.get(role, frozenset())
    except TypeError:
        return False
    return capability in granted


class AuthManager:
    """Manages passwords, sessions and login rate limiting.

    Sessions go to a file-backed ``SessionStore`` when one is given so
    several workers share them; otherwise they are kept in memory (CLI and
    tests).
    """

    def __init__(
        self,
        bcrypt_rounds: int = 12,
        session_lifetime_hours: int = 4,
        rate_limit_attempts: int = 5,
        rate_limit_window_minutes: int = 15,
        session_store: SessionStore | None = None,
    ):
        """Initialize auth manager.

        Args:
            bcrypt_rounds: Cost factor for bcrypt (12 recommended).
            session_lifetime_hours: Session validity in hours.
            rate_limit_attempts: Max failed login attempts per window.
            rate_limit_window_minutes: Rate limit window in minutes.
            session_store: Optional persistent session store.
        """
        self.bcrypt_rounds = bcrypt_rounds
        self.session_lifetime = timedelta(hours=session_lifetime_hours)
        self.rate_limit_attempts = rate_limit_attempts
        self.rate_limit_window = timedelta(minutes=rate_limit_window_minutes)

        self._session_store = session_store
        self._sessions: dict[str, Session] = {}
        self._login_attempts: dict[str, list[LoginAttempt]] = defaultdict(list)

        # Compared against when the user does not exist, so both paths cost
        # one bcrypt check
        self._dummy_hash: str | None = None

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt."""
        salt = _bcrypt.gensalt(rounds=self.bcrypt_rounds)
        return _bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify_password(self, password: str, hash_str: str) -> bool:
        """Verify a password against a bcrypt hash.

        Malformed hashes verify as False.
        """
        try:
            return _bcrypt.checkpw(password.encode("utf-8"), hash_str.encode("utf-8"))
        except ValueError:
            return False

    def authenticate(self, user: User | None, password: str) -> bool:
        """Check a password for a possibly missing user.

        Unknown users and wrong passwords take the same time and give the
        same answer.
        """
        if user is None:
            if self._dummy_hash is None:
                self._dummy_hash = self.hash_password(secrets.token_urlsafe(16))
            self.verify_password(password, self._dummy_hash)
            return False
        return self.verify_password(password, user.password_hash)

    def generate_password(self, length: int = 16) -> str:
        """Generate a random, readable password."""
        alphabet = "abcdefghijkmnopqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ23456789"
        return "".join(secrets.choice(alphabet) for _ in range(length))

    def check_rate_limit(self, ip: str) -> bool:
        """Check if IP is still allowed to attempt a login.

        Returns:
            True if under limit (allowed), False if exceeded (blocked).
        """
        window_start = datetime.now(timezone.utc) - self.rate_limit_window

        self._login_attempts[ip] = [
            attempt
            for attempt in self._login_attempts[ip]
            if attempt.timestamp > window_start
        ]

        failed_count = sum(
            1 for attempt in self._login_attempts[ip] if not attempt.success
        )
        return failed_count < self.rate_limit_attempts

    def record_login_attempt(
        self, ip: str, success: bool, user_agent: str | None = None
    ) -> None:
        """Record a login attempt for rate limiting."""
        self._login_attempts[ip].append(
            LoginAttempt(ip=ip, success=success, user_agent=user_agent)
        )

    def cleanup_rate_limits(self) -> int:
        """Forget attempts outside the window. Returns the number of IPs cleared."""
        window_start = datetime.now(timezone.utc) - self.rate_limit_window
        stale = [
            ip
            for ip, attempts in self._login_attempts.items()
            if all(a.timestamp <= window_start for a in attempts)
        ]
        for ip in stale:
            del self._login_attempts[ip]
        return len(stale)

    def create_session(
        self,
        user_id: str,
        role: Role,
        ip: str,
        user_agent: str,
    ) -> Session:
        """Create a new session for an authenticated user."""
        now = datetime.now(timezone.utc)
        session = Session(
            session_id=secrets.token_urlsafe(32),
            user_id=user_id,
            role=role,
            ip=ip,
            user_agent=user_agent,
            csrf_token=secrets.token_urlsafe(32),
            created_at=now,
            expires_at=now + self.session_lifetime,
        )

        if self._session_store:
            self._session_store.save_session(session)
        else:
            self._sessions[session.session_id] = session

        return session

    def verify_session(self, session_id: str | None) -> Optional[Session]:
        """Resolve a session token.

        Never raises: unknown, expired or unreadable sessions all resolve to
        None, i.e. an anonymous caller.
        """
        if not session_id:
            return None

        if self._session_store:
            try:
                return self._session_store.get_session(session_id)
            except SessionStoreError as e:
                auth_logger.warning("Session lookup failed, treating as anonymous: %s", e)
                return None

        session = self._sessions.get(session_id)
        if session is None:
            return None

        if datetime.now(timezone.utc) > session.expires_at:
            del self._sessions[session_id]
            return None

        return session

    def invalidate_session(self, session_id: str) -> bool:
        """Invalidate/logout a session. Returns True if it existed."""
        if self._session_store:
            return self._session_store.delete_session(session_id)

        return self._sessions.pop(session_id, None) is not None

    def invalidate_user_sessions(self, user_id: str) -> int:
        """Invalidate all sessions for a user. Returns the number removed."""
        if self._session_store:
            return self._session_store.delete_user_sessions(user_id)

        doomed = [sid for sid, s in self._sessions.items() if s.user_id == user_id]
        for sid in doomed:
            del self._sessions[sid]
        return len(doomed)

    def cleanup_expired_sessions(self) -> int:
        """Remove expired sessions. Returns the number removed."""
        if self._session_store:
            return self._session_store.cleanup_expired()

        now = datetime.now(timezone.utc)
        expired = [sid for sid, s in self._sessions.items() if s.expires_at < now]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)

    def get_session_count(self, user_id: str | None = None) -> int:
        """Get count of active sessions, optionally for one user."""
        if self._session_store:
            return self._session_store.get_session_count(user_id)

        if user_id:
            return sum(1 for s in self._sessions.values() if s.user_id == user_id)
        return len(self._sessions)

    def check_permission(self, role: Role, capability: Capability) -> bool:
        """Check if a role holds a capability."""
        return capability in ROLE_CAPABILITIES.get(role, frozenset())

    def verify_csrf(self, session: Optional[Session], token: str | None) -> bool:
        """Verify a CSRF token against the session's token."""
        if not token or not session:
            return False
        return secrets.compare_digest(session.csrf_token, token)
