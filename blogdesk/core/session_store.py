"""Persistent session storage with a file-based backend.

Sessions must be visible to every uvicorn worker, so they live in a JSON
file rather than in process memory.
"""

import fcntl
import json
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from .models import Role, Session


class SessionStoreError(Exception):
    """Session store error."""
    pass


def _owner(record) -> str | None:
    return record.get("user_id") if isinstance(record, dict) else None


class SessionStore:
    """File-based session storage with atomic writes and locking."""

    def __init__(self, session_file: Path):
        """Initialize session store.

        Args:
            session_file: Path to the JSON file for storing sessions.
        """
        self.session_file = session_file
        self._lock_path = session_file.with_suffix(".lock")
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        self.session_file.parent.mkdir(parents=True, exist_ok=True)
        if not self.session_file.exists():
            self._atomic_write({})

    def _read(self) -> dict[str, dict]:
        """Read sessions from file with shared lock."""
        try:
            with open(self.session_file, "r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = json.load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except (json.JSONDecodeError, FileNotFoundError):
            return {}
        except OSError as e:
            raise SessionStoreError(f"Cannot read sessions: {e}")
        # A file holding anything but an object has no usable sessions
        return data if isinstance(data, dict) else {}

    def _atomic_write(self, data: dict) -> None:
        fd, temp_path = tempfile.mkstemp(
            dir=self.session_file.parent,
            suffix=".tmp",
        )
        try:
            with open(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            shutil.move(temp_path, self.session_file)
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise

    def _modify(self, change) -> int:
        """Apply ``change`` to the session map under the writer lock.

        ``change`` mutates the dict in place and returns a count; the file is
        rewritten only when the count is non-zero.
        """
        try:
            with open(self._lock_path, "a+", encoding="utf-8") as lock:
                fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
                try:
                    sessions = self._read()
                    changed = change(sessions)
                    if changed:
                        self._atomic_write(sessions)
                    return changed
                finally:
                    fcntl.flock(lock.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            raise SessionStoreError(f"Cannot update sessions: {e}")

    def save_session(self, session: Session) -> None:
        """Save a session to storage."""
        record = {
            "session_id": session.session_id,
            "user_id": session.user_id,
            "role": session.role.value,
            "ip": session.ip,
            "user_agent": session.user_agent,
            "csrf_token": session.csrf_token,
            "created_at": session.created_at.isoformat(),
            "expires_at": session.expires_at.isoformat(),
        }

        def add(sessions: dict) -> int:
            sessions[session.session_id] = record
            return 1

        self._modify(add)

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID.

        Returns:
            Session object if found and valid, None otherwise. Expired or
            malformed records are removed.
        """
        session_data = self._read().get(session_id)
        if not session_data:
            return None

        try:
            expires_at = datetime.fromisoformat(session_data["expires_at"])

            if datetime.now(timezone.utc) > expires_at:
                self.delete_session(session_id)
                return None

            return Session(
                session_id=session_data["session_id"],
                user_id=session_data["user_id"],
                role=Role(session_data["role"]),
                ip=session_data["ip"],
                user_agent=session_data["user_agent"],
                csrf_token=session_data["csrf_token"],
                created_at=datetime.fromisoformat(session_data["created_at"]),
                expires_at=expires_at,
            )
        except (KeyError, TypeError, ValueError):
            self.delete_session(session_id)
            return None

    def delete_session(self, session_id: str) -> bool:
        """Delete a session. Returns True if it existed."""

        def remove(sessions: dict) -> int:
            return 1 if sessions.pop(session_id, None) is not None else 0

        return self._modify(remove) > 0

    def delete_user_sessions(self, user_id: str) -> int:
        """Delete all sessions for a user. Returns the number removed."""

        def remove(sessions: dict) -> int:
            doomed = [sid for sid, data in sessions.items() if _owner(data) == user_id]
            for sid in doomed:
                del sessions[sid]
            return len(doomed)

        return self._modify(remove)

    def cleanup_expired(self) -> int:
        """Remove all expired or malformed sessions. Returns the number removed."""
        now = datetime.now(timezone.utc)

        def remove(sessions: dict) -> int:
            expired = []
            for session_id, data in sessions.items():
                try:
                    if now > datetime.fromisoformat(data["expires_at"]):
                        expired.append(session_id)
                except (KeyError, TypeError, ValueError):
                    expired.append(session_id)
            for sid in expired:
                del sessions[sid]
            return len(expired)

        return self._modify(remove)

    def get_session_count(self, user_id: str | None = None) -> int:
        """Get count of stored sessions, optionally for one user."""
        sessions = self._read()
        if user_id:
            return sum(1 for data in sessions.values() if _owner(data) == user_id)
        return len(sessions)
