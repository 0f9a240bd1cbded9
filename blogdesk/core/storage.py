"""JSON flat-file storage with atomic writes and locking."""

import fcntl
import json
import shutil
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from .logging import storage_logger


class StorageError(Exception):
    """Base exception for storage errors."""

    pass


class Storage:
    """Process- and thread-safe JSON database with atomic writes.

    Reads take a shared lock on the database file. Every write is a
    read-modify-write performed inside ``transaction()``, which holds an
    exclusive lock on a sidecar lock file for the whole cycle, so concurrent
    writers (threads or worker processes) are serialized and never lose
    each other's updates. Files are replaced atomically: write to a temp
    file, then rename.
    """

    SECTIONS = ("settings", "users", "posts", "password_resets")

    def __init__(self, db_path: Path):
        """Initialize storage with database path.

        Args:
            db_path: Path to the JSON database file.
        """
        self.db_path = db_path
        self._lock_path = db_path.with_suffix(".lock")

    @property
    def exists(self) -> bool:
        """Check if database file exists."""
        return self.db_path.exists()

    def load(self) -> dict:
        """Load database from file.

        Returns:
            Database contents as dictionary.

        Raises:
            StorageError: If file cannot be read or parsed.
        """
        if not self.db_path.exists():
            raise StorageError(f"Database file not found: {self.db_path}")

        try:
            with open(self.db_path, "r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    return json.load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid JSON in database: {e}")
        except OSError as e:
            raise StorageError(f"Cannot read database: {e}")

    def save(self, data: dict) -> None:
        """Save database to file atomically.

        Callers that modify existing data must go through ``transaction()``;
        a bare ``save`` only suits writing a brand new database.

        Args:
            data: Full database contents.

        Raises:
            StorageError: If save fails.
        """
        data.setdefault("meta", {})["last_modified"] = datetime.now(timezone.utc).isoformat()

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            fd, temp_path = tempfile.mkstemp(
                dir=self.db_path.parent,
                suffix=".tmp",
            )
            try:
                with open(fd, "w", encoding="utf-8") as f:
                    json.dump(
                        data,
                        f,
                        indent=2,
                        ensure_ascii=False,
                        default=str,
                    )

                # Atomic rename
                shutil.move(temp_path, self.db_path)
            except Exception:
                Path(temp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Cannot save database: {e}")

    @contextmanager
    def _exclusive_lock(self) -> Iterator[None]:
        """Hold the writer lock for the duration of the block."""
        try:
            self._lock_path.parent.mkdir(parents=True, exist_ok=True)
            lock_file = open(self._lock_path, "a+", encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot open lock file: {e}")

        with lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    @contextmanager
    def transaction(self) -> Iterator[dict]:
        """Read-modify-write the database under the exclusive writer lock.

        The yielded dict is the freshly loaded database; it is saved when
        the block exits normally and discarded if the block raises.

        Example:
            with storage.transaction() as data:
                data["settings"]["site_name"] = {...}
        """
        with self._exclusive_lock():
            data = self.load()
            yield data
            self.save(data)

    def get(self, path: str, default: Any = None) -> Any:
        """Get value from database using dot notation.

        Args:
            path: Dot-separated path (e.g., "settings.site_name")
            default: Default value if path not found.

        Returns:
            Value at path or default.
        """
        value = self.load()
        for key in path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, path: str, value: Any) -> None:
        """Set value in database using dot notation.

        Args:
            path: Dot-separated path (e.g., "users.abc123")
            value: Value to set.
        """
        keys = path.split(".")
        with self.transaction() as data:
            target = data
            for key in keys[:-1]:
                target = target.setdefault(key, {})
            target[keys[-1]] = value

    def delete(self, path: str) -> bool:
        """Delete value from database using dot notation.

        Args:
            path: Dot-separated path to delete.

        Returns:
            True if deleted, False if not found.
        """
        keys = path.split(".")
        with self.transaction() as data:
            target = data
            for key in keys[:-1]:
                if not isinstance(target, dict) or key not in target:
                    return False
                target = target[key]

            if keys[-1] in target:
                del target[keys[-1]]
                return True
            return False

    def initialize(self, force: bool = False) -> dict:
        """Create a new, empty database.

        Settings are intentionally left empty: defaults are seeded by the
        settings service on first read or by ``blogdesk init``.

        Args:
            force: Overwrite an existing database.

        Returns:
            The initialized database.

        Raises:
            StorageError: If the database exists and force is False.
        """
        with self._exclusive_lock():
            if self.exists and not force:
                raise StorageError(f"Database already exists: {self.db_path}")

            data: dict[str, Any] = {section: {} for section in self.SECTIONS}
            data["meta"] = {"created_at": datetime.now(timezone.utc).isoformat()}
            self.save(data)

        storage_logger.info("Initialized database at %s", self.db_path)
        return data
