"""Persistent key/value store for site settings.

Settings live in the ``settings`` section of the JSON database, keyed by
setting key. All writes run inside a storage transaction, so
``insert_missing`` is an atomic upsert-if-absent even when several workers
seed at the same time.
"""

from datetime import datetime, timezone
from typing import Iterable

from .models import Setting, SettingVisibility
from .storage import Storage


class SettingsStore:
    """Read/write access to stored settings."""

    SECTION = "settings"

    def __init__(self, storage: Storage):
        self.storage = storage

    def _to_record(self, setting: Setting) -> dict:
        return {
            "value": setting.value,
            "category": setting.category,
            "visibility": setting.visibility.value,
            "updated_at": setting.updated_at.isoformat(),
        }

    def _from_record(self, key: str, record: dict) -> Setting:
        return Setting(key=key, **record)

    def all(self) -> list[Setting]:
        """Return every stored setting."""
        records = self.storage.get(self.SECTION, {})
        return [self._from_record(key, record) for key, record in records.items()]

    def by_category(self, category: str) -> list[Setting]:
        """Return settings whose category equals ``category``."""
        return [s for s in self.all() if s.category == category]

    def get(self, key: str) -> Setting | None:
        """Return a single setting or None."""
        record = self.storage.get(self.SECTION, {}).get(key)
        if record is None:
            return None
        return self._from_record(key, record)

    def upsert(self, settings: Iterable[Setting]) -> None:
        """Write values, creating missing keys.

        Existing keys keep their category and visibility; only the value
        changes.
        """
        now = datetime.now(timezone.utc).isoformat()
        with self.storage.transaction() as data:
            section = data.setdefault(self.SECTION, {})
            for setting in settings:
                existing = section.get(setting.key)
                if existing is None:
                    section[setting.key] = self._to_record(setting)
                else:
                    existing["value"] = setting.value
                    existing["updated_at"] = now

    def insert_missing(self, settings: Iterable[Setting]) -> int:
        """Insert settings whose key is absent. Never overwrites.

        Returns:
            Number of settings inserted.
        """
        inserted = 0
        with self.storage.transaction() as data:
            section = data.setdefault(self.SECTION, {})
            for setting in settings:
                if setting.key not in section:
                    section[setting.key] = self._to_record(setting)
                    inserted += 1
        return inserted

    def set_visibility(self, key: str, visibility: SettingVisibility) -> bool:
        """Change a stored setting's visibility. Returns False if it did not exist."""
        with self.storage.transaction() as data:
            record = data.setdefault(self.SECTION, {}).get(key)
            if record is None:
                return False
            record["visibility"] = visibility.value
            record["updated_at"] = datetime.now(timezone.utc).isoformat()
            return True

    def delete(self, key: str) -> bool:
        """Delete a setting. Returns False if it did not exist."""
        with self.storage.transaction() as data:
            section = data.setdefault(self.SECTION, {})
            if key not in section:
                return False
            del section[key]
            return True
