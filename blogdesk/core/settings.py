"""Settings resolution: categorized views, default seeding and public filtering.

The store is flat (key -> value/category/visibility). This service turns it
into the views the site needs:

- ``get_all`` / ``get_by_category`` for admins,
- ``resolve_all`` for the read path that seeds defaults into an empty store
  and retries exactly once,
- ``public_settings`` for anonymous readers, always passed through
  ``filter_public``.
"""

import re
from typing import Iterable, Mapping, Sequence
from urllib.parse import urlparse

from .errors import NotFoundError, SettingsUnavailable, ValidationFailed
from .logging import settings_logger
from .models import Setting, SettingVisibility, utc_now
from .sanitize import Sanitizer
from .settings_store import SettingsStore
from .storage import StorageError


# Keys containing any of these are never served publicly
SENSITIVE_KEY_MARKERS = ("secret", "private", "key")

REQUIRED_SETTINGS = {"site_name", "seo_meta_title"}

MAX_VALUE_LENGTH = 1000


def category_from_key(key: str) -> str:
    """Derive a setting's category from its key prefix."""
    if key.startswith("site_"):
        return "general"
    if key.startswith("seo_"):
        return "seo"
    if key.startswith("social_"):
        return "social"
    return "general"


def _default(key: str, value: str) -> Setting:
    return Setting(key=key, value=value, category=category_from_key(key))


DEFAULT_SETTINGS: tuple[Setting, ...] = (
    _default("site_name", "403 AI - Forbidden AI"),
    _default("site_tagline", "Exploring Forbidden Knowledge in AI/ML"),
    _default(
        "site_description",
        "A platform for AI research, discussions, and news about forbidden "
        "knowledge in artificial intelligence and machine learning.",
    ),
    _default("site_logo", ""),
    _default("seo_meta_title", "403 AI - Forbidden AI"),
    _default(
        "seo_meta_description",
        "Exploring forbidden knowledge in artificial intelligence and machine "
        "learning. Join our community of AI researchers and enthusiasts.",
    ),
    _default(
        "seo_keywords",
        "AI, Machine Learning, Artificial Intelligence, Research, Technology, Innovation",
    ),
    _default("social_twitter", ""),
    _default("social_linkedin", ""),
    _default("social_github", ""),
    _default("social_facebook", ""),
    _default("social_instagram", ""),
)


class SettingsService:
    """Category-partitioned, default-seeded view over the settings store."""

    def __init__(
        self,
        store: SettingsStore,
        defaults: Sequence[Setting] | None = None,
        sanitizer: Sanitizer | None = None,
    ):
        """Initialize the service.

        Args:
            store: Persistent settings store.
            defaults: Default table used for seeding; DEFAULT_SETTINGS if None.
            sanitizer: Value sanitizer.
        """
        self.store = store
        self.defaults: tuple[Setting, ...] = tuple(
            DEFAULT_SETTINGS if defaults is None else defaults
        )
        self.sanitizer = sanitizer or Sanitizer()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all(self) -> dict[str, str]:
        """Get all settings as key-value pairs."""
        return {s.key: s.value for s in self.store.all()}

    def get_by_category(self, category: str) -> dict[str, str]:
        """Get settings of one category. Unknown categories yield {}."""
        return {s.key: s.value for s in self.store.by_category(category)}

    def get_setting(self, key: str) -> str | None:
        """Get a single setting value, or None if absent."""
        setting = self.store.get(key)
        return setting.value if setting else None

    def get_grouped(self) -> dict[str, dict[str, str]]:
        """Get all settings grouped by category."""
        grouped: dict[str, dict[str, str]] = {}
        for setting in self.store.all():
            grouped.setdefault(setting.category, {})[setting.key] = setting.value
        return grouped

    def _resolve_records(self) -> list[Setting]:
        try:
            records = self.store.all()
        except StorageError as e:
            settings_logger.error("Cannot read settings: %s", e)
            raise SettingsUnavailable(f"Cannot read settings: {e}") from e

        if records:
            return records

        settings_logger.info("Settings store is empty, seeding defaults")
        try:
            self.initialize_defaults()
            records = self.store.all()
        except StorageError as e:
            settings_logger.error("Seeding default settings failed: %s", e)
            raise SettingsUnavailable(f"Seeding default settings failed: {e}") from e

        if not records:
            settings_logger.error("Settings store still empty after seeding defaults")
            raise SettingsUnavailable("Settings store still empty after seeding defaults")
        return records

    def resolve_all(self) -> dict[str, str]:
        """Get all settings, seeding defaults first if the store is empty.

        The store is re-read at most once after seeding.

        Raises:
            SettingsUnavailable: If the store cannot be read, seeding fails,
                or the store is still empty afterwards.
        """
        return {s.key: s.value for s in self._resolve_records()}

    def get_with_defaults(self) -> dict[str, str]:
        """Get defaults overlaid with stored values.

        Falls back to the bare defaults if the store cannot be read.
        """
        merged = {d.key: d.value for d in self.defaults}
        try:
            merged.update(self.get_all())
        except StorageError as e:
            settings_logger.warning("Using default settings, store unavailable: %s", e)
        return merged

    # ------------------------------------------------------------------
    # Public view
    # ------------------------------------------------------------------

    @staticmethod
    def filter_public(
        settings: Mapping[str, str],
        private_keys: Iterable[str] | None = None,
    ) -> dict[str, str]:
        """Drop settings that must not be served to anonymous readers.

        A key is dropped when it contains "secret", "private" or "key"
        (case-sensitive substring) or when it is listed in ``private_keys``.
        """
        hidden = set(private_keys or ())
        return {
            key: value
            for key, value in settings.items()
            if key not in hidden
            and not any(marker in key for marker in SENSITIVE_KEY_MARKERS)
        }

    def public_settings(self, category: str | None = None) -> dict[str, str]:
        """Settings for the public endpoint, always filtered.

        Without a category this is the seeding read path (``resolve_all``).
        """
        if category:
            records = self.store.by_category(category)
        else:
            records = self._resolve_records()

        private_keys = [
            s.key for s in records if s.visibility == SettingVisibility.PRIVATE
        ]
        return self.filter_public({s.key: s.value for s in records}, private_keys)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def initialize_defaults(self) -> int:
        """Insert every default whose key is not stored yet.

        Existing keys are never overwritten, so running this repeatedly or
        concurrently is harmless.

        Returns:
            Number of settings inserted.
        """
        now = utc_now()
        inserted = self.store.insert_missing(
            d.model_copy(update={"updated_at": now}) for d in self.defaults
        )
        settings_logger.info("Default settings initialized (%d inserted)", inserted)
        return inserted

    def update_settings(self, settings: Mapping[str, str]) -> dict[str, str]:
        """Sanitize, validate and store several settings at once.

        Nothing is written unless every entry is valid.

        Returns:
            The sanitized values that were stored.

        Raises:
            ValidationFailed: With a per-key error map.
        """
        cleaned: dict[str, str] = {}
        errors: dict[str, str] = {}
        records: list[Setting] = []

        for key, value in settings.items():
            sanitized = self.sanitize_setting(key, value)
            error = self._check_value(key, sanitized)
            if error:
                errors[key] = error
                continue
            try:
                records.append(
                    Setting(key=key, value=sanitized, category=category_from_key(key))
                )
            except ValueError:
                errors[key] = "Invalid setting key"
                continue
            cleaned[key] = sanitized

        if errors:
            raise ValidationFailed("Validation failed", errors)

        self.store.upsert(records)
        return cleaned

    def update_setting(self, key: str, value: str) -> str:
        """Sanitize, validate and store one setting."""
        return self.update_settings({key: value})[key]

    def set_visibility(self, key: str, visibility: SettingVisibility) -> None:
        """Mark a stored setting public or private.

        Private settings are left out of ``public_settings`` whatever their key.

        Raises:
            NotFoundError: If the key is not stored.
        """
        if not self.store.set_visibility(key, visibility):
            raise NotFoundError(f"Setting '{key}'")
        settings_logger.info("Setting %s is now %s", key, visibility.value)

    def delete_setting(self, key: str) -> None:
        """Delete a setting.

        Raises:
            NotFoundError: If the key is not stored.
        """
        if not self.store.delete(key):
            raise NotFoundError(f"Setting '{key}'")

    # ------------------------------------------------------------------
    # Sanitization and validation
    # ------------------------------------------------------------------

    def sanitize_setting(self, key: str, value: str) -> str:
        """Clean a value; social links get an https:// scheme when missing."""
        sanitized = self.sanitizer.sanitize_text(value)

        if key.startswith("social_") and sanitized:
            if not re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", sanitized):
                sanitized = "https://" + sanitized

        return sanitized

    def validate_setting(self, key: str, value: str) -> str | None:
        """Validate a raw value the way it would be stored.

        Returns:
            An error message, or None if the value is valid.
        """
        return self._check_value(key, self.sanitize_setting(key, value))

    def _check_value(self, key: str, value: str) -> str | None:
        # value is already sanitized
        if key.startswith("social_") and value:
            try:
                parsed = urlparse(value)
                host = parsed.hostname
            except ValueError:
                return "Invalid URL format"
            if parsed.scheme.lower() not in ("http", "https"):
                return "Only HTTP and HTTPS URLs are allowed"
            if not host or "." not in host:
                return "Invalid URL format"

        if len(value) > MAX_VALUE_LENGTH:
            return f"Value too long (max {MAX_VALUE_LENGTH} characters)"

        if key in REQUIRED_SETTINGS and not value.strip():
            return "This field is required"

        if key == "site_name" and len(value) < 2:
            return "Site name must be at least 2 characters"

        if key == "seo_meta_title" and len(value) > 60:
            return "Meta title must be 60 characters or less"

        if key == "seo_meta_description" and len(value) > 160:
            return "Meta description must be 160 characters or less"

        return None

    def validate_settings(self, settings: Mapping[str, str]) -> dict[str, str]:
        """Validate several values. Returns a map of key -> error."""
        errors = {}
        for key, value in settings.items():
            error = self.validate_setting(key, value)
            if error:
                errors[key] = error
        return errors
