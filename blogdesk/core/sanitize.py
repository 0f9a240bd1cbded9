"""Sanitization of admin-supplied setting values."""

import re

import bleach


class Sanitizer:
    """Cleans short text values before they are stored.

    Plain text passes through untouched apart from trimming and removal of
    script-ish URL schemes. Values that contain markup are reduced to a
    small tag allowlist with bleach; ``<script>`` and ``<iframe>`` blocks
    are removed together with their contents.
    """

    ALLOWED_TAGS = [
        "a",
        "b",
        "br",
        "div",
        "em",
        "i",
        "p",
        "span",
        "strong",
    ]

    ALLOWED_ATTRIBUTES = {
        "a": ["href", "title", "rel"],
    }

    ALLOWED_PROTOCOLS = ["http", "https", "mailto"]

    # Removed with everything between the tags
    BLOCK_PATTERNS = [
        re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
        re.compile(r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE),
    ]

    URL_SCHEME_PATTERNS = [
        re.compile(r"javascript:", re.IGNORECASE),
        re.compile(r"vbscript:", re.IGNORECASE),
    ]

    EVENT_HANDLER_PATTERN = re.compile(r"on\w+\s*=", re.IGNORECASE)

    def _looks_like_html(self, value: str) -> bool:
        return bool(re.search(r"<[a-zA-Z/!]", value))

    def sanitize_html(self, value: str) -> str:
        """Strip disallowed tags and attributes, keeping their text."""
        cleaned = bleach.clean(
            value,
            tags=self.ALLOWED_TAGS,
            attributes=self.ALLOWED_ATTRIBUTES,
            protocols=self.ALLOWED_PROTOCOLS,
            strip=True,
            strip_comments=True,
        )
        return self.EVENT_HANDLER_PATTERN.sub("", cleaned)

    def sanitize_text(self, value: str) -> str:
        """Sanitize a single setting value.

        Args:
            value: Raw value from the admin form.

        Returns:
            Cleaned, trimmed value.
        """
        for pattern in self.BLOCK_PATTERNS:
            value = pattern.sub("", value)

        if self._looks_like_html(value):
            value = self.sanitize_html(value)

        for pattern in self.URL_SCHEME_PATTERNS:
            value = pattern.sub("", value)

        return value.strip()
