"""Logging for blogdesk.

All modules log through children of the ``blogdesk`` logger. Handlers
installed by ``setup_logging`` carry a ``RedactingFilter``: request paths,
emails and user agents end up in messages, so credentials that ride along
(bearer secrets, session and CSRF tokens, passwords) are masked and control
characters are escaped before anything is written.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Optional


logger = logging.getLogger("blogdesk")

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

REDACTED = "[REDACTED]"

# (pattern, replacement); group 1 is the part that stays visible
SECRET_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"(Bearer\s+)\S+", re.IGNORECASE), r"\1" + REDACTED),
    (
        re.compile(r"\b((?:session_id|csrf_token|password)[=:]\s*)[^\s&;,]+"),
        r"\1" + REDACTED,
    ),
]

CONTROL_CHARS = str.maketrans({"\n": "\\n", "\r": "\\r", "\x00": ""})


def redact(message: str) -> str:
    """Mask credentials and escape line breaks in a log message.

    >>> redact("auth=Bearer abc123 from 10.0.0.1")
    'auth=Bearer [REDACTED] from 10.0.0.1'
    """
    message = message.translate(CONTROL_CHARS)
    for pattern, replacement in SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class RedactingFilter(logging.Filter):
    """Rewrites each record's message through ``redact``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = None
        return True


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Configure the ``blogdesk`` logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL; unknown names
            fall back to INFO.
        log_file: Also write to this file when given.
        log_format: Format string for log messages.

    Returns:
        The configured application logger.
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(numeric_level)

    # Re-running setup (tests, reloads) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    formatter = logging.Formatter(log_format)
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        handler.addFilter(RedactingFilter())
        logger.addHandler(handler)

    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger ``blogdesk.<name>``."""
    return logging.getLogger(f"blogdesk.{name}")


access_logger = get_logger("access")
auth_logger = get_logger("auth")
settings_logger = get_logger("settings")
storage_logger = get_logger("storage")
admin_logger = get_logger("admin")
cron_logger = get_logger("cron")
