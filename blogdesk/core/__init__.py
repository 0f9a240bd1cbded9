"""Core services for blogdesk: storage, auth, settings and the access gate."""

from .access_middleware import AccessGate, AccessMiddleware, GateDecision, GateOutcome
from .auth import AuthManager, has_capability
from .config import AppConfig
from .errors import (
    AuthenticationRequired,
    CMSError,
    InternalError,
    NotFoundError,
    PermissionDenied,
    RateLimitExceeded,
    SettingsUnavailable,
    ValidationFailed,
)
from .settings import DEFAULT_SETTINGS, SettingsService
from .settings_store import SettingsStore
from .storage import Storage, StorageError

__all__ = [
    "AccessGate",
    "AccessMiddleware",
    "AppConfig",
    "AuthManager",
    "AuthenticationRequired",
    "CMSError",
    "DEFAULT_SETTINGS",
    "GateDecision",
    "GateOutcome",
    "InternalError",
    "NotFoundError",
    "PermissionDenied",
    "RateLimitExceeded",
    "SettingsService",
    "SettingsStore",
    "SettingsUnavailable",
    "Storage",
    "StorageError",
    "ValidationFailed",
    "has_capability",
]
