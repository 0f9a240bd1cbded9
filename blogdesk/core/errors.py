"""Error taxonomy shared by services and routes.

Every error carries an HTTP status and a stable machine-readable code. The
global handlers in ``error_handlers`` turn them into JSON; the access gate
never raises them, it redirects instead.
"""


class CMSError(Exception):
    """Base exception for all blogdesk application errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_response(self) -> dict:
        """Convert to the JSON error body sent to clients."""
        return {"error": self.message, "code": self.code}


class AuthenticationRequired(CMSError):
    """No valid session."""

    status_code = 401
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class PermissionDenied(CMSError):
    """Valid session, insufficient role."""

    status_code = 403
    code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class NotFoundError(CMSError):
    """Entity absent."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")


class ValidationFailed(CMSError):
    """Input violates a schema or business rule."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", errors: dict[str, str] | None = None):
        super().__init__(message)
        self.errors = errors or {}

    def to_response(self) -> dict:
        body = super().to_response()
        if self.errors:
            body["details"] = self.errors
        return body


class RateLimitExceeded(CMSError):
    """Too many attempts from one client."""

    status_code = 429
    code = "RATE_LIMIT_ERROR"

    def __init__(self, message: str = "Too many requests"):
        super().__init__(message)


class InternalError(CMSError):
    """Unexpected failure. The message is logged, never sent to the client."""

    public_message = "Internal server error"

    def to_response(self) -> dict:
        return {"error": self.public_message, "code": self.code}


class SettingsUnavailable(InternalError):
    """Settings could not be read, even after seeding defaults."""

    public_message = "Failed to fetch settings"
