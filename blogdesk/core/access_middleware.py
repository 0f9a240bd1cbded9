"""Access gate for the admin area.

Every request passes through ``AccessMiddleware``. Paths under the protected
prefix (``/admin`` by default) require a session holding the admin-area
capability:

1. no session            -> redirect to sign-in, original path kept in ``callbackUrl``
2. session, no capability -> redirect to the fixed forbidden page
3. otherwise             -> request continues

Authentication is always decided before authorization, so an anonymous
caller is sent to sign-in even when role data is missing or malformed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from .auth import has_capability
from .logging import access_logger
from .models import Capability, Session


PROTECTED_PREFIX = "/admin"
SIGNIN_PATH = "/signin"
FORBIDDEN_PATH = "/403"


class GateOutcome(str, Enum):
    """What the gate decided for a request."""

    ALLOW = "allow"
    REDIRECT_SIGNIN = "redirect_signin"
    REDIRECT_FORBIDDEN = "redirect_forbidden"


@dataclass(frozen=True)
class GateDecision:
    """Gate outcome plus where to send the caller, if anywhere."""

    outcome: GateOutcome
    location: str | None = None
    callback_url: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome == GateOutcome.ALLOW


class AccessGate:
    """Pure decision logic: path + session in, decision out. No side effects."""

    def __init__(
        self,
        protected_prefix: str = PROTECTED_PREFIX,
        signin_path: str = SIGNIN_PATH,
        forbidden_path: str = FORBIDDEN_PATH,
        capability: Capability = Capability.ADMIN_AREA,
    ):
        self.protected_prefix = protected_prefix
        self.signin_path = signin_path
        self.forbidden_path = forbidden_path
        self.capability = capability

    def is_protected(self, path: str) -> bool:
        """True for the prefix itself and anything below it (whole segments only)."""
        prefix = self.protected_prefix.rstrip("/")
        return path == prefix or path.startswith(prefix + "/")

    def decide(self, path: str, session: Optional[Session]) -> GateDecision:
        """Decide whether a request for ``path`` may proceed.

        Args:
            path: Request path (no query string).
            session: Resolved session, or None for anonymous callers.
        """
        if not self.is_protected(path):
            return GateDecision(GateOutcome.ALLOW)

        if session is None or not getattr(session, "is_authenticated", False):
            query = urlencode({"callbackUrl": path})
            return GateDecision(
                GateOutcome.REDIRECT_SIGNIN,
                location=f"{self.signin_path}?{query}",
                callback_url=path,
            )

        if not has_capability(session, self.capability):
            return GateDecision(GateOutcome.REDIRECT_FORBIDDEN, location=self.forbidden_path)

        return GateDecision(GateOutcome.ALLOW)


class AccessMiddleware(BaseHTTPMiddleware):
    """Applies ``AccessGate`` decisions to incoming requests."""

    def __init__(self, app, gate: AccessGate | None = None):
        """Initialize middleware.

        Args:
            app: ASGI application.
            gate: Gate to apply; a default ``/admin`` gate if None.
        """
        super().__init__(app)
        self.gate = gate or AccessGate()

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        # Public paths never need a session lookup
        if not self.gate.is_protected(path):
            return await call_next(request)

        session = self._get_session(request)
        decision = self.gate.decide(path, session)

        if decision.allowed:
            return await call_next(request)

        access_logger.info(
            "Gate %s for %s (user=%s)",
            decision.outcome.value,
            path,
            session.user_id if session else "anonymous",
        )
        return RedirectResponse(url=decision.location, status_code=302)

    def _get_session(self, request: Request) -> Optional[Session]:
        """Resolve the caller's session from the ``session_id`` cookie.

        Returns None when there is no cookie, no auth service, or the
        session cannot be verified.
        """
        cms = getattr(request.app.state, "cms", None)
        auth = getattr(cms, "auth", None)
        if auth is None:
            return None
        return auth.verify_session(request.cookies.get("session_id"))
