"""Tests for the admin access gate."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

import pytest

from blogdesk.core.access_middleware import AccessGate, GateOutcome
from blogdesk.core.auth import has_capability
from blogdesk.core.models import Capability, Role, Session

from conftest import sign_in_as


def make_session(role: Role) -> Session:
    now = datetime.now(timezone.utc)
    return Session(
        session_id="sid",
        user_id="u1",
        role=role,
        ip="127.0.0.1",
        user_agent="pytest",
        csrf_token="csrf",
        created_at=now,
        expires_at=now + timedelta(hours=1),
    )


class TestGateDecisions:
    """Tests for AccessGate.decide."""

    @pytest.mark.parametrize("path", ["/", "/blog/hello", "/api/settings", "/signin", "/403"])
    @pytest.mark.parametrize("role", [None, Role.USER, Role.ADMIN])
    def test_public_paths_always_allowed(self, path, role):
        """Test paths outside /admin are allowed for every caller."""
        gate = AccessGate()
        session = make_session(role) if role else None

        assert gate.decide(path, session).outcome == GateOutcome.ALLOW

    @pytest.mark.parametrize("path", ["/admin", "/admin/", "/admin/posts", "/admin/settings"])
    def test_anonymous_redirected_to_signin(self, path):
        """Test anonymous callers are sent to sign-in with the path kept."""
        decision = AccessGate().decide(path, None)

        assert decision.outcome == GateOutcome.REDIRECT_SIGNIN
        assert decision.callback_url == path

        location = urlparse(decision.location)
        assert location.path == "/signin"
        assert parse_qs(location.query) == {"callbackUrl": [path]}

    def test_callback_url_is_encoded(self):
        """Test the callback path is URL-encoded in the redirect."""
        decision = AccessGate().decide("/admin/posts", None)

        assert decision.location == "/signin?callbackUrl=%2Fadmin%2Fposts"

    def test_non_admin_redirected_to_forbidden(self):
        """Test signed-in users without admin role get the forbidden page."""
        decision = AccessGate().decide("/admin/settings", make_session(Role.USER))

        assert decision.outcome == GateOutcome.REDIRECT_FORBIDDEN
        assert decision.location == "/403"
        assert decision.callback_url is None

    def test_admin_allowed(self):
        """Test admins pass through."""
        decision = AccessGate().decide("/admin/settings", make_session(Role.ADMIN))

        assert decision.allowed
        assert decision.location is None

    def test_prefix_matches_whole_segment(self):
        """Test /admin and its subpaths are protected but look-alike paths are not."""
        gate = AccessGate()

        assert gate.is_protected("/admin")
        assert gate.is_protected("/admin/")
        assert gate.is_protected("/admin/settings/seo")
        assert not gate.is_protected("/administrator")
        assert not gate.is_protected("/admin-tools")
        assert not gate.is_protected("/blog/admin")

    def test_lookalike_path_allowed_anonymously(self):
        """Test a path that only shares the /admin prefix text is public."""
        assert AccessGate().decide("/administrator", None).outcome == GateOutcome.ALLOW

    def test_authentication_checked_before_role(self):
        """Test a missing session redirects to sign-in, not forbidden."""
        decision = AccessGate().decide("/admin", None)

        assert decision.outcome == GateOutcome.REDIRECT_SIGNIN

    def test_unknown_role_is_forbidden(self):
        """Test a session with malformed role data gets no capability."""
        session = SimpleNamespace(is_authenticated=True, role="superuser", user_id="x")
        decision = AccessGate().decide("/admin", session)

        assert decision.outcome == GateOutcome.REDIRECT_FORBIDDEN

    def test_custom_paths(self):
        """Test the gate honours configured paths."""
        gate = AccessGate(protected_prefix="/dashboard", signin_path="/login", forbidden_path="/denied")

        assert gate.decide("/admin", None).allowed
        assert gate.decide("/dashboard", None).location == "/login?callbackUrl=%2Fdashboard"
        assert gate.decide("/dashboard", make_session(Role.USER)).location == "/denied"


class TestCapabilities:
    """Tests for role capabilities."""

    def test_admin_has_admin_area(self):
        """Test admins hold every capability."""
        session = make_session(Role.ADMIN)

        for capability in Capability:
            assert has_capability(session, capability) is True

    def test_user_capabilities(self):
        """Test regular users only hold public capabilities."""
        session = make_session(Role.USER)

        assert has_capability(session, Capability.VIEW_PUBLIC) is True
        assert has_capability(session, Capability.COMMENT) is True
        assert has_capability(session, Capability.ADMIN_AREA) is False
        assert has_capability(session, Capability.MANAGE_SETTINGS) is False

    def test_anonymous_has_nothing(self):
        """Test no session means no capability."""
        assert has_capability(None, Capability.VIEW_PUBLIC) is False

    def test_unhashable_role(self):
        """Test unhashable role data is treated as no capability."""
        session = SimpleNamespace(role=["admin"])

        assert has_capability(session, Capability.ADMIN_AREA) is False


class TestAccessMiddleware:
    """Tests for the gate applied to real requests."""

    def test_anonymous_admin_request_redirects(self, client):
        """Test anonymous admin requests redirect to sign-in."""
        response = client.get("/admin/settings", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/signin?callbackUrl=%2Fadmin%2Fsettings"

    def test_non_admin_redirects_to_forbidden(self, client):
        """Test regular users are redirected to /403."""
        sign_in_as(client, Role.USER)
        response = client.get("/admin/", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/403"

    def test_admin_reaches_dashboard(self, client):
        """Test admins see the dashboard."""
        sign_in_as(client, Role.ADMIN)
        response = client.get("/admin/", follow_redirects=False)

        assert response.status_code == 200
        assert "Dashboard" in response.text

    def test_expired_session_is_anonymous(self, client):
        """Test an unknown session token behaves like no session."""
        client.cookies.set("session_id", "not-a-real-session")
        response = client.get("/admin/", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"].startswith("/signin?")

    def test_malformed_session_file_is_anonymous(self, client, state):
        """Test a session file that is not a JSON object sends callers to sign-in."""
        state.config.sessions_file.write_text("[]", encoding="utf-8")
        client.cookies.set("session_id", "any-token")
        response = client.get("/admin/", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/signin?callbackUrl=%2Fadmin%2F"

    def test_public_paths_untouched(self, client):
        """Test public pages are served without a session."""
        assert client.get("/").status_code == 200
        assert client.get("/signin").status_code == 200

    def test_forbidden_page(self, client):
        """Test the forbidden page answers 403."""
        response = client.get("/403")

        assert response.status_code == 403
        assert "Forbidden" in response.text
