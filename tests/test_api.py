"""Tests for the HTTP endpoints."""

from datetime import timedelta

from blogdesk.core.models import PostStatus, Role, Setting, SettingVisibility, utc_now

from conftest import ADMIN_EMAIL, CRON_SECRET, PASSWORD, sign_in_as


class TestPublicSettingsAPI:
    """Tests for GET /api/settings."""

    def test_first_read_seeds_defaults(self, client, state):
        """Test reading an empty store returns seeded, filtered defaults."""
        response = client.get("/api/settings")

        assert response.status_code == 200
        body = response.json()
        assert body["site_name"] == "403 AI - Forbidden AI"
        assert "seo_keywords" not in body
        assert state.settings.get_setting("seo_keywords") is not None

    def test_cache_headers(self, client):
        """Test public settings are cacheable."""
        response = client.get("/api/settings")

        assert response.headers["cache-control"] == "public, s-maxage=300, stale-while-revalidate=600"

    def test_sensitive_keys_hidden_from_admins_too(self, client, state):
        """Test filtering applies whoever is asking."""
        state.settings.store.upsert([
            Setting(key="site_name", value="Blog"),
            Setting(key="smtp_secret", value="hunter2"),
            Setting(key="admin_email", value="a@example.com", visibility=SettingVisibility.PRIVATE),
        ])
        sign_in_as(client, Role.ADMIN)

        assert client.get("/api/settings").json() == {"site_name": "Blog"}

    def test_category(self, client, state):
        """Test the category view is filtered and unknown categories are empty."""
        state.settings.initialize_defaults()

        seo = client.get("/api/settings", params={"category": "seo"}).json()
        assert "seo_meta_title" in seo
        assert "seo_keywords" not in seo
        assert client.get("/api/settings", params={"category": "nonexistent"}).json() == {}

    def test_store_failure(self, client, state):
        """Test an unreadable store gives a generic 500."""
        state.storage.db_path.write_text("{broken", encoding="utf-8")
        response = client.get("/api/settings")

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch settings"


class TestAdminSettingsAPI:
    """Tests for /api/admin/settings."""

    def test_requires_session(self, client):
        """Test anonymous callers get 401."""
        response = client.get("/api/admin/settings")

        assert response.status_code == 401
        assert response.json()["error"] == "Authentication required"

    def test_requires_admin(self, client):
        """Test regular users get 403."""
        sign_in_as(client, Role.USER)
        response = client.get("/api/admin/settings")

        assert response.status_code == 403
        assert response.json()["error"] == "Admin access required"

    def test_list_unfiltered(self, client, state):
        """Test admins see every stored setting."""
        state.settings.initialize_defaults()
        sign_in_as(client, Role.ADMIN)

        body = client.get("/api/admin/settings").json()
        assert "seo_keywords" in body

        social = client.get("/api/admin/settings", params={"category": "social"}).json()
        assert set(social) == {
            "social_twitter",
            "social_linkedin",
            "social_github",
            "social_facebook",
            "social_instagram",
        }

    def test_get_category(self, client, state):
        """Test the per-category endpoint."""
        state.settings.initialize_defaults()
        sign_in_as(client, Role.ADMIN)

        assert "seo_keywords" in client.get("/api/admin/settings/seo").json()
        assert client.get("/api/admin/settings/nonexistent").json() == {}

    def test_update(self, client, state):
        """Test valid updates are stored and audited."""
        state.settings.initialize_defaults()
        session = sign_in_as(client, Role.ADMIN)

        response = client.put(
            "/api/admin/settings",
            json={"site_name": "New Blog", "social_github": "github.com/me"},
            headers={"X-CSRF-Token": session.csrf_token},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert state.settings.get_setting("site_name") == "New Blog"
        assert state.settings.get_setting("social_github") == "https://github.com/me"
        assert state.audit_logger.read_recent(1)[0]["event"] == "settings_update"

    def test_update_validation_error(self, client, state):
        """Test invalid values answer 400 with per-key details."""
        state.settings.initialize_defaults()
        session = sign_in_as(client, Role.ADMIN)

        response = client.put(
            "/api/admin/settings",
            json={"site_name": "", "social_twitter": "ftp://example.com"},
            headers={"X-CSRF-Token": session.csrf_token},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert body["details"] == {
            "site_name": "This field is required",
            "social_twitter": "Only HTTP and HTTPS URLs are allowed",
        }

    def test_update_non_string_values(self, client):
        """Test non-string values are rejected."""
        session = sign_in_as(client, Role.ADMIN)

        response = client.put(
            "/api/admin/settings",
            json={"site_name": 5, "nested": {"a": 1}},
            headers={"X-CSRF-Token": session.csrf_token},
        )

        assert response.status_code == 400

    def test_update_requires_csrf(self, client, state):
        """Test writes without the CSRF header are refused."""
        state.settings.initialize_defaults()
        sign_in_as(client, Role.ADMIN)

        response = client.put("/api/admin/settings", json={"site_name": "Nope"})

        assert response.status_code == 403
        assert state.settings.get_setting("site_name") != "Nope"

    def test_seed_defaults(self, client, state):
        """Test the seed endpoint is idempotent."""
        session = sign_in_as(client, Role.ADMIN)
        headers = {"X-CSRF-Token": session.csrf_token}

        first = client.post("/api/admin/settings", headers=headers).json()
        second = client.post("/api/admin/settings", headers=headers).json()

        assert first["inserted"] == 12
        assert second["inserted"] == 0

    def test_delete(self, client, state):
        """Test deleting existing and missing settings."""
        state.settings.initialize_defaults()
        session = sign_in_as(client, Role.ADMIN)
        headers = {"X-CSRF-Token": session.csrf_token}

        assert client.delete("/api/admin/settings/site_logo", headers=headers).status_code == 200
        assert state.settings.get_setting("site_logo") is None
        assert client.delete("/api/admin/settings/site_logo", headers=headers).status_code == 404

    def test_mark_private(self, client, state):
        """Test a setting marked private disappears from the public endpoint."""
        state.settings.initialize_defaults()
        session = sign_in_as(client, Role.ADMIN)

        response = client.put(
            "/api/admin/settings/site_tagline/visibility",
            json={"visibility": "private"},
            headers={"X-CSRF-Token": session.csrf_token},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "key": "site_tagline", "visibility": "private"}
        assert "site_tagline" not in client.get("/api/settings").json()
        assert "site_tagline" in client.get("/api/admin/settings").json()
        assert state.audit_logger.read_recent(1)[0]["event"] == "settings_visibility"

    def test_mark_private_errors(self, client, state):
        """Test bad visibility values, unknown keys and missing CSRF."""
        state.settings.initialize_defaults()
        session = sign_in_as(client, Role.ADMIN)
        headers = {"X-CSRF-Token": session.csrf_token}

        bad = client.put(
            "/api/admin/settings/site_tagline/visibility",
            json={"visibility": "hidden"},
            headers=headers,
        )
        missing = client.put(
            "/api/admin/settings/nope/visibility",
            json={"visibility": "private"},
            headers=headers,
        )
        no_csrf = client.put(
            "/api/admin/settings/site_tagline/visibility",
            json={"visibility": "private"},
        )

        assert bad.status_code == 400
        assert missing.status_code == 404
        assert no_csrf.status_code == 403
        assert "site_tagline" in client.get("/api/settings").json()


class TestSignIn:
    """Tests for the sign-in flow."""

    def _csrf(self, client, callback="/admin/settings"):
        client.get("/signin", params={"callbackUrl": callback})
        return client.cookies.get("csrf_token")

    def test_sign_in_returns_to_callback(self, client):
        """Test a successful sign-in redirects to the original admin path."""
        token = self._csrf(client)
        response = client.post(
            "/signin",
            data={
                "email": ADMIN_EMAIL,
                "password": PASSWORD,
                "csrf_token": token,
                "callbackUrl": "/admin/settings",
            },
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/admin/settings"
        assert client.get("/admin/settings").status_code == 200

    def test_wrong_password(self, client, state):
        """Test bad credentials answer 401 and are audited."""
        token = self._csrf(client)
        response = client.post(
            "/signin",
            data={"email": ADMIN_EMAIL, "password": "wrong", "csrf_token": token},
            follow_redirects=False,
        )

        assert response.status_code == 401
        assert "Invalid email or password" in response.text
        assert state.audit_logger.read_recent(1)[0]["event"] == "login_failed"

    def test_unknown_user_same_answer(self, client):
        """Test unknown emails get the same answer as wrong passwords."""
        token = self._csrf(client)
        response = client.post(
            "/signin",
            data={"email": "nobody@example.com", "password": "x", "csrf_token": token},
            follow_redirects=False,
        )

        assert response.status_code == 401
        assert "Invalid email or password" in response.text

    def test_offsite_callback_ignored(self, client):
        """Test callbacks to other sites fall back to the home page."""
        token = self._csrf(client)
        response = client.post(
            "/signin",
            data={
                "email": ADMIN_EMAIL,
                "password": PASSWORD,
                "csrf_token": token,
                "callbackUrl": "//evil.example.com/",
            },
            follow_redirects=False,
        )

        assert response.headers["location"] == "/"

    def test_missing_csrf(self, client):
        """Test sign-in without the CSRF cookie is refused."""
        response = client.post(
            "/signin",
            data={"email": ADMIN_EMAIL, "password": PASSWORD, "csrf_token": "x"},
            follow_redirects=False,
        )

        assert response.status_code == 403

    def test_rate_limited(self, client):
        """Test repeated failures lock the client out."""
        token = self._csrf(client)
        data = {"email": ADMIN_EMAIL, "password": "wrong", "csrf_token": token}
        for _ in range(5):
            client.post("/signin", data=data, follow_redirects=False)

        data["password"] = PASSWORD
        response = client.post("/signin", data=data, follow_redirects=False)

        assert response.status_code == 429

    def test_sign_out(self, client, state):
        """Test signing out ends the session."""
        session = sign_in_as(client, Role.ADMIN)
        response = client.get("/signout", follow_redirects=False)

        assert response.status_code == 303
        assert state.auth.verify_session(session.session_id) is None


class TestCronAPI:
    """Tests for /api/cron endpoints."""

    AUTH = {"Authorization": f"Bearer {CRON_SECRET}"}

    def test_rejects_missing_secret(self, client):
        """Test calls without the bearer token are refused."""
        for path in ("publish-scheduled", "cleanup-tokens", "daily-maintenance"):
            response = client.get(f"/api/cron/{path}")

            assert response.status_code == 401
            assert response.json()["error"] == "Unauthorized"

    def test_rejects_wrong_secret(self, client, state):
        """Test a wrong token changes nothing."""
        post = state.posts.create("Due", "due", PostStatus.SCHEDULED, utc_now() - timedelta(minutes=1))
        response = client.get(
            "/api/cron/publish-scheduled",
            headers={"Authorization": "Bearer wrong"},
        )

        assert response.status_code == 401
        assert state.posts.get(post.id).status == PostStatus.SCHEDULED

    def test_unset_secret_rejects_everything(self, client, state):
        """Test an unconfigured secret disables the endpoints."""
        state.config.cron_secret = None

        response = client.get("/api/cron/cleanup-tokens", headers={"Authorization": "Bearer None"})
        assert response.status_code == 401

        response = client.get("/api/cron/cleanup-tokens", headers={"Authorization": "Bearer "})
        assert response.status_code == 401

    def test_publish_scheduled(self, client, state):
        """Test due posts are published and listed."""
        post = state.posts.create("Due", "due", PostStatus.SCHEDULED, utc_now() - timedelta(minutes=1))
        state.posts.create("Later", "later", PostStatus.SCHEDULED, utc_now() + timedelta(days=1))

        body = client.get("/api/cron/publish-scheduled", headers=self.AUTH).json()

        assert body["success"] is True
        assert body["published"] == [{"id": post.id, "title": "Due", "slug": "due"}]

    def test_cleanup_tokens(self, client, state):
        """Test expired reset tokens are counted."""
        state.password_resets.issue_token("u1")

        body = client.get("/api/cron/cleanup-tokens", headers=self.AUTH).json()

        assert body["success"] is True
        assert body["deletedCount"] == 0

    def test_daily_maintenance(self, client, state):
        """Test all maintenance steps run and report."""
        state.posts.create("Due", "due", PostStatus.SCHEDULED, utc_now() - timedelta(minutes=1))

        body = client.get("/api/cron/daily-maintenance", headers=self.AUTH).json()

        assert body["success"] is True
        assert body["results"]["publishedPosts"] == 1
        assert body["results"]["errors"] == []

    def test_daily_maintenance_collects_failures(self, client, state):
        """Test a broken database is reported per step."""
        state.storage.db_path.write_text("{broken", encoding="utf-8")

        body = client.get("/api/cron/daily-maintenance", headers=self.AUTH).json()

        assert body["success"] is False
        assert body["results"]["errors"] == [
            "Failed to publish scheduled posts",
            "Failed to cleanup expired tokens",
        ]


class TestHomePage:
    """Tests for the public home page."""

    def test_shows_site_name(self, client, state):
        """Test the home page shows stored settings over defaults."""
        state.settings.store.upsert([Setting(key="site_name", value="<My Blog>")])
        response = client.get("/")

        assert response.status_code == 200
        assert "&lt;My Blog&gt;" in response.text
        assert "Exploring Forbidden Knowledge" in response.text
