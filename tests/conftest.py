"""Shared fixtures: temporary stores and an application client."""

import pytest
from fastapi.testclient import TestClient

from blogdesk.core.auth import AuthManager
from blogdesk.core.config import AppConfig
from blogdesk.core.models import Role
from blogdesk.core.settings import SettingsService
from blogdesk.core.settings_store import SettingsStore
from blogdesk.core.storage import Storage
from blogdesk.main import create_app

CRON_SECRET = "test-cron-secret"
ADMIN_EMAIL = "admin@example.com"
USER_EMAIL = "reader@example.com"
PASSWORD = "correct horse battery"


@pytest.fixture
def storage(tmp_path):
    """An initialized, empty JSON database."""
    storage = Storage(tmp_path / "db.json")
    storage.initialize()
    return storage


@pytest.fixture
def settings_store(storage):
    return SettingsStore(storage)


@pytest.fixture
def settings_service(settings_store):
    return SettingsService(settings_store)


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(base_dir=tmp_path, bcrypt_rounds=4, cron_secret=CRON_SECRET)


@pytest.fixture
def client(app_config):
    """Client for a fresh app with one admin and one regular user."""
    app = create_app(app_config)
    with TestClient(app) as client:
        state = app.state.cms
        auth = AuthManager(bcrypt_rounds=4)
        state.users.create(ADMIN_EMAIL, auth.hash_password(PASSWORD), Role.ADMIN)
        state.users.create(USER_EMAIL, auth.hash_password(PASSWORD), Role.USER)
        yield client


@pytest.fixture
def state(client):
    return client.app.state.cms


def sign_in_as(client, role: Role):
    """Create a session for a stored user and attach its cookie.

    Returns:
        The created session.
    """
    state = client.app.state.cms
    email = ADMIN_EMAIL if role == Role.ADMIN else USER_EMAIL
    user = state.users.get_by_email(email)
    session = state.auth.create_session(
        user_id=user.id,
        role=user.role,
        ip="127.0.0.1",
        user_agent="pytest",
    )
    client.cookies.set("session_id", session.session_id)
    return session
