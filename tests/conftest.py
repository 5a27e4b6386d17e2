import os
import sys
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

# Ensure root import
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from citizen_connect.core.container import build_container
from citizen_connect.core.settings import Settings
from citizen_connect.main import create_app
from citizen_connect.models.user import Role
from citizen_connect.services.reset_notifier import ResetNotifier
from citizen_connect.stores.memory import InMemoryCredentialStore, InMemoryRequestStore
from citizen_connect.utils.clock import utc_now

TEST_SECRET = "test-signing-secret-0123456789abcdef0123456789"
PASSWORD = "secret123"


class MutableClock:
    """Clock the tests can move forward. Starts at the real current time."""

    def __init__(self):
        self.now = utc_now()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier(ResetNotifier):

    def __init__(self):
        self.sent = []

    def send_reset_link(self, user, reset_url):
        self.sent.append((user.email, reset_url))

    @property
    def last_token(self):
        return self.sent[-1][1].rsplit("/", 1)[-1]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        JWT_SECRET=TEST_SECRET,
        USE_MOCK_DB=True,
        BCRYPT_ROUNDS=4,
        UPLOAD_DIR=str(tmp_path / "uploads"),
        FRONTEND_URL="http://frontend.test",
    )


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def credential_store():
    return InMemoryCredentialStore()


@pytest.fixture
def request_store():
    return InMemoryRequestStore()


@pytest.fixture
def container(settings, credential_store, request_store, notifier, clock):
    return build_container(
        settings,
        credential_store=credential_store,
        request_store=request_store,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def app(settings, credential_store, request_store, notifier, clock):
    return create_app(
        settings,
        credential_store=credential_store,
        request_store=request_store,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, name, email, password=PASSWORD):
    resp = client.post("/auth/register", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()


def login(client, email, password=PASSWORD):
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


@pytest.fixture
def citizen_token(client):
    return register(client, "Alice", "alice@example.com")["token"]


@pytest.fixture
def admin_token(client, credential_store):
    """Registers a user, promotes it, and logs in again so the token carries the admin role."""
    body = register(client, "Admin", "admin@example.com")
    credential_store.set_role(body["user"]["id"], Role.ADMIN)
    return login(client, "admin@example.com")
