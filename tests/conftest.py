from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from auth import AuthGateway, make_password_context
from config import Settings
from database import TaskStore, UserStore
from main import create_app


class FakeClock:
    """Settable clock for token expiry tests."""

    def __init__(self, now=None):
        self.now = now or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture()
def settings():
    return Settings(
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        seed_demo_data=False,
        enable_debug_routes=True,
    )


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def users():
    return UserStore()


@pytest.fixture()
def gateway(users, clock):
    return AuthGateway(users, secret="test-secret", pwd_context=make_password_context(4), clock=clock)


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def register(client):
    """Register a user through the API and return (user, auth headers)."""

    def _register(username, email=None, password="pw1"):
        resp = client.post(
            "/api/auth/register",
            json={"username": username, "email": email or f"{username}@x.com", "password": password},
        )
        assert resp.status_code == 201, resp.json()
        data = resp.json()["data"]
        return data["user"], {"Authorization": f"Bearer {data['token']}"}

    return _register
