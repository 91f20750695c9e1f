"""Shared fixtures: an isolated SQLite database, local storage and the local auth provider."""

import os
import tempfile
import uuid
from pathlib import Path

import pytest

_TEST_DIR = Path(tempfile.mkdtemp(prefix="mygpa-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR / 'test.db'}"
os.environ["STORAGE_ROOT"] = str(_TEST_DIR / "storage")
os.environ["AUTH_PROVIDER"] = "local"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["SECRET_KEY"] = "test-secret-key"

from fastapi.testclient import TestClient  # noqa: E402

from mygpa.core.dependencies import get_auth_provider  # noqa: E402
from mygpa.core.providers import LocalAuthProvider  # noqa: E402
from mygpa.main import app  # noqa: E402


def unique_email() -> str:
    return f"student-{uuid.uuid4().hex[:10]}@example.com"


@pytest.fixture
def storage_root() -> Path:
    return Path(os.environ["STORAGE_ROOT"])


@pytest.fixture
def reset_links():
    """Password reset links the local provider would have e-mailed."""
    return []


@pytest.fixture
def client(reset_links):
    provider = LocalAuthProvider(
        min_password_length=6,
        deliver_reset_link=lambda email, link: reset_links.append((email, link)),
    )
    app.dependency_overrides[get_auth_provider] = lambda: provider
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Sign up a fresh user and return (auth headers, signup response body)."""

    def _register(name="Nimal Perera", email=None, password="secret123"):
        response = client.post(
            "/auth/signup",
            json={
                "name": name,
                "email": email or unique_email(),
                "password": password,
                "confirm_password": password,
            },
        )
        assert response.status_code == 200, response.text
        body = response.json()
        return {"Authorization": f"Bearer {body['access_token']}"}, body

    return _register


@pytest.fixture
def auth_headers(register):
    headers, _ = register()
    return headers
