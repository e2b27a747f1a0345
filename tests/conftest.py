import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app

SECRET = "test-secret-key"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        secret_key=SECRET,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def register(client):
    """Register a user and return request headers carrying its token."""

    def _register(email="a@x.com", password="pw1"):
        res = client.post("/api/auth/register", json={"email": email, "password": password})
        assert res.status_code == 200, res.text
        return {"x-auth-token": res.json()["token"]}

    return _register


@pytest.fixture
def auth(register):
    return register()
