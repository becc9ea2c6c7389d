"""
Shared fixtures for the Luminarias HTTP integration tests.

Each test gets a fresh LedgerServer on in-memory SQLite, driven through
FastAPI's TestClient (the app lifespan opens and closes storage).
"""

import pytest
from fastapi.testclient import TestClient

from luminarias.config import LedgerConfig
from luminarias.server import LedgerServer

ADMIN_KEY = "integration-admin-key"
ADMIN = {"X-API-Key": ADMIN_KEY}


def auth_headers(user: dict) -> dict:
    return {"X-API-Key": user["api_key"]}


@pytest.fixture
def server():
    config = LedgerConfig(admin_key=ADMIN_KEY, jwt_secret="integration-jwt-secret")
    return LedgerServer(db_path=":memory:", config=config)


@pytest.fixture
def client(server):
    with TestClient(server.app) as c:
        yield c


@pytest.fixture
def register(client):
    def _register(nickname: str, role: str = "user") -> dict:
        r = client.post("/api/auth/register", json={"nickname": nickname, "role": role})
        assert r.status_code == 200, r.text
        return r.json()

    return _register


@pytest.fixture
def treasury_client():
    config = LedgerConfig(
        admin_key=ADMIN_KEY,
        jwt_secret="integration-jwt-secret",
        record_platform_commission=True,
    )
    server = LedgerServer(db_path=":memory:", config=config)
    with TestClient(server.app) as c:
        yield c
