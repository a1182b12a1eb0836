import asyncio
import os
import tempfile

import pytest

# Configuration is read at import time, so it has to be in place first.
_DB_PATH = os.path.join(tempfile.mkdtemp(prefix="mangabook-tests-"), "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from mangabook.database import Base, engine  # noqa: E402
from mangabook.main import app  # noqa: E402


async def _reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def client():
    asyncio.run(_reset_schema())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register_user(client):
    def _register(username="alice", email="alice@example.com", password="secret123", security_word="pineapple"):
        return client.post(
            "/auth/register",
            json={"username": username, "email": email, "password": password, "securityWord": security_word},
        )
    return _register


@pytest.fixture
def auth_headers(register_user):
    res = register_user()
    assert res.status_code == 201, res.text
    return {"x-auth-token": res.json()["token"]}
