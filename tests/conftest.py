"""Shared pytest fixtures.

The settings object and the database engine are built at import time, so the
environment is configured before anything from ``app`` is imported.
"""
import os
import tempfile
from pathlib import Path

_db_dir = tempfile.mkdtemp(prefix="etude-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_db_dir) / 'etude.sqlite'}"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["DEBUG"] = "true"

import fnmatch  # noqa: E402
from typing import Any, AsyncIterator, Dict, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

import app.models  # noqa: E402,F401
from app.core import redis_client as redis_module  # noqa: E402
from app.core.database import AsyncSessionLocal, Base, engine  # noqa: E402
from app.services import users as user_service  # noqa: E402
from main import app as fastapi_app  # noqa: E402

PASSWORD = "correct-horse"


class FakePipeline:
    """Queues commands and runs them in order on execute"""

    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.commands = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.commands.append((getattr(self.redis, name), args, kwargs))
            return self
        return queue

    async def execute(self):
        results = [await command(*args, **kwargs) for command, args, kwargs in self.commands]
        self.commands = []
        return results


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the app uses"""

    def __init__(self):
        self.values: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}
        self.published = []

    async def ping(self):
        return True

    async def aclose(self):
        return None

    async def get(self, name):
        return self.values.get(name)

    async def set(self, name, value):
        self.values[name] = value
        return True

    async def setex(self, name, time, value):
        self.values[name] = value
        self.ttls[name] = time
        return True

    async def delete(self, *names):
        removed = 0
        for name in names:
            if self.values.pop(name, None) is not None:
                removed += 1
            self.ttls.pop(name, None)
        return removed

    async def hget(self, name, key):
        return self.values.get(name, {}).get(key)

    async def hset(self, name, key, value):
        self.values.setdefault(name, {})[key] = value
        return 1

    async def expire(self, name, time, nx=False):
        if name not in self.values:
            return False
        if nx and name in self.ttls:
            return False
        self.ttls[name] = time
        return True

    async def incr(self, name):
        self.values[name] = int(self.values.get(name, 0)) + 1
        return self.values[name]

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    def keys_matching(self, pattern):
        return [key for key in self.values if fnmatch.fnmatch(key, pattern)]


class BrokenRedis:
    """Every command fails as if the server were unreachable"""

    def pipeline(self, transaction=True):
        raise ConnectionError("redis unavailable")

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise ConnectionError("redis unavailable")
        return fail


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch) -> FakeRedis:
    fake = FakeRedis()
    monkeypatch.setattr(redis_module, "redis_client", fake)
    return fake


@pytest_asyncio.fixture(autouse=True)
async def _schema() -> AsyncIterator[None]:
    """Give every test an empty database"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture()
async def db():
    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture()
async def async_client() -> AsyncIterator[AsyncClient]:
    """HTTPX client bound to the app; the lifespan does not run"""
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture()
def create_user(db):
    """Create a user directly through the identity service"""
    async def _create(email: str, name: Optional[str] = None):
        return await user_service.create_user(db, email, PASSWORD, name)
    return _create


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> Dict[str, str]:
    response = await client.post(
        "/api/v1/auth/login",
        data={"username": email, "password": password},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def signup(async_client):
    """Register through the API and return the user payload plus auth headers"""
    async def _signup(email: str, name: Optional[str] = None) -> Dict[str, Any]:
        payload = {"email": email, "password": PASSWORD}
        if name is not None:
            payload["name"] = name
        response = await async_client.post("/api/v1/auth/register", json=payload)
        assert response.status_code == 201, response.text
        user = response.json()
        user["headers"] = await login(async_client, email)
        return user
    return _signup
