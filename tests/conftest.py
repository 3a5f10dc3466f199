"""Pytest configuration and fixtures

Provides:
- backend: in-memory key-value cache that can be switched to fail
- session_factory: in-memory SQLite database with the tasks table
- client: HTTP client for the API, wired to both of the above
"""

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from app.cache.backend import get_cache_backend
from app.core.errors import BackendUnavailableError
from app.database import get_db
from app.main import app


class FakeCache:
    """Dict-backed stand-in for RedisCache. Add "GET"/"SET"/"INCR" to failing to break it."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def _call(self, operation: str, key: str):
        self.calls.append((operation, key))
        if operation in self.failing:
            raise BackendUnavailableError(operation, key, ConnectionError("cache down"))

    async def get(self, key):
        self._call("GET", key)
        return self.data.get(key)

    async def set(self, key, value, ttl):
        self._call("SET", key)
        self.data[key] = value
        self.ttls[key] = ttl

    async def incr(self, key, seed=0):
        self._call("INCR", key)
        value = int(self.data.get(key, seed)) + 1
        self.data[key] = str(value)
        return value

    async def ping(self):
        return not self.failing

    def get_stats(self):
        return {"hits": 0, "misses": 0, "errors": 0, "hit_rate": 0}


@pytest.fixture
def backend():
    return FakeCache()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def client(backend, session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_backend] = lambda: backend
    app.state.cache_backend = backend

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    app.dependency_overrides.clear()
