"""
Pytest fixtures: seat registries, a fixed clock, tokens, and an HTTP client.

Registry tests run against both implementations: the in-memory registry and
the SQL registry on a throwaway SQLite file (aiosqlite), so the
compare-and-set statements are exercised against a real database engine.
"""

import os

# Settings are cached on first use; configure the test environment before
# anything from the application is imported.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["REDIS_ENABLED"] = "false"
os.environ["REGISTRY_BACKEND"] = "memory"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from seatkeeper.core.security import create_access_token
from seatkeeper.db.session import create_tables
from seatkeeper.main import app
from seatkeeper.models.seat import Room
from seatkeeper.services.interfaces.registry import SeatRegistry
from seatkeeper.services.memory_registry import InMemorySeatRegistry
from seatkeeper.services.reclaimer import ExpiryReclaimer
from seatkeeper.services.registry_factory import get_reclaimer, get_registry, reset_singletons
from seatkeeper.services.sql_registry import SqlSeatRegistry

T0 = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)

SMALL_POOL = {Room.WHITE: 6, Room.STAFF: 2}


class FakeClock:
    """Manually advanced clock for deterministic expiry tests."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def memory_registry() -> InMemorySeatRegistry:
    registry = InMemorySeatRegistry()
    await registry.bulk_reinitialize(SMALL_POOL)
    return registry


@pytest_asyncio.fixture(params=["memory", "sql"])
async def registry(request, tmp_path) -> AsyncGenerator[SeatRegistry, None]:
    """Both registry implementations, seeded with W01-W06 and S01-S02."""
    if request.param == "memory":
        registry = InMemorySeatRegistry()
        await registry.bulk_reinitialize(SMALL_POOL)
        yield registry
        return

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'seats.db'}")
    await create_tables(engine)
    registry = SqlSeatRegistry(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    await registry.bulk_reinitialize(SMALL_POOL)
    yield registry
    await engine.dispose()


@pytest.fixture
def headers_for():
    """Build bearer headers for a user id, as the auth service would issue them."""

    def _headers(user_id: str, role: str = "user") -> dict:
        token = create_access_token(data={"sub": user_id, "role": role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(headers_for) -> dict:
    return headers_for("admin-1", role="admin")


@pytest_asyncio.fixture
async def client(memory_registry: InMemorySeatRegistry) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the in-memory registry and a far-future reclaimer clock."""
    reclaimer = ExpiryReclaimer(memory_registry, clock=lambda: T0 + timedelta(days=365))

    app.dependency_overrides[get_registry] = lambda: memory_registry
    app.dependency_overrides[get_reclaimer] = lambda: reclaimer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    # /health builds the process singletons directly
    reset_singletons()
