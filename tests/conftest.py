"""Shared test fixtures.

Tests run against the in-memory badge store; no database or Redis is needed.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

os.environ.setdefault("REHAB_STORE_BACKEND", "memory")
os.environ.setdefault("REHAB_LOG_FORMAT", "console")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from rehabmotion.config import get_settings  # noqa: E402
from rehabmotion.dependencies import get_badge_evaluator  # noqa: E402
from rehabmotion.gamification.badge_service import BadgeEvaluator  # noqa: E402
from rehabmotion.gamification.catalog import BadgeCatalog, get_catalog  # noqa: E402
from rehabmotion.gamification.schemas import UserBadgeRecord  # noqa: E402
from rehabmotion.gamification.store import InMemoryBadgeStore, PersistenceUnavailable  # noqa: E402
from rehabmotion.main import create_app  # noqa: E402

FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Controllable replacement for ``datetime.now``."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FlakyStore(InMemoryBadgeStore):
    """In-memory store whose reads or writes can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False
        self.writes = 0

    async def read(self, user_id: str) -> UserBadgeRecord | None:
        if self.fail_reads:
            raise PersistenceUnavailable("read failed")
        return await super().read(user_id)

    async def write(self, record: UserBadgeRecord) -> None:
        if self.fail_writes:
            raise PersistenceUnavailable("write failed")
        self.writes += 1
        await super().write(record)


@pytest.fixture
def catalog() -> BadgeCatalog:
    return get_catalog()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def evaluator(store: FlakyStore, catalog: BadgeCatalog, clock: FakeClock) -> BadgeEvaluator:
    return BadgeEvaluator(store, catalog, clock=clock)


@pytest_asyncio.fixture
async def client(evaluator: BadgeEvaluator) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client wired to the in-memory evaluator."""
    get_settings.cache_clear()
    app = create_app()
    app.dependency_overrides[get_badge_evaluator] = lambda: evaluator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
