from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from servicedesk.db import create_session_factory, ensure_schema
from servicedesk.tickets.repository import TicketRepository
from servicedesk.users.repository import UserRepository

# Wednesday.
FIXED_NOW = datetime(2026, 3, 4, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that tests can move forward explicitly."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def sequential_ids(prefix: str):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await ensure_schema(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def ticket_repository(session_factory) -> TicketRepository:
    return TicketRepository(session_factory)


@pytest.fixture
def user_repository(session_factory) -> UserRepository:
    return UserRepository(session_factory)
