from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from servicedesk.core.errors import DependencyFailureError

# asyncpg surfaces refused connections as plain OSError subclasses.
STORE_ERRORS: tuple[type[BaseException], ...] = (SQLAlchemyError, OSError)


class SessionRepository:
    """Base class for repositories backed by an async session factory."""

    store_name = "store"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session whose writes commit together or not at all."""

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except STORE_ERRORS as exc:
            raise DependencyFailureError(f"{self.store_name} unavailable: {exc}") from exc

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a read-only session."""

        try:
            async with self._session_factory() as session:
                yield session
        except STORE_ERRORS as exc:
            raise DependencyFailureError(f"{self.store_name} unavailable: {exc}") from exc
