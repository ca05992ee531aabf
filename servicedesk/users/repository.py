from __future__ import annotations

from typing import Iterable

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from servicedesk.core.clock import ensure_utc
from servicedesk.db.models import UserTable
from servicedesk.db.repository import SessionRepository

from .models import User, UserRole

SEARCH_LIMIT = 50


class UserRepository(SessionRepository):
    """Persistence helper wrapping the `users` table."""

    store_name = "User store"

    async def get_by_email(self, email: str) -> User | None:
        async with self.session() as session:
            return await self.find_in_session(session, email)

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, User]:
        ids = {user_id for user_id in user_ids if user_id}
        if not ids:
            return {}
        async with self.session() as session:
            result = await session.execute(select(UserTable).where(UserTable.id.in_(ids)))
            return {row.id: self._table_to_user(row) for row in result.scalars().all()}

    async def search(self, query: str | None = None, *, limit: int = SEARCH_LIMIT) -> list[User]:
        statement = select(UserTable)
        term = (query or "").strip().lower()
        if term:
            pattern = f"%{term}%"
            statement = statement.where(
                or_(
                    func.lower(UserTable.email).like(pattern),
                    func.lower(func.coalesce(UserTable.name, "")).like(pattern),
                )
            )
        statement = statement.order_by(UserTable.created_at.desc()).limit(limit)
        async with self.session() as session:
            result = await session.execute(statement)
            return [self._table_to_user(row) for row in result.scalars().all()]

    async def add(self, session: AsyncSession, user: User) -> User:
        row = UserTable(
            id=user.id,
            email=user.email,
            name=user.name,
            department=user.department,
            role=user.role.value,
        )
        if user.created_at is not None:
            row.created_at = user.created_at
        session.add(row)
        await session.flush()
        return self._table_to_user(row)

    async def update_profile(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        name: str | None = None,
        department: str | None = None,
        role: UserRole | None = None,
    ) -> User | None:
        """Overwrite the provided profile fields; ``None`` leaves a field untouched."""

        row = await session.get(UserTable, user_id)
        if row is None:
            return None
        if name is not None:
            row.name = name
        if department is not None:
            row.department = department
        if role is not None:
            row.role = role.value
        await session.flush()
        return self._table_to_user(row)

    async def find_in_session(self, session: AsyncSession, email: str) -> User | None:
        result = await session.execute(select(UserTable).where(UserTable.email == email))
        row = result.scalars().first()
        return self._table_to_user(row) if row is not None else None

    @staticmethod
    def _table_to_user(row: UserTable) -> User:
        return User(
            id=row.id,
            email=row.email,
            name=row.name,
            department=row.department,
            role=UserRole(row.role),
            created_at=ensure_utc(row.created_at) if row.created_at is not None else None,
        )
