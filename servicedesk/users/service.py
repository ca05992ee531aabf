from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable

from servicedesk.core.clock import Clock, utcnow
from servicedesk.core.errors import InvalidValueError, TicketValidationError

from .models import User, UserRole
from .repository import UserRepository

logger = logging.getLogger(__name__)

_ROLE_LITERALS = tuple(role.value for role in UserRole)


def parse_role(value: str | None) -> UserRole:
    """Parse a role literal case-insensitively."""

    literal = (value or "").strip().upper()
    try:
        return UserRole(literal)
    except ValueError:
        raise InvalidValueError("role", value, _ROLE_LITERALS) from None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(slots=True)
class UserService:
    """Directory lookups and profile maintenance for service desk users."""

    repository: UserRepository
    clock: Clock = utcnow
    id_factory: Callable[[], str] = field(default=lambda: str(uuid.uuid4()))

    async def get_by_email(self, email: str) -> User | None:
        return await self.repository.get_by_email(email)

    async def get_many(self, user_ids) -> dict[str, User]:
        return await self.repository.get_many(user_ids)

    async def search(self, query: str | None = None) -> list[User]:
        return await self.repository.search(query)

    async def ensure_requester(
        self,
        email: str,
        *,
        name: str | None = None,
        department: str | None = None,
    ) -> User:
        """Return the user for ``email``, creating a REQUESTER when unknown.

        A known user has ``name`` and ``department`` overwritten when provided.
        """

        name, department = _clean(name), _clean(department)
        async with self.repository.transaction() as session:
            existing = await self.repository.find_in_session(session, email)
            if existing is None:
                user = await self.repository.add(
                    session,
                    User(
                        id=self.id_factory(),
                        email=email,
                        name=name,
                        department=department,
                        role=UserRole.REQUESTER,
                        created_at=self.clock(),
                    ),
                )
                logger.info("Registered new requester %s", email)
                return user
            if name is None and department is None:
                return existing
            updated = await self.repository.update_profile(
                session, existing.id, name=name, department=department
            )
            return updated or existing

    async def upsert_role(
        self,
        email: str,
        role: str,
        *,
        name: str | None = None,
        department: str | None = None,
    ) -> User:
        email = (email or "").strip()
        if not email:
            raise TicketValidationError("email is required")
        parsed = parse_role(role)
        name, department = _clean(name), _clean(department)

        async with self.repository.transaction() as session:
            existing = await self.repository.find_in_session(session, email)
            if existing is None:
                user = await self.repository.add(
                    session,
                    User(
                        id=self.id_factory(),
                        email=email,
                        name=name,
                        department=department,
                        role=parsed,
                        created_at=self.clock(),
                    ),
                )
            else:
                user = await self.repository.update_profile(
                    session, existing.id, name=name, department=department, role=parsed
                ) or existing
        logger.info("Set role of %s to %s", email, parsed.value)
        return user
