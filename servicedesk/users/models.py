from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    """Roles recognised by the service desk."""

    REQUESTER = "REQUESTER"
    AGENT = "AGENT"
    ADMIN = "ADMIN"


@dataclass(slots=True)
class User:
    """Identity record for a requester, agent or admin."""

    id: str
    email: str
    name: str | None
    department: str | None
    role: UserRole
    created_at: datetime | None = None
