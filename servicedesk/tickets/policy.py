"""Role capabilities for ticket field mutations."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from servicedesk.core.errors import ForbiddenChangeError
from servicedesk.users.models import UserRole


class MutableField(str, Enum):
    STATUS = "status"
    ASSIGNED_TEAM = "assigned_team"
    PRIORITY = "priority"
    COMMENT = "comment"


_ALL_ROLES = frozenset(UserRole)
_STAFF_ROLES = frozenset({UserRole.AGENT, UserRole.ADMIN})

FIELD_CAPABILITIES: Mapping[MutableField, frozenset[UserRole]] = MappingProxyType(
    {
        MutableField.STATUS: _ALL_ROLES,
        MutableField.ASSIGNED_TEAM: _STAFF_ROLES,
        MutableField.PRIORITY: _STAFF_ROLES,
        MutableField.COMMENT: _ALL_ROLES,
    }
)


def can_mutate(role: UserRole, field: MutableField) -> bool:
    return role in FIELD_CAPABILITIES.get(field, frozenset())


def ensure_can_mutate(role: UserRole, field: MutableField) -> None:
    if not can_mutate(role, field):
        raise ForbiddenChangeError(role.value, field.value)
