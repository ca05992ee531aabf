"""Append-only audit trail for ticket mutations."""

from __future__ import annotations

import logging
import uuid
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Protocol, Sequence

from servicedesk.core.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    TICKET_CREATED = "TICKET_CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    TEAM_CHANGED = "TEAM_CHANGED"
    PRIORITY_CHANGED = "PRIORITY_CHANGED"
    SLA_UPDATED = "SLA_UPDATED"
    COMMENT_ADDED = "COMMENT_ADDED"


@dataclass(slots=True, frozen=True)
class AuditEntry:
    """History entry describing one observed change to a ticket."""

    id: str
    ticket_id: str
    actor_user_id: str | None
    action: AuditAction | str | None
    field_name: str | None
    old_value: str | None
    new_value: str | None
    created_at: datetime


class AuditStore(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[Any]:
        ...

    async def add_audit_entries(self, session: Any, entries: Sequence[AuditEntry]) -> None:
        ...


_CHANGE_TEMPLATES: dict[str, str] = {
    AuditAction.STATUS_CHANGED.value: "Status changed: {old} → {new}",
    AuditAction.TEAM_CHANGED.value: "Team changed: {old} → {new}",
    AuditAction.PRIORITY_CHANGED.value: "Priority changed: {old} → {new}",
    AuditAction.SLA_UPDATED.value: "SLA updated: {old} → {new}",
}

_FIXED_MESSAGES: dict[str, str] = {
    AuditAction.TICKET_CREATED.value: "Ticket created",
    AuditAction.COMMENT_ADDED.value: "Comment added",
}


def format_message(entry: AuditEntry) -> str:
    """Render a one-line, human readable description of an audit entry."""

    action = entry.action.value if isinstance(entry.action, AuditAction) else entry.action
    if action in _FIXED_MESSAGES:
        return _FIXED_MESSAGES[action]
    if action in _CHANGE_TEMPLATES:
        return _CHANGE_TEMPLATES[action].format(old=entry.old_value, new=entry.new_value)
    if entry.field_name:
        return f"{action}: {entry.field_name}"
    return action or "Activity"


class AuditRecorder:
    """Build immutable audit entries and append them to the store."""

    def __init__(
        self,
        store: AuditStore,
        *,
        clock: Clock = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._store = store
        self._clock = clock
        self._id_factory = id_factory

    def build(
        self,
        ticket_id: str,
        actor_id: str | None,
        action: AuditAction,
        field_name: str | None = None,
        old_value: str | None = None,
        new_value: str | None = None,
        *,
        created_at: datetime | None = None,
    ) -> AuditEntry:
        return AuditEntry(
            id=self._id_factory(),
            ticket_id=ticket_id,
            actor_user_id=actor_id,
            action=action,
            field_name=field_name,
            old_value=old_value,
            new_value=new_value,
            created_at=created_at or self._clock(),
        )

    async def record(
        self,
        ticket_id: str,
        actor_id: str | None,
        action: AuditAction,
        field_name: str | None = None,
        old_value: str | None = None,
        new_value: str | None = None,
        *,
        session: Any = None,
        created_at: datetime | None = None,
    ) -> AuditEntry:
        entry = self.build(
            ticket_id, actor_id, action, field_name, old_value, new_value, created_at=created_at
        )
        await self.record_batch([entry], session=session)
        return entry

    async def record_batch(self, entries: Sequence[AuditEntry], *, session: Any = None) -> None:
        """Persist ``entries`` together.

        With ``session`` the rows join the caller's open transaction, otherwise a
        dedicated transaction is used. Store errors propagate to the caller.
        """

        if not entries:
            return
        if session is not None:
            await self._store.add_audit_entries(session, entries)
        else:
            async with self._store.transaction() as own_session:
                await self._store.add_audit_entries(own_session, entries)
        logger.debug("Recorded %d audit entries for ticket %s", len(entries), entries[0].ticket_id)
