"""Evaluation of ticket update requests against the lifecycle rules."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Mapping

from servicedesk.core.clock import Clock, isoformat_z, utcnow
from servicedesk.core.errors import InvalidValueError
from servicedesk.users.models import User

from .audit import AuditAction, AuditEntry, AuditRecorder
from .models import Comment, Ticket, TicketUpdateRequest
from .policy import MutableField, ensure_can_mutate
from .sla import due_instant
from .state import SLAStatus, TicketPriority, TicketStateMachine

_PRIORITY_LITERALS = tuple(priority.value for priority in TicketPriority)


@dataclass(slots=True, frozen=True)
class UpdateOutcome:
    """Result of applying an update request to a ticket snapshot."""

    ticket: Ticket
    comment: Comment | None
    audit_entries: tuple[AuditEntry, ...]
    changes: Mapping[str, object] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.audit_entries)


class TicketLifecycle:
    """Validate and apply status, team, priority and comment changes.

    The evaluation is pure: it returns the updated ticket snapshot together with
    the comment and audit entries to persist, and raises before producing
    anything if any requested field change is not allowed.
    """

    def __init__(
        self,
        recorder: AuditRecorder,
        *,
        state_machine: TicketStateMachine | None = None,
        clock: Clock = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._recorder = recorder
        self._state_machine = state_machine or TicketStateMachine()
        self._clock = clock
        self._id_factory = id_factory

    def apply_update(
        self,
        ticket: Ticket,
        actor: User,
        request: TicketUpdateRequest,
        *,
        now: datetime | None = None,
    ) -> UpdateOutcome:
        now = now or self._clock()
        changes: dict[str, object] = {}
        entries: list[AuditEntry] = []

        def audit(action: AuditAction, field_name: str | None = None, old: str | None = None, new: str | None = None) -> None:
            entries.append(
                self._recorder.build(ticket.id, actor.id, action, field_name, old, new, created_at=now)
            )

        if request.status and request.status != ticket.status.value:
            ensure_can_mutate(actor.role, MutableField.STATUS)
            target = self._state_machine.assert_transition(ticket.status, request.status)
            changes["status"] = target
            audit(AuditAction.STATUS_CHANGED, "status", ticket.status.value, target.value)

        if request.assigned_team and request.assigned_team != ticket.assigned_team:
            ensure_can_mutate(actor.role, MutableField.ASSIGNED_TEAM)
            changes["assigned_team"] = request.assigned_team
            audit(AuditAction.TEAM_CHANGED, "assigned_team", ticket.assigned_team, request.assigned_team)

        if request.priority and request.priority != ticket.priority.value:
            ensure_can_mutate(actor.role, MutableField.PRIORITY)
            try:
                priority = TicketPriority(request.priority)
            except ValueError:
                raise InvalidValueError("priority", request.priority, _PRIORITY_LITERALS) from None
            new_due = due_instant(now, priority)
            changes.update(priority=priority, sla_due_at=new_due, sla_status=SLAStatus.ON_TRACK)
            audit(AuditAction.PRIORITY_CHANGED, "priority", ticket.priority.value, priority.value)
            audit(AuditAction.SLA_UPDATED, "sla_due_at", isoformat_z(ticket.sla_due_at), isoformat_z(new_due))

        comment: Comment | None = None
        body = (request.comment or "").strip()
        if body:
            ensure_can_mutate(actor.role, MutableField.COMMENT)
            comment = Comment(
                id=self._id_factory(),
                ticket_id=ticket.id,
                author_user_id=actor.id,
                body=body,
                created_at=now,
            )
            audit(AuditAction.COMMENT_ADDED)

        if not changes and comment is None:
            return UpdateOutcome(ticket=ticket, comment=None, audit_entries=())

        changes["updated_at"] = now
        return UpdateOutcome(
            ticket=replace(ticket, **changes),
            comment=comment,
            audit_entries=tuple(entries),
            changes=changes,
        )
