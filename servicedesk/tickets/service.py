from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from servicedesk.core.clock import Clock, utcnow
from servicedesk.core.errors import (
    ActorNotFoundError,
    InvalidValueError,
    TicketNotFoundError,
    TicketValidationError,
)
from servicedesk.users.models import User
from servicedesk.users.service import UserService

from .audit import AuditAction, AuditRecorder
from .lifecycle import TicketLifecycle, UpdateOutcome
from .models import Comment, Ticket, TicketUpdateRequest
from .repository import TicketRepository
from .sla import due_instant
from .state import RequestedTimeline, SLAStatus, TicketStateMachine
from .timeline import TimelineEvent, compose_timeline
from .triage import TicketDraft, TriageAdapter

logger = logging.getLogger(__name__)

_TIMELINE_LITERALS = tuple(item.value for item in RequestedTimeline)


class TicketScope(str, Enum):
    MY = "my"
    TEAM = "team"
    ALL = "all"


@dataclass(slots=True, frozen=True)
class CommentView:
    """A comment together with its author, when the author still resolves."""

    comment: Comment
    author: User | None


def _required(value: str | None, name: str) -> str:
    if value is None or not value.strip():
        raise TicketValidationError(f"{name} is required")
    return value.strip()


def _parse_timeline(value: RequestedTimeline | str | None) -> RequestedTimeline | None:
    if value is None or isinstance(value, RequestedTimeline):
        return value
    if not value:
        return None
    try:
        return RequestedTimeline(value)
    except ValueError:
        raise InvalidValueError("requestedTimeline", value, _TIMELINE_LITERALS) from None


class TicketService:
    """High level orchestration for ticket creation, updates and reads."""

    def __init__(
        self,
        repository: TicketRepository,
        users: UserService,
        *,
        triage: TriageAdapter,
        recorder: AuditRecorder | None = None,
        lifecycle: TicketLifecycle | None = None,
        clock: Clock = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._repository = repository
        self._users = users
        self._triage = triage
        self._clock = clock
        self._id_factory = id_factory
        self._recorder = recorder or AuditRecorder(repository, clock=clock)
        self._lifecycle = lifecycle or TicketLifecycle(self._recorder, clock=clock)

    async def create_ticket(
        self,
        *,
        email: str,
        title: str,
        description: str,
        name: str | None = None,
        department: str | None = None,
        affected_system: str | None = None,
        is_blocking: bool = False,
        requested_timeline: RequestedTimeline | str | None = None,
        try_kb_first: bool = True,
    ) -> Ticket:
        email = _required(email, "email")
        title = _required(title, "title")
        description = _required(description, "description")
        timeline = _parse_timeline(requested_timeline)

        requester = await self._users.ensure_requester(email, name=name, department=department)
        triage = await self._triage.classify(
            TicketDraft(
                email=email,
                title=title,
                description=description,
                name=name,
                department=department,
                affected_system=affected_system,
                is_blocking=bool(is_blocking),
                requested_timeline=timeline,
            )
        )

        now = self._clock()
        ticket = Ticket(
            id=self._id_factory(),
            requester_user_id=requester.id,
            title=title,
            description=description,
            affected_system=affected_system,
            is_blocking=bool(is_blocking),
            requested_timeline=timeline,
            try_kb_first=try_kb_first,
            assigned_team=triage.assigned_team,
            priority=triage.priority,
            summary=triage.summary,
            knowledge_suggestions=triage.knowledge_suggestions,
            status=TicketStateMachine.initial_state(),
            sla_due_at=due_instant(now, triage.priority),
            sla_status=SLAStatus.ON_TRACK,
            created_at=now,
            updated_at=now,
        )
        async with self._repository.transaction() as session:
            await self._repository.add_ticket(session, ticket)
            await self._recorder.record(
                ticket.id,
                requester.id,
                AuditAction.TICKET_CREATED,
                session=session,
                created_at=now,
            )

        logger.info(
            "Created ticket %s for %s (team=%s priority=%s fallback=%s)",
            ticket.id,
            email,
            ticket.assigned_team,
            ticket.priority.value,
            triage.fallback,
        )
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    async def list_tickets(
        self,
        scope: TicketScope | str | None,
        *,
        email: str | None = None,
        team: str | None = None,
    ) -> list[Ticket]:
        if not scope:
            raise TicketValidationError("scope is required: my|team|all")
        try:
            scope = TicketScope(scope)
        except ValueError:
            raise TicketValidationError("invalid scope. use my|team|all") from None

        if scope is TicketScope.MY:
            if not email:
                raise TicketValidationError("email is required for scope=my")
            requester = await self._users.get_by_email(email)
            if requester is None:
                return []
            return await self._repository.list_tickets(requester_user_id=requester.id)
        if scope is TicketScope.TEAM:
            if not team:
                raise TicketValidationError("team is required for scope=team")
            return await self._repository.list_tickets(assigned_team=team)
        return await self._repository.list_tickets()

    async def update_ticket(
        self,
        ticket_id: str,
        actor_email: str | None,
        request: TicketUpdateRequest,
    ) -> UpdateOutcome:
        if not actor_email:
            raise TicketValidationError("actorEmail is required")
        actor = await self._users.get_by_email(actor_email)
        if actor is None:
            raise ActorNotFoundError(actor_email)
        ticket = await self.get_ticket(ticket_id)

        outcome = self._lifecycle.apply_update(ticket, actor, request, now=self._clock())
        if not outcome.changed:
            return outcome

        async with self._repository.transaction() as session:
            found = await self._repository.update_ticket_fields(session, ticket.id, outcome.changes)
            if not found:
                raise TicketNotFoundError(ticket.id)
            if outcome.comment is not None:
                await self._repository.add_comment(session, outcome.comment)
            await self._recorder.record_batch(outcome.audit_entries, session=session)

        logger.info(
            "Ticket %s updated by %s (%d audit entries)",
            ticket.id,
            actor.email,
            len(outcome.audit_entries),
        )
        return outcome

    async def list_comments(self, ticket_id: str) -> list[CommentView]:
        comments = await self._repository.list_comments(ticket_id)
        authors = await self._users.get_many(comment.author_user_id for comment in comments)
        return [CommentView(comment=comment, author=authors.get(comment.author_user_id)) for comment in comments]

    async def timeline(self, ticket_id: str) -> list[TimelineEvent]:
        if not await self._repository.ticket_exists(ticket_id):
            raise TicketNotFoundError(ticket_id)
        audits = await self._repository.list_audit_entries(ticket_id)
        comments = await self._repository.list_comments(ticket_id)
        user_ids = {entry.actor_user_id for entry in audits if entry.actor_user_id}
        user_ids.update(comment.author_user_id for comment in comments)
        users = await self._users.get_many(user_ids)
        return compose_timeline(audits, comments, users)
