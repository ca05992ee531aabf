from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, status
from pydantic import ConfigDict, Field

from servicedesk.api.errors import http_error
from servicedesk.api.schema import CamelModel
from servicedesk.core.errors import TicketServiceError
from servicedesk.dependencies.tickets import TicketServiceDep
from servicedesk.tickets.models import KnowledgeSuggestion, Ticket, TicketUpdateRequest
from servicedesk.tickets.service import CommentView
from servicedesk.tickets.timeline import TimelineEvent

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


class KnowledgeSuggestionModel(CamelModel):
    title: str
    reason: str | None = None

    @classmethod
    def from_entity(cls, entity: KnowledgeSuggestion) -> "KnowledgeSuggestionModel":
        return cls(title=entity.title, reason=entity.reason)


class TicketSummaryModel(CamelModel):
    problem: str | None = None
    impact: str | None = None
    requested_action: str | None = None


class TicketModel(CamelModel):
    id: str
    title: str
    description: str
    affected_system: str | None = None
    is_blocking: bool
    requested_timeline: str | None = None
    try_kb_first: bool
    requester_user_id: str
    assigned_team: str
    priority: str
    summary: TicketSummaryModel
    knowledge_suggestions: list[KnowledgeSuggestionModel] = Field(default_factory=list)
    status: str
    sla_due_at: datetime
    sla_status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, ticket: Ticket) -> "TicketModel":
        return cls(
            id=ticket.id,
            title=ticket.title,
            description=ticket.description,
            affected_system=ticket.affected_system,
            is_blocking=ticket.is_blocking,
            requested_timeline=ticket.requested_timeline.value if ticket.requested_timeline else None,
            try_kb_first=ticket.try_kb_first,
            requester_user_id=ticket.requester_user_id,
            assigned_team=ticket.assigned_team,
            priority=ticket.priority.value,
            summary=TicketSummaryModel(
                problem=ticket.summary.problem,
                impact=ticket.summary.impact,
                requested_action=ticket.summary.requested_action,
            ),
            knowledge_suggestions=[KnowledgeSuggestionModel.from_entity(item) for item in ticket.knowledge_suggestions],
            status=ticket.status.value,
            sla_due_at=ticket.sla_due_at,
            sla_status=ticket.sla_status.value,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )


class TicketCreatedModel(CamelModel):
    id: str
    status: str
    assigned_team: str
    priority: str
    sla_due_at: datetime
    sla_status: str
    created_at: datetime
    knowledge_suggestions: list[KnowledgeSuggestionModel] = Field(default_factory=list)


class TicketListModel(CamelModel):
    tickets: list[TicketModel]


class TicketCreateRequest(CamelModel):
    email: str | None = None
    name: str | None = None
    department: str | None = None
    title: str | None = None
    description: str | None = None
    affected_system: str | None = None
    is_blocking: bool | None = None
    requested_timeline: str | None = None
    try_kb_first: bool | None = None


class TicketUpdateBody(CamelModel):
    actor_email: str | None = None
    status: str | None = None
    priority: str | None = None
    assigned_team: str | None = None
    comment: str | None = None


class TicketUpdatedModel(CamelModel):
    ok: bool = True
    ticket: TicketModel


class NoChangesModel(CamelModel):
    model_config = ConfigDict(extra="forbid")

    ok: bool = True
    message: str = "No changes"


class CommentAuthorModel(CamelModel):
    id: str
    name: str | None = None
    email: str | None = None


class CommentModel(CamelModel):
    id: str
    body: str
    created_at: datetime
    author: CommentAuthorModel

    @classmethod
    def from_view(cls, view: CommentView) -> "CommentModel":
        author = view.author
        return cls(
            id=view.comment.id,
            body=view.comment.body,
            created_at=view.comment.created_at,
            author=CommentAuthorModel(
                id=view.comment.author_user_id,
                name=author.name if author else None,
                email=author.email if author else None,
            ),
        )


class CommentListModel(CamelModel):
    comments: list[CommentModel]


class TimelineActorModel(CamelModel):
    id: str
    name: str | None = None
    email: str
    role: str


class TimelineEventModel(CamelModel):
    id: str
    type: Literal["AUDIT", "COMMENT"]
    created_at: datetime
    actor: TimelineActorModel | None = None
    action: str | None = None
    field: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    body: str | None = None
    message: str

    @classmethod
    def from_event(cls, event: TimelineEvent) -> "TimelineEventModel":
        actor = event.actor
        return cls(
            id=event.id,
            type=event.type.value,
            created_at=event.created_at,
            actor=TimelineActorModel(id=actor.id, name=actor.name, email=actor.email, role=actor.role)
            if actor
            else None,
            action=event.action,
            field=event.field,
            old_value=event.old_value,
            new_value=event.new_value,
            body=event.body,
            message=event.message,
        )


class ActivityModel(CamelModel):
    ticket_id: str
    timeline: list[TimelineEventModel]


@router.post("", response_model=TicketCreatedModel, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep) -> TicketCreatedModel:
    try:
        ticket = await service.create_ticket(
            email=payload.email or "",
            title=payload.title or "",
            description=payload.description or "",
            name=payload.name,
            department=payload.department,
            affected_system=payload.affected_system or None,
            is_blocking=bool(payload.is_blocking),
            requested_timeline=payload.requested_timeline or None,
            try_kb_first=payload.try_kb_first is not False,
        )
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return TicketCreatedModel(
        id=ticket.id,
        status=ticket.status.value,
        assigned_team=ticket.assigned_team,
        priority=ticket.priority.value,
        sla_due_at=ticket.sla_due_at,
        sla_status=ticket.sla_status.value,
        created_at=ticket.created_at,
        knowledge_suggestions=[KnowledgeSuggestionModel.from_entity(item) for item in ticket.knowledge_suggestions],
    )


@router.get("", response_model=TicketListModel, summary="List tickets for a scope")
async def list_tickets(
    service: TicketServiceDep,
    scope: str | None = None,
    email: str | None = None,
    team: str | None = None,
) -> TicketListModel:
    try:
        tickets = await service.list_tickets(scope, email=email, team=team)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return TicketListModel(tickets=[TicketModel.from_entity(item) for item in tickets])


@router.get("/{ticket_id}", response_model=TicketModel)
async def get_ticket(ticket_id: str, service: TicketServiceDep) -> TicketModel:
    try:
        ticket = await service.get_ticket(ticket_id)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return TicketModel.from_entity(ticket)


@router.patch("/{ticket_id}", response_model=TicketUpdatedModel | NoChangesModel)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdateBody,
    service: TicketServiceDep,
) -> TicketUpdatedModel | NoChangesModel:
    request = TicketUpdateRequest(
        status=payload.status,
        assigned_team=payload.assigned_team,
        priority=payload.priority,
        comment=payload.comment,
    )
    try:
        outcome = await service.update_ticket(ticket_id, payload.actor_email, request)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    if not outcome.changed:
        return NoChangesModel()
    return TicketUpdatedModel(ticket=TicketModel.from_entity(outcome.ticket))


@router.get("/{ticket_id}/comments", response_model=CommentListModel)
async def list_ticket_comments(ticket_id: str, service: TicketServiceDep) -> CommentListModel:
    try:
        views = await service.list_comments(ticket_id)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return CommentListModel(comments=[CommentModel.from_view(view) for view in views])


@router.get("/{ticket_id}/activity", response_model=ActivityModel)
async def get_ticket_activity(ticket_id: str, service: TicketServiceDep) -> ActivityModel:
    try:
        events = await service.timeline(ticket_id)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return ActivityModel(ticket_id=ticket_id, timeline=[TimelineEventModel.from_event(event) for event in events])
