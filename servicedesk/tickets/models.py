from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from .state import RequestedTimeline, SLAStatus, TicketPriority, TicketStatus


@dataclass(slots=True, frozen=True)
class TicketSummary:
    """AI generated synopsis of a ticket."""

    problem: str | None = None
    impact: str | None = None
    requested_action: str | None = None


@dataclass(slots=True, frozen=True)
class KnowledgeSuggestion:
    title: str
    reason: str | None = None

    def as_dict(self) -> dict[str, str | None]:
        return {"title": self.title, "reason": self.reason}


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a service desk request."""

    id: str
    requester_user_id: str
    title: str
    description: str
    assigned_team: str
    priority: TicketPriority
    status: TicketStatus
    sla_due_at: datetime
    sla_status: SLAStatus
    created_at: datetime
    updated_at: datetime
    affected_system: str | None = None
    is_blocking: bool = False
    requested_timeline: RequestedTimeline | None = None
    try_kb_first: bool = True
    summary: TicketSummary = field(default_factory=TicketSummary)
    knowledge_suggestions: Sequence[KnowledgeSuggestion] = ()


@dataclass(slots=True, frozen=True)
class Comment:
    """Immutable note left on a ticket."""

    id: str
    ticket_id: str
    author_user_id: str
    body: str
    created_at: datetime


@dataclass(slots=True, frozen=True)
class TicketUpdateRequest:
    """Fields an actor asks to change in one update call; ``None`` means untouched."""

    status: str | None = None
    assigned_team: str | None = None
    priority: str | None = None
    comment: str | None = None
