"""Read-only merge of audit history and comments into one activity feed."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping

from servicedesk.users.models import User

from .audit import AuditAction, AuditEntry, format_message
from .models import Comment


class TimelineEventType(str, Enum):
    AUDIT = "AUDIT"
    COMMENT = "COMMENT"


@dataclass(slots=True, frozen=True)
class TimelineActor:
    id: str
    name: str | None
    email: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "TimelineActor":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role.value)


@dataclass(slots=True, frozen=True)
class TimelineEvent:
    id: str
    type: TimelineEventType
    created_at: datetime
    actor: TimelineActor | None
    message: str
    action: str | None = None
    field: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    body: str | None = None


def _resolve(users: Mapping[str, User], user_id: str | None) -> TimelineActor | None:
    if user_id is None:
        return None
    user = users.get(user_id)
    return TimelineActor.from_user(user) if user is not None else None


def compose_timeline(
    audits: Iterable[AuditEntry],
    comments: Iterable[Comment],
    users: Mapping[str, User],
) -> list[TimelineEvent]:
    """Merge audit and comment rows, newest first.

    Actors missing from ``users`` are reported as ``None`` rather than
    dropping the event.
    """

    events: list[TimelineEvent] = []
    for entry in audits:
        action = entry.action.value if isinstance(entry.action, AuditAction) else entry.action
        events.append(
            TimelineEvent(
                id=entry.id,
                type=TimelineEventType.AUDIT,
                created_at=entry.created_at,
                actor=_resolve(users, entry.actor_user_id),
                message=format_message(entry),
                action=action,
                field=entry.field_name,
                old_value=entry.old_value,
                new_value=entry.new_value,
            )
        )
    for comment in comments:
        events.append(
            TimelineEvent(
                id=comment.id,
                type=TimelineEventType.COMMENT,
                created_at=comment.created_at,
                actor=_resolve(users, comment.author_user_id),
                message="Comment added",
                body=comment.body,
            )
        )
    events.sort(key=lambda event: event.created_at, reverse=True)
    return events
