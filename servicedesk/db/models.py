"""SQLModel table definitions for the service desk data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class UserTable(SQLModel, table=True):
    """People who submit or work tickets."""

    __tablename__ = "users"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    department: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    role: str = Field(default="REQUESTER", sa_column=Column(String(20), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketTable(SQLModel, table=True):
    """Requests raised by users and driven through the ticket lifecycle."""

    __tablename__ = "tickets"

    id: str = Field(primary_key=True, index=True)
    requester_user_id: str = Field(
        sa_column=Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    )
    title: str = Field(sa_column=Column(Text, nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    affected_system: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    is_blocking: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    requested_timeline: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    try_kb_first: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    assigned_team: str = Field(sa_column=Column(Text, nullable=False, index=True))
    priority: str = Field(sa_column=Column(String(10), nullable=False))
    ai_summary_problem: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    ai_summary_impact: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    ai_summary_action: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    ai_knowledge_suggestions: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    status: str = Field(sa_column=Column(String(20), nullable=False))
    sla_due_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
    sla_status: str = Field(sa_column=Column(String(20), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketCommentTable(SQLModel, table=True):
    """Free text comments left on a ticket."""

    __tablename__ = "ticket_comments"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    author_id: str = Field(sa_column=Column(String(36), nullable=False))
    body: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class AuditLogTable(SQLModel, table=True):
    """Append-only history of ticket mutations."""

    __tablename__ = "audit_logs"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    actor_id: str | None = Field(default=None, sa_column=Column(String(36), nullable=True))
    action: str = Field(sa_column=Column(String(50), nullable=False))
    field_name: str | None = Field(default=None, sa_column=Column(String(100), nullable=True))
    old_value: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    new_value: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
