from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from servicedesk.core.clock import ensure_utc
from servicedesk.db.models import AuditLogTable, TicketCommentTable, TicketTable
from servicedesk.db.repository import SessionRepository

from .audit import AuditAction, AuditEntry
from .models import Comment, KnowledgeSuggestion, Ticket, TicketSummary
from .state import RequestedTimeline, SLAStatus, TicketPriority, TicketStatus

# Domain attribute name -> tickets column for fields the lifecycle may change.
_UPDATABLE_COLUMNS: Mapping[str, str] = {
    "status": "status",
    "assigned_team": "assigned_team",
    "priority": "priority",
    "sla_due_at": "sla_due_at",
    "sla_status": "sla_status",
    "updated_at": "updated_at",
}


class TicketRepository(SessionRepository):
    """Persistence helper wrapping `tickets`, `ticket_comments` and `audit_logs`."""

    store_name = "Ticket store"

    async def add_ticket(self, session: AsyncSession, ticket: Ticket) -> None:
        session.add(
            TicketTable(
                id=ticket.id,
                requester_user_id=ticket.requester_user_id,
                title=ticket.title,
                description=ticket.description,
                affected_system=ticket.affected_system,
                is_blocking=ticket.is_blocking,
                requested_timeline=ticket.requested_timeline.value if ticket.requested_timeline else None,
                try_kb_first=ticket.try_kb_first,
                assigned_team=ticket.assigned_team,
                priority=ticket.priority.value,
                ai_summary_problem=ticket.summary.problem,
                ai_summary_impact=ticket.summary.impact,
                ai_summary_action=ticket.summary.requested_action,
                ai_knowledge_suggestions=[item.as_dict() for item in ticket.knowledge_suggestions],
                status=ticket.status.value,
                sla_due_at=ticket.sla_due_at,
                sla_status=ticket.sla_status.value,
                created_at=ticket.created_at,
                updated_at=ticket.updated_at,
            )
        )
        # Audit and comment rows reference the ticket; make sure it exists first.
        await session.flush()

    async def update_ticket_fields(
        self, session: AsyncSession, ticket_id: str, changes: Mapping[str, Any]
    ) -> bool:
        """Write only the changed lifecycle columns of one ticket row."""

        values = {
            _UPDATABLE_COLUMNS[name]: value.value if isinstance(value, Enum) else value
            for name, value in changes.items()
        }
        if not values:
            return True
        result = await session.execute(
            update(TicketTable).where(TicketTable.id == ticket_id).values(**values)
        )
        return bool(result.rowcount)

    async def add_comment(self, session: AsyncSession, comment: Comment) -> None:
        session.add(
            TicketCommentTable(
                id=comment.id,
                ticket_id=comment.ticket_id,
                author_id=comment.author_user_id,
                body=comment.body,
                created_at=comment.created_at,
            )
        )

    async def add_audit_entries(self, session: AsyncSession, entries: Sequence[AuditEntry]) -> None:
        session.add_all(
            [
                AuditLogTable(
                    id=entry.id,
                    ticket_id=entry.ticket_id,
                    actor_id=entry.actor_user_id,
                    action=entry.action.value if isinstance(entry.action, AuditAction) else entry.action,
                    field_name=entry.field_name,
                    old_value=entry.old_value,
                    new_value=entry.new_value,
                    created_at=entry.created_at,
                )
                for entry in entries
            ]
        )
        await session.flush()

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self.session() as session:
            row = await session.get(TicketTable, ticket_id)
        if row is None:
            return None
        return self._table_to_ticket(row)

    async def ticket_exists(self, ticket_id: str) -> bool:
        async with self.session() as session:
            result = await session.execute(select(TicketTable.id).where(TicketTable.id == ticket_id))
            return result.first() is not None

    async def list_tickets(
        self,
        *,
        requester_user_id: str | None = None,
        assigned_team: str | None = None,
    ) -> list[Ticket]:
        statement = select(TicketTable)
        if requester_user_id is not None:
            statement = statement.where(TicketTable.requester_user_id == requester_user_id)
        if assigned_team is not None:
            statement = statement.where(TicketTable.assigned_team == assigned_team)
        statement = statement.order_by(TicketTable.created_at.desc())
        async with self.session() as session:
            result = await session.execute(statement)
            return [self._table_to_ticket(row) for row in result.scalars().all()]

    async def list_comments(self, ticket_id: str) -> list[Comment]:
        async with self.session() as session:
            result = await session.execute(
                select(TicketCommentTable)
                .where(TicketCommentTable.ticket_id == ticket_id)
                .order_by(TicketCommentTable.created_at.desc())
            )
            return [self._table_to_comment(row) for row in result.scalars().all()]

    async def list_audit_entries(self, ticket_id: str) -> list[AuditEntry]:
        async with self.session() as session:
            result = await session.execute(
                select(AuditLogTable)
                .where(AuditLogTable.ticket_id == ticket_id)
                .order_by(AuditLogTable.created_at.desc())
            )
            return [self._table_to_audit(row) for row in result.scalars().all()]

    async def mark_overdue_breached(self, now: datetime) -> list[str]:
        """Flag every ticket past its due instant and not yet breached.

        Returns the ids that were flagged; tickets already breached are not
        selected again.
        """

        async with self.transaction() as session:
            result = await session.execute(
                select(TicketTable.id).where(
                    TicketTable.sla_due_at < now,
                    TicketTable.sla_status != SLAStatus.BREACHED.value,
                )
            )
            ids = [str(value) for value in result.scalars().all()]
            if ids:
                await session.execute(
                    update(TicketTable)
                    .where(TicketTable.id.in_(ids))
                    .values(sla_status=SLAStatus.BREACHED.value)
                )
        return ids

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        suggestions = tuple(
            KnowledgeSuggestion(title=str(item.get("title", "")), reason=item.get("reason"))
            for item in (row.ai_knowledge_suggestions or [])
            if isinstance(item, Mapping)
        )
        return Ticket(
            id=row.id,
            requester_user_id=row.requester_user_id,
            title=row.title,
            description=row.description,
            affected_system=row.affected_system,
            is_blocking=bool(row.is_blocking),
            requested_timeline=RequestedTimeline(row.requested_timeline) if row.requested_timeline else None,
            try_kb_first=bool(row.try_kb_first),
            assigned_team=row.assigned_team,
            priority=TicketPriority(row.priority),
            summary=TicketSummary(
                problem=row.ai_summary_problem,
                impact=row.ai_summary_impact,
                requested_action=row.ai_summary_action,
            ),
            knowledge_suggestions=suggestions,
            status=TicketStatus(row.status),
            sla_due_at=ensure_utc(row.sla_due_at),
            sla_status=SLAStatus(row.sla_status),
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
        )

    @staticmethod
    def _table_to_comment(row: TicketCommentTable) -> Comment:
        return Comment(
            id=row.id,
            ticket_id=row.ticket_id,
            author_user_id=row.author_id,
            body=row.body,
            created_at=ensure_utc(row.created_at),
        )

    @staticmethod
    def _table_to_audit(row: AuditLogTable) -> AuditEntry:
        try:
            action: AuditAction | str | None = AuditAction(row.action)
        except ValueError:
            action = row.action
        return AuditEntry(
            id=row.id,
            ticket_id=row.ticket_id,
            actor_user_id=row.actor_id,
            action=action,
            field_name=row.field_name,
            old_value=row.old_value,
            new_value=row.new_value,
            created_at=ensure_utc(row.created_at),
        )
