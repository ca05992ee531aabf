from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import Text
from sqlalchemy.exc import OperationalError

from servicedesk.core.errors import DependencyFailureError
from servicedesk.db.models import TicketTable
from servicedesk.tickets.audit import AuditAction, AuditEntry
from servicedesk.tickets.models import Comment, KnowledgeSuggestion, Ticket, TicketSummary
from servicedesk.tickets.repository import TicketRepository
from servicedesk.tickets.state import RequestedTimeline, SLAStatus, TicketPriority, TicketStatus
from servicedesk.users.models import User, UserRole

NOW = datetime(2026, 3, 4, 9, 30, tzinfo=timezone.utc)


def _ticket(ticket_id: str, *, created_at: datetime = NOW, **overrides) -> Ticket:
    values = dict(
        id=ticket_id,
        requester_user_id="u-1",
        title=f"Ticket {ticket_id}",
        description="Printer on fire",
        assigned_team="Facilities",
        priority=TicketPriority.MEDIUM,
        status=TicketStatus.NEW,
        sla_due_at=created_at + timedelta(days=3),
        sla_status=SLAStatus.ON_TRACK,
        created_at=created_at,
        updated_at=created_at,
    )
    values.update(overrides)
    return Ticket(**values)


async def _seed_user(user_repository, user_id: str = "u-1", email: str = "ana@example.com") -> None:
    async with user_repository.transaction() as session:
        await user_repository.add(
            session,
            User(id=user_id, email=email, name="Ana", department="Ops", role=UserRole.REQUESTER, created_at=NOW),
        )


@pytest.mark.asyncio
async def test_ticket_round_trip_preserves_fields(ticket_repository, user_repository):
    await _seed_user(user_repository)
    ticket = _ticket(
        "t-1",
        affected_system="Printer",
        is_blocking=True,
        requested_timeline=RequestedTimeline.TODAY,
        try_kb_first=False,
        summary=TicketSummary(problem="Fire", impact="Smoke", requested_action="Extinguish"),
        knowledge_suggestions=(KnowledgeSuggestion(title="Fire safety", reason="Obvious"),),
    )

    async with ticket_repository.transaction() as session:
        await ticket_repository.add_ticket(session, ticket)

    stored = await ticket_repository.get_ticket("t-1")
    assert stored is not None
    assert stored.created_at == NOW
    assert stored.created_at.tzinfo is not None
    assert stored.requested_timeline is RequestedTimeline.TODAY
    assert stored.summary.requested_action == "Extinguish"
    assert stored.knowledge_suggestions == (KnowledgeSuggestion(title="Fire safety", reason="Obvious"),)
    assert stored.is_blocking and not stored.try_kb_first


@pytest.mark.asyncio
async def test_get_missing_ticket_returns_none(ticket_repository):
    assert await ticket_repository.get_ticket("missing") is None
    assert not await ticket_repository.ticket_exists("missing")


@pytest.mark.asyncio
async def test_list_tickets_filters_and_orders_newest_first(ticket_repository, user_repository):
    await _seed_user(user_repository)
    await _seed_user(user_repository, "u-2", "bo@example.com")
    async with ticket_repository.transaction() as session:
        await ticket_repository.add_ticket(session, _ticket("old", created_at=NOW - timedelta(hours=2)))
        await ticket_repository.add_ticket(session, _ticket("new", created_at=NOW))
        await ticket_repository.add_ticket(
            session,
            _ticket("other", created_at=NOW - timedelta(hours=1), requester_user_id="u-2", assigned_team="Finance"),
        )

    assert [t.id for t in await ticket_repository.list_tickets()] == ["new", "other", "old"]
    assert [t.id for t in await ticket_repository.list_tickets(requester_user_id="u-1")] == ["new", "old"]
    assert [t.id for t in await ticket_repository.list_tickets(assigned_team="Finance")] == ["other"]


@pytest.mark.asyncio
async def test_update_writes_only_changed_columns(ticket_repository, user_repository):
    await _seed_user(user_repository)
    async with ticket_repository.transaction() as session:
        await ticket_repository.add_ticket(session, _ticket("t-1"))
    later = NOW + timedelta(hours=1)

    async with ticket_repository.transaction() as session:
        found = await ticket_repository.update_ticket_fields(
            session, "t-1", {"status": TicketStatus.IN_PROGRESS, "updated_at": later}
        )
        missing = await ticket_repository.update_ticket_fields(session, "nope", {"updated_at": later})

    assert found and not missing
    stored = await ticket_repository.get_ticket("t-1")
    assert stored.status is TicketStatus.IN_PROGRESS
    assert stored.updated_at == later
    assert stored.priority is TicketPriority.MEDIUM


@pytest.mark.asyncio
async def test_long_free_text_fields_are_stored_unbounded(ticket_repository, user_repository):
    for name in ("title", "affected_system", "assigned_team"):
        column_type = TicketTable.__table__.c[name].type
        assert isinstance(column_type, Text) and column_type.length is None, name

    await _seed_user(user_repository)
    team = "Enterprise Applications / " * 20
    async with ticket_repository.transaction() as session:
        await ticket_repository.add_ticket(session, _ticket("t-1", title="x" * 600, assigned_team=team))
    async with ticket_repository.transaction() as session:
        await ticket_repository.update_ticket_fields(session, "t-1", {"assigned_team": team + "Tier 2"})

    stored = await ticket_repository.get_ticket("t-1")
    assert stored.title == "x" * 600
    assert stored.assigned_team == team + "Tier 2"


@pytest.mark.asyncio
async def test_comments_and_audit_entries_newest_first(ticket_repository, user_repository):
    await _seed_user(user_repository)
    async with ticket_repository.transaction() as session:
        await ticket_repository.add_ticket(session, _ticket("t-1"))
        await ticket_repository.add_comment(
            session, Comment(id="c-1", ticket_id="t-1", author_user_id="u-1", body="first", created_at=NOW)
        )
        await ticket_repository.add_comment(
            session,
            Comment(id="c-2", ticket_id="t-1", author_user_id="u-1", body="second", created_at=NOW + timedelta(minutes=1)),
        )
        await ticket_repository.add_audit_entries(
            session,
            [
                AuditEntry("a-1", "t-1", "u-1", AuditAction.TICKET_CREATED, None, None, None, NOW),
                AuditEntry("a-2", "t-1", "u-1", "LEGACY_ACTION", "legacy", None, None, NOW + timedelta(minutes=2)),
            ],
        )

    assert [c.body for c in await ticket_repository.list_comments("t-1")] == ["second", "first"]
    audits = await ticket_repository.list_audit_entries("t-1")
    assert [a.id for a in audits] == ["a-2", "a-1"]
    assert audits[0].action == "LEGACY_ACTION"
    assert audits[1].action is AuditAction.TICKET_CREATED


@pytest.mark.asyncio
async def test_transaction_rolls_back_every_write_on_error(ticket_repository, user_repository):
    await _seed_user(user_repository)

    with pytest.raises(RuntimeError):
        async with ticket_repository.transaction() as session:
            await ticket_repository.add_ticket(session, _ticket("t-1"))
            raise RuntimeError("audit write failed")

    assert await ticket_repository.get_ticket("t-1") is None


@pytest.mark.asyncio
async def test_mark_overdue_breached_is_idempotent(ticket_repository, user_repository):
    await _seed_user(user_repository)
    async with ticket_repository.transaction() as session:
        await ticket_repository.add_ticket(session, _ticket("late", sla_due_at=NOW - timedelta(minutes=1)))
        await ticket_repository.add_ticket(
            session,
            _ticket("closed", status=TicketStatus.CLOSED, sla_due_at=NOW - timedelta(days=1)),
        )
        await ticket_repository.add_ticket(session, _ticket("fine", sla_due_at=NOW + timedelta(minutes=1)))

    first = await ticket_repository.mark_overdue_breached(NOW)
    second = await ticket_repository.mark_overdue_breached(NOW)

    assert sorted(first) == ["closed", "late"]
    assert second == []
    late = await ticket_repository.get_ticket("late")
    assert late.sla_status is SLAStatus.BREACHED
    assert late.status is TicketStatus.NEW
    assert (await ticket_repository.get_ticket("fine")).sla_status is SLAStatus.ON_TRACK
    assert await ticket_repository.list_audit_entries("late") == []


@pytest.mark.asyncio
async def test_store_errors_become_dependency_failures():
    factory = MagicMock(side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")))
    repository = TicketRepository(factory)

    with pytest.raises(DependencyFailureError):
        await repository.get_ticket("t-1")
