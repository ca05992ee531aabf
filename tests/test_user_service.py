from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import sequential_ids
from servicedesk.core.errors import InvalidValueError, TicketValidationError
from servicedesk.users.models import UserRole
from servicedesk.users.service import UserService, parse_role


@pytest.fixture
def user_service(user_repository, clock):
    return UserService(user_repository, clock=clock, id_factory=sequential_ids("user"))


def test_parse_role_is_case_insensitive():
    assert parse_role(" agent ") is UserRole.AGENT
    with pytest.raises(InvalidValueError, match="role must be REQUESTER\\|AGENT\\|ADMIN"):
        parse_role("owner")


@pytest.mark.asyncio
async def test_ensure_requester_creates_once(user_service):
    first = await user_service.ensure_requester("ana@example.com", name="Ana")
    second = await user_service.ensure_requester("ana@example.com")

    assert first.id == second.id == "user-1"
    assert second.role is UserRole.REQUESTER
    assert second.name == "Ana"


@pytest.mark.asyncio
async def test_upsert_role_creates_and_promotes(user_service):
    await user_service.ensure_requester("ana@example.com", name="Ana")

    promoted = await user_service.upsert_role("ana@example.com", "admin", department="Security")
    created = await user_service.upsert_role("bo@example.com", "Agent", name="Bo")

    assert promoted.role is UserRole.ADMIN
    assert promoted.name == "Ana"
    assert promoted.department == "Security"
    assert created.role is UserRole.AGENT
    assert created.id == "user-2"


@pytest.mark.asyncio
async def test_upsert_role_validates_input(user_service):
    with pytest.raises(TicketValidationError, match="email is required"):
        await user_service.upsert_role("  ", "AGENT")
    with pytest.raises(InvalidValueError):
        await user_service.upsert_role("ana@example.com", "root")
    assert await user_service.get_by_email("ana@example.com") is None


@pytest.mark.asyncio
async def test_search_matches_email_or_name_newest_first(user_service, clock):
    await user_service.ensure_requester("ana@example.com", name="Ana Lima")
    clock.advance(minutes=1)
    await user_service.ensure_requester("bo@corp.test", name="Bo Ana")
    clock.advance(minutes=1)
    await user_service.ensure_requester("cy@corp.test", name="Cy")

    assert [u.email for u in await user_service.search("ANA")] == ["bo@corp.test", "ana@example.com"]
    assert [u.email for u in await user_service.search(None)] == ["cy@corp.test", "bo@corp.test", "ana@example.com"]


@pytest.mark.asyncio
async def test_search_is_capped(user_service, clock):
    for index in range(55):
        clock.advance(seconds=1)
        await user_service.ensure_requester(f"user{index}@example.com")

    results = await user_service.search("")

    assert len(results) == 50
    assert results[0].email == "user54@example.com"
    assert results[0].created_at - results[1].created_at == timedelta(seconds=1)
