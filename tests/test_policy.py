import pytest

from servicedesk.core.errors import ForbiddenChangeError
from servicedesk.tickets.policy import MutableField, can_mutate, ensure_can_mutate
from servicedesk.users.models import UserRole


@pytest.mark.parametrize("role", list(UserRole))
def test_every_role_may_change_status_and_comment(role):
    assert can_mutate(role, MutableField.STATUS)
    assert can_mutate(role, MutableField.COMMENT)


@pytest.mark.parametrize("field", [MutableField.ASSIGNED_TEAM, MutableField.PRIORITY])
def test_only_staff_may_route_or_prioritise(field):
    assert not can_mutate(UserRole.REQUESTER, field)
    assert can_mutate(UserRole.AGENT, field)
    assert can_mutate(UserRole.ADMIN, field)


def test_ensure_can_mutate_raises_readable_error():
    with pytest.raises(ForbiddenChangeError, match="Requester cannot change assigned team"):
        ensure_can_mutate(UserRole.REQUESTER, MutableField.ASSIGNED_TEAM)
