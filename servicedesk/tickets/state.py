from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from servicedesk.core.errors import InvalidTransitionError


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING = "WAITING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class TicketPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class SLAStatus(str, Enum):
    ON_TRACK = "ON_TRACK"
    BREACHED = "BREACHED"


class RequestedTimeline(str, Enum):
    ASAP = "ASAP"
    TODAY = "TODAY"
    THIS_WEEK = "THIS_WEEK"
    NO_RUSH = "NO_RUSH"


DEFAULT_TRANSITIONS: Mapping[TicketStatus, frozenset[TicketStatus]] = MappingProxyType(
    {
        TicketStatus.NEW: frozenset({TicketStatus.IN_PROGRESS}),
        TicketStatus.IN_PROGRESS: frozenset({TicketStatus.WAITING, TicketStatus.RESOLVED}),
        TicketStatus.WAITING: frozenset({TicketStatus.IN_PROGRESS}),
        TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED}),
        TicketStatus.CLOSED: frozenset(),
    }
)


class TicketStateMachine:
    """Validate ticket lifecycle transitions against an adjacency mapping."""

    def __init__(self, transitions: Mapping[TicketStatus, frozenset[TicketStatus]] | None = None) -> None:
        source = DEFAULT_TRANSITIONS if transitions is None else transitions
        self._transitions: Mapping[TicketStatus, frozenset[TicketStatus]] = MappingProxyType(
            {state: frozenset(targets) for state, targets in source.items()}
        )

    @property
    def transitions(self) -> Mapping[TicketStatus, frozenset[TicketStatus]]:
        return self._transitions

    @staticmethod
    def initial_state() -> TicketStatus:
        return TicketStatus.NEW

    def allowed_targets(self, current: TicketStatus) -> frozenset[TicketStatus]:
        return self._transitions.get(current, frozenset())

    def is_terminal(self, state: TicketStatus) -> bool:
        return not self.allowed_targets(state)

    def can_transition(self, current: TicketStatus, target: TicketStatus | str) -> bool:
        try:
            target = TicketStatus(target)
        except ValueError:
            return False
        return target in self.allowed_targets(current)

    def assert_transition(self, current: TicketStatus, target: TicketStatus | str) -> TicketStatus:
        """Return ``target`` as a status if the edge exists, raise otherwise."""

        if not self.can_transition(current, target):
            requested = target.value if isinstance(target, TicketStatus) else str(target)
            raise InvalidTransitionError(current.value, requested)
        return TicketStatus(target)
