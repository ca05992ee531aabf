"""Business-day SLA due date computation."""

from __future__ import annotations

from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Mapping

from .state import TicketPriority

SLA_WINDOW_DAYS: Mapping[TicketPriority, int] = MappingProxyType(
    {
        TicketPriority.HIGH: 1,
        TicketPriority.MEDIUM: 3,
        TicketPriority.LOW: 5,
    }
)

_ONE_DAY = timedelta(days=1)


def sla_window_days(priority: TicketPriority) -> int:
    return SLA_WINDOW_DAYS[TicketPriority(priority)]


def is_business_day(moment: datetime) -> bool:
    # Monday is 0, Saturday 5 and Sunday 6.
    return moment.weekday() < 5


def due_instant(start: datetime, priority: TicketPriority) -> datetime:
    """Return the instant ``priority``'s window of business days after ``start``.

    Only days strictly after ``start`` are examined, so a weekend start is never
    counted. The time of day is preserved.
    """

    window = sla_window_days(priority)
    due = start
    counted = 0
    while counted < window:
        due += _ONE_DAY
        if is_business_day(due):
            counted += 1
    return due
