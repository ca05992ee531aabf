"""Periodic job flagging tickets whose SLA due instant has passed."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Protocol

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from servicedesk.core.clock import Clock, utcnow
from servicedesk.core.errors import DependencyFailureError

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = timedelta(minutes=5)
SWEEP_JOB_ID = "sla_breach_sweep"


class BreachStore(Protocol):
    async def mark_overdue_breached(self, now: datetime) -> list[str]:
        ...


class SLABreachSweeper:
    """Mark overdue tickets as BREACHED.

    Only the SLA flag moves: status is left alone, no audit rows are written,
    and tickets already flagged are not touched again.
    """

    def __init__(self, repository: BreachStore, *, clock: Clock = utcnow) -> None:
        self._repository = repository
        self._clock = clock

    async def sweep(self) -> None:
        now = self._clock()
        try:
            breached = await self._repository.mark_overdue_breached(now)
        except DependencyFailureError as exc:
            logger.error("SLA sweep failed: %s", exc)
            return

        if not breached:
            logger.info("SLA sweep: no breaches")
            return
        logger.warning("SLA breached for %d ticket(s)", len(breached))


class SLABreachScheduler:
    """Run :class:`SLABreachSweeper` on a fixed interval, starting immediately."""

    def __init__(
        self,
        sweeper: SLABreachSweeper,
        *,
        interval: timedelta = SWEEP_INTERVAL,
        clock: Clock = utcnow,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._sweeper = sweeper
        self._interval = interval
        self._clock = clock
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._started = False

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started:
            return
        self._scheduler.add_job(
            self._sweeper.sweep,
            "interval",
            seconds=self._interval.total_seconds(),
            id=SWEEP_JOB_ID,
            next_run_time=self._clock(),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self._started = True
        logger.info("SLA breach sweeper scheduled every %s", self._interval)

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self._scheduler.shutdown(wait=False)
        # AsyncIOScheduler defers shutdown to the event loop; let it run.
        await asyncio.sleep(0)
        logger.info("SLA breach sweeper stopped")
