# src/script_runner/tasks/cron.py

from __future__ import annotations

"""
Cron grammar + live recurring timers.

Expressions are the classic five fields (minute hour day-of-month month
day-of-week) with *, ranges, lists and steps. croniter does the parsing and
the next-fire arithmetic; CronTimer turns that into an asyncio task.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from croniter import croniter

from ..core.errors import InvalidCron

logger = logging.getLogger(__name__)

CRON_FIELDS = 5

# Upper bound for one sleep, so a UTC offset change (DST) is picked up before the next slot.
MAX_SLEEP_SECONDS = 3600.0

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]


def normalize_cron(expression: str | None) -> str:
    """
    Validate and return the stripped expression, or raise InvalidCron.

    croniter also accepts a sixth (seconds) field; that is rejected here.
    """
    expr = " ".join((expression or "").split())
    if not expr:
        raise InvalidCron(expression or "", "expression is empty")
    n = len(expr.split(" "))
    if n != CRON_FIELDS:
        raise InvalidCron(expr, f"expected {CRON_FIELDS} fields, got {n}")
    if not croniter.is_valid(expr):
        raise InvalidCron(expr)
    return expr


def is_valid_cron(expression: str | None) -> bool:
    try:
        normalize_cron(expression)
    except InvalidCron:
        return False
    return True


def resolve_timezone(name: str | None) -> tzinfo | None:
    """None means local time."""
    if not name:
        return None
    return ZoneInfo(name)


def local_clock(tz: tzinfo | None = None) -> Clock:
    def _now() -> datetime:
        return datetime.now(tz) if tz is not None else datetime.now().astimezone()

    return _now


def next_fire_time(expression: str, after: datetime) -> datetime:
    return croniter(expression, after).get_next(datetime)


class CronTimer:
    """
    A recurring timer for one cron expression.

    start() must be called from a running event loop. stop() is idempotent and
    guarantees the callback is not invoked afterwards, even if the fire time
    has already passed. Fire times missed while the loop was blocked are
    coalesced into a single firing.

    The callback is synchronous and should return quickly; long work belongs
    in a task it spawns.
    """

    def __init__(
        self,
        expression: str,
        callback: Callable[[], None],
        *,
        name: str = "cron-timer",
        clock: Clock | None = None,
        sleep: Sleeper | None = None,
    ) -> None:
        self.expression = normalize_cron(expression)
        self.name = name
        self.fire_count = 0
        self._callback = callback
        self._clock = clock or local_clock()
        self._sleep = sleep or asyncio.sleep
        self._task: asyncio.Task[None] | None = None
        self._anchor: datetime | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopped

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError(f"{self.name} was stopped and cannot be restarted")
        if self._task is not None:
            return
        loop = asyncio.get_running_loop()
        # The first slot is computed from the moment of arming, not from when the task first runs.
        self._anchor = self._clock()
        self._task = loop.create_task(self._run(), name=self.name)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        last = self._anchor or self._clock()
        while not self._stopped:
            now = self._clock()
            # Re-express the anchor in the clock's current offset before computing the slot.
            fire_at = next_fire_time(self.expression, last.astimezone(now.tzinfo))
            delay = (fire_at - now).total_seconds()
            if delay > MAX_SLEEP_SECONDS:
                await self._sleep(MAX_SLEEP_SECONDS)
                continue
            if delay > 0:
                await self._sleep(delay)
            else:
                await asyncio.sleep(0)

            if self._stopped:
                break

            self.fire_count += 1
            try:
                self._callback()
            except Exception:
                logger.exception("%s callback failed", self.name)

            # Missed fire times (suspend, clock jump) collapse into this one firing.
            last = max(fire_at, self._clock())
