"""
Recurring poll scheduler.

Owns the single timer that triggers poll cycles and lets the interval
change at runtime.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

logger = logging.getLogger(__name__)

PollCallback = Callable[[], Awaitable[object]]


class SchedulerState(str, Enum):
    """States of the poll scheduler."""

    STOPPED = "stopped"
    SCHEDULED = "scheduled"


class PollScheduler:
    """
    Timer driving periodic poll cycles.

    At most one timer task exists at a time. Each firing runs the poll
    callback in its own task, so a cycle that outlives the interval can
    overlap with the next one, and rescheduling never interrupts a cycle
    that already started.
    """

    def __init__(self, poll: PollCallback, seconds_per_minute: float = 60.0):
        """
        Initialize a stopped scheduler.

        Parameters
        ----------
        poll : PollCallback
            Coroutine function running one full poll cycle.
        seconds_per_minute : float
            Length of an interval minute in seconds.
        """
        self._poll = poll
        self._seconds_per_minute = seconds_per_minute
        self._timer: asyncio.Task | None = None
        self._cycles: set[asyncio.Task] = set()
        self.interval_minutes: int | None = None

    @property
    def state(self) -> SchedulerState:
        """Current scheduler state."""
        if self._timer is not None and not self._timer.done():
            return SchedulerState.SCHEDULED
        return SchedulerState.STOPPED

    async def start(self, interval_minutes: int) -> None:
        """
        Run one poll cycle now, then poll every ``interval_minutes``.

        Parameters
        ----------
        interval_minutes : int
            Minutes between two poll cycles.
        """
        logger.info("Starting poll scheduler")
        first = self._spawn_cycle()
        await asyncio.gather(first, return_exceptions=True)
        if first.cancelled():
            # stop() was called during the first cycle
            return
        if self._timer is None:
            # A reschedule during the first cycle already armed the timer
            self.reschedule(interval_minutes)

    def reschedule(self, interval_minutes: int) -> None:
        """
        Replace the armed timer with one at a new interval.

        Does not trigger a poll.

        Parameters
        ----------
        interval_minutes : int
            Minutes between two poll cycles.
        """
        self._cancel_timer()
        self.interval_minutes = interval_minutes
        self._timer = asyncio.create_task(self._tick(interval_minutes))
        logger.info("Scheduled feed checks every %d minute(s)", interval_minutes)

    async def stop(self) -> None:
        """Cancel the timer and any running poll cycle."""
        timer = self._cancel_timer()
        pending = [t for t in (timer, *self._cycles) if t is not None]
        for task in self._cycles:
            task.cancel()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self.interval_minutes = None
        logger.info("Poll scheduler stopped")

    def _cancel_timer(self) -> asyncio.Task | None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        return timer

    async def _tick(self, interval_minutes: int) -> None:
        delay = interval_minutes * self._seconds_per_minute
        while True:
            await asyncio.sleep(delay)
            self._spawn_cycle()

    def _spawn_cycle(self) -> asyncio.Task:
        task = asyncio.create_task(self._run_cycle())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)
        return task

    async def _run_cycle(self) -> None:
        try:
            await self._poll()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Poll cycle failed: %s", e)
