"""Asyncio run loop that re-evaluates the timeline on a display-aware cadence."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, Optional

from .constants import (
    CADENCE_NORMAL,
    CADENCE_POWER_SAVING,
    DEFAULT_NORMAL_TOLERANCE_SECONDS,
    DEFAULT_PERIODIC_SYNC_SECONDS,
    DEFAULT_POWER_SAVING_TOLERANCE_SECONDS,
    DEFAULT_TICK_INTERVAL_SECONDS,
)
from .timeline import TimelineReading

CadenceName = Literal["normal", "power_saving"]


@dataclass(frozen=True)
class CadencePolicy:
    """Tick period plus the lateness tolerated before a tick is logged as late."""
    name: CadenceName
    interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS
    tolerance_seconds: float = DEFAULT_NORMAL_TOLERANCE_SECONDS

    @classmethod
    def normal(
        cls,
        interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        tolerance_seconds: float = DEFAULT_NORMAL_TOLERANCE_SECONDS,
    ) -> "CadencePolicy":
        return cls(CADENCE_NORMAL, interval_seconds, tolerance_seconds)

    @classmethod
    def power_saving(
        cls,
        interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        tolerance_seconds: float = DEFAULT_POWER_SAVING_TOLERANCE_SECONDS,
    ) -> "CadencePolicy":
        # Same period, narrower tolerance: fewer display updates must still land on the second.
        return cls(CADENCE_POWER_SAVING, interval_seconds, tolerance_seconds)


Evaluate = Callable[[], Optional[TimelineReading]]
TickCallback = Callable[[TimelineReading], Awaitable[None]]
SyncCallback = Callable[[], Awaitable[None]]


class RunLoopScheduler:
    """Single periodic trigger driving timeline evaluation.

    Ticks never overlap: each callback is awaited before the next deadline is
    armed. Arming an armed scheduler replaces the running trigger.
    """

    def __init__(
        self,
        *,
        evaluate: Evaluate,
        on_tick: TickCallback,
        on_boundary: TickCallback,
        on_periodic_sync: SyncCallback,
        periodic_sync_seconds: float = DEFAULT_PERIODIC_SYNC_SECONDS,
        clock: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._evaluate = evaluate
        self._on_tick = on_tick
        self._on_boundary = on_boundary
        self._on_periodic_sync = on_periodic_sync
        self._periodic_sync_seconds = periodic_sync_seconds
        self._clock = clock or time.monotonic
        self._logger = logger or logging.getLogger("pomodoro.scheduler")
        self._task: Optional[asyncio.Task[None]] = None
        self._policy = CadencePolicy.normal()
        self._last_sync_at: Optional[float] = None

    @property
    def policy(self) -> CadencePolicy:
        return self._policy

    @property
    def is_armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, policy: Optional[CadencePolicy] = None) -> None:
        if policy is not None:
            self._policy = policy
        self._cancel_task()
        self._last_sync_at = None
        self._arm()

    def stop(self) -> None:
        if self._cancel_task():
            self._logger.debug("Scheduler stopped")

    def reschedule(self, policy: CadencePolicy) -> None:
        """Apply a new cadence; the timeline reference instant is untouched."""
        if policy == self._policy and self.is_armed:
            return
        self._policy = policy
        if not self.is_armed:
            return
        self._cancel_task()
        self._arm()
        self._logger.debug(
            "Scheduler re-armed: cadence=%s interval=%.3fs tolerance=%.3fs",
            policy.name,
            policy.interval_seconds,
            policy.tolerance_seconds,
        )

    def _arm(self) -> None:
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._policy),
            name="pomodoro-scheduler",
        )

    def _cancel_task(self) -> bool:
        task = self._task
        self._task = None
        if task is None or task.done():
            return False
        if task is asyncio.current_task():
            # Cancelling ourselves from inside a callback; the loop exits on its own.
            return True
        task.cancel()
        return True

    async def _run(self, policy: CadencePolicy) -> None:
        this_task = asyncio.current_task()
        loop = asyncio.get_running_loop()
        next_deadline = loop.time()

        while self._task is this_task:
            reading = self._evaluate()
            if reading is None:
                self._task = None
                return

            if self._sync_due():
                await self._on_periodic_sync()

            if reading.crossed_boundary:
                self._task = None
                self._logger.info("Phase boundary reached")
                await self._on_boundary(reading)
                return

            await self._on_tick(reading)
            if self._task is not this_task:
                return

            next_deadline += policy.interval_seconds
            delay = next_deadline - loop.time()
            if delay < 0:
                if -delay > policy.tolerance_seconds:
                    self._logger.debug("Tick late by %.3fs, realigning", -delay)
                next_deadline = loop.time()
                delay = 0.0
            await asyncio.sleep(delay)

    def _sync_due(self) -> bool:
        now = self._clock()
        if self._last_sync_at is None:
            self._last_sync_at = now
            return False
        if now - self._last_sync_at >= self._periodic_sync_seconds:
            self._last_sync_at = now
            return True
        return False
