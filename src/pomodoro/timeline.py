"""Wall-clock countdown/count-up computation for a single timer run."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Optional

from .constants import MODE_COUNT_UP, MODE_COUNTDOWN

TimerMode = Literal["countdown", "count_up"]


@dataclass(frozen=True)
class TimerRun:
    """Immutable description of an active run; recreated on every resume."""
    mode: TimerMode
    reference_instant: float
    total_duration: int = 0
    running: bool = True

    @classmethod
    def countdown(cls, total_duration: int, now: float) -> "TimerRun":
        return cls(mode=MODE_COUNTDOWN, reference_instant=now, total_duration=int(total_duration))

    @classmethod
    def count_up(cls, reference_instant: float) -> "TimerRun":
        return cls(mode=MODE_COUNT_UP, reference_instant=reference_instant)

    @property
    def is_count_up(self) -> bool:
        return self.mode == MODE_COUNT_UP

    @property
    def end_instant(self) -> Optional[float]:
        if self.is_count_up:
            return None
        return self.reference_instant + max(0, self.total_duration)


@dataclass(frozen=True)
class TimelineReading:
    """Remaining (countdown) or elapsed (count-up) seconds at one instant."""
    value: int
    crossed_boundary: bool = False


def countdown_remaining(run: TimerRun, now: float) -> int:
    if run.total_duration <= 0:
        return 0
    elapsed = max(0.0, now - run.reference_instant)
    remaining = int(math.ceil(run.total_duration - elapsed))
    return max(0, min(run.total_duration, remaining))


def count_up_elapsed(run: TimerRun, now: float) -> int:
    return max(0, int(math.floor(now - run.reference_instant)))


class PhaseTimeline:
    """Evaluates the current run against the clock with an edge-triggered boundary.

    Every evaluation is derived from ``reference_instant`` so missed ticks
    (sleep, suspension) self-correct instead of accumulating drift.
    """

    def __init__(self) -> None:
        self._run: Optional[TimerRun] = None
        self._boundary_reported = False

    @property
    def run(self) -> Optional[TimerRun]:
        return self._run

    def begin(self, run: TimerRun) -> None:
        self._run = run
        self._boundary_reported = False

    def clear(self) -> None:
        self._run = None
        self._boundary_reported = False

    def evaluate(self, now: float) -> Optional[TimelineReading]:
        run = self._run
        if run is None:
            return None

        if run.is_count_up:
            return TimelineReading(value=count_up_elapsed(run, now))

        remaining = countdown_remaining(run, now)
        crossed = remaining == 0 and not self._boundary_reported
        if crossed:
            self._boundary_reported = True
        return TimelineReading(value=remaining, crossed_boundary=crossed)
