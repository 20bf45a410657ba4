"""Coordinator owning the phase timer core and serializing every mutation."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Literal, Optional, Sequence

from .constants import (
    ACTION_PAUSE,
    ACTION_RESET_CYCLE,
    ACTION_RESET_PHASE,
    ACTION_RESUME_SIGNAL,
    ACTION_SKIP,
    ACTION_START,
    ACTION_START_PHASE,
    ACTION_STOP_FLOW,
    ACTION_TOGGLE,
    ALERT_TITLE,
    DEFAULT_PERIODIC_SYNC_SECONDS,
    REASON_ALREADY_RUNNING,
    REASON_FLOW_STOPPED,
    REASON_INVALID_PHASE,
    REASON_NOT_IN_FLOW,
    REASON_NOT_RUNNING,
    REASON_PAUSED,
    REASON_RESET,
    REASON_SKIPPED,
    REASON_STARTED,
)
from .contracts import AlertPayload, AlertScheduler, KeyValueStore, StoreError
from .lease import BackgroundLeaseManager
from .phases import DEFAULT_PHASES, Phase
from .publisher import StateSyncPublisher
from .scheduler import CadencePolicy, RunLoopScheduler
from .sequence import PhaseSequenceState, SequenceView
from .snapshot import SharedSnapshot, TimerStatus
from .timeline import (
    PhaseTimeline,
    TimelineReading,
    TimerRun,
    count_up_elapsed,
    countdown_remaining,
)

PhaseAction = Literal[
    "start",
    "pause",
    "toggle",
    "skip",
    "reset_phase",
    "reset_cycle",
    "start_phase",
    "resume_signal",
    "stop_flow",
]

StateListener = Callable[[SharedSnapshot], None]


@dataclass(frozen=True)
class PhaseActionResult:
    """Result envelope returned after applying an external action."""
    action: PhaseAction
    accepted: bool
    reason: str
    snapshot: SharedSnapshot


class PhaseTimerService:
    """Owns timeline, scheduler, sequence, lease, and publisher outright.

    All mutations run under one ``asyncio.Lock`` on the owning event loop, so
    scheduler ticks and external actions never interleave. Phase boundaries
    are handled in a fixed order: stop ticking, transition, lease, persist,
    publish.
    """

    def __init__(
        self,
        *,
        store: KeyValueStore,
        publisher: StateSyncPublisher,
        phases: Sequence[Phase] = DEFAULT_PHASES,
        lease: Optional[BackgroundLeaseManager] = None,
        alerts: Optional[AlertScheduler] = None,
        infinite_mode: bool = False,
        normal_cadence: Optional[CadencePolicy] = None,
        power_saving_cadence: Optional[CadencePolicy] = None,
        periodic_sync_seconds: float = DEFAULT_PERIODIC_SYNC_SECONDS,
        clock: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._store = store
        self._publisher = publisher
        self._lease = lease
        self._alerts = alerts
        self._infinite_mode = infinite_mode
        self._normal_cadence = normal_cadence or CadencePolicy.normal()
        self._power_saving_cadence = power_saving_cadence or CadencePolicy.power_saving()
        self._clock = clock or time.time
        self._logger = logger or logging.getLogger("pomodoro.service")

        self._lock = asyncio.Lock()
        self._sequence = PhaseSequenceState(phases, logger=logging.getLogger("pomodoro.sequence"))
        self._timeline = PhaseTimeline()
        self._scheduler = RunLoopScheduler(
            evaluate=self._evaluate,
            on_tick=self._handle_tick,
            on_boundary=self._handle_boundary,
            on_periodic_sync=self._handle_periodic_sync,
            periodic_sync_seconds=periodic_sync_seconds,
            clock=self._clock,
            logger=logging.getLogger("pomodoro.scheduler"),
        )

        self._total_seconds = self._sequence.current_phase.duration
        self._remaining_seconds = self._total_seconds
        self._flow_elapsed_seconds = 0
        self._power_saving = False
        self._holds_lease = False
        self._listeners: list[StateListener] = []

    @property
    def is_running(self) -> bool:
        return self._timeline.run is not None

    @property
    def in_flow_count_up(self) -> bool:
        run = self._timeline.run
        return run is not None and run.is_count_up

    @property
    def remaining_seconds(self) -> int:
        return self._remaining_seconds

    @property
    def sequence(self) -> SequenceView:
        return self._sequence.view()

    @property
    def scheduler(self) -> RunLoopScheduler:
        return self._scheduler

    def subscribe(self, listener: StateListener) -> None:
        """Register a callback fired once per logical state transition."""
        self._listeners.append(listener)

    def index_of_phase(self, name: str) -> Optional[int]:
        return self._sequence.index_of(name)

    def snapshot(self) -> SharedSnapshot:
        return self._publisher.build_snapshot(
            self._sequence.view(),
            self._timer_status(self._clock()),
        )

    async def restore(self) -> SharedSnapshot:
        """Load persisted phase state and publish the initial snapshot."""
        async with self._lock:
            try:
                self._sequence.load(self._store)
            except StoreError as error:
                self._logger.error("Persisted phase state unreadable: %s", error)
                self._sequence.reset()
            self._reset_phase_time()
            self._persist()
            return self._publish()

    async def start(self) -> PhaseActionResult:
        async with self._lock:
            return await self._start_locked(ACTION_START)

    async def pause(self) -> PhaseActionResult:
        async with self._lock:
            return self._pause_locked(ACTION_PAUSE)

    async def toggle(self) -> PhaseActionResult:
        async with self._lock:
            if self.is_running:
                return self._pause_locked(ACTION_TOGGLE)
            return await self._start_locked(ACTION_TOGGLE)

    async def skip_current_phase(self) -> PhaseActionResult:
        async with self._lock:
            was_running = self.is_running
            self._halt_run()
            self._sequence.skip()
            self._reset_phase_time()
            self._cancel_alerts()
            if was_running:
                self._release_lease()
            self._persist()
            self._logger.info("Phase skipped, now at %s", self._sequence.current_phase.name)
            return self._result(ACTION_SKIP, True, REASON_SKIPPED, self._publish())

    async def reset_current_phase(self) -> PhaseActionResult:
        async with self._lock:
            self._halt_run()
            self._sequence.record_adjusted_duration(None)
            self._reset_phase_time()
            self._cancel_alerts()
            self._release_lease()
            self._persist()
            self._logger.info("Current phase reset: %s", self._sequence.current_phase.name)
            return self._result(ACTION_RESET_PHASE, True, REASON_RESET, self._publish())

    async def reset_cycle(self) -> PhaseActionResult:
        async with self._lock:
            self._halt_run()
            self._sequence.reset()
            self._reset_phase_time()
            self._cancel_alerts()
            self._release_lease()
            self._persist()
            self._logger.info(
                "Cycle reset, completed_cycles=%d",
                self._sequence.completed_cycles,
            )
            return self._result(ACTION_RESET_CYCLE, True, REASON_RESET, self._publish())

    async def start_phase_directly(self, index: int) -> PhaseActionResult:
        """Jump to ``index`` and start it immediately."""
        async with self._lock:
            if not 0 <= index < len(self._sequence.phases):
                self._logger.warning("Rejected jump to invalid phase index %s", index)
                return self._result(ACTION_START_PHASE, False, REASON_INVALID_PHASE, self.snapshot())

            # The lease stays held across the jump; _start_locked re-acquires only if it was lost.
            self._halt_run()
            self._cancel_alerts()
            self._sequence.jump_to(index)
            self._reset_phase_time()
            self._persist()
            self._logger.info("Jumped to phase %d (%s)", index, self._sequence.current_phase.name)
            return await self._start_locked(ACTION_START_PHASE)

    async def handle_external_resume_signal(self) -> PhaseActionResult:
        """Start the current phase from an alert response; no-op while running."""
        async with self._lock:
            if self.is_running:
                self._logger.debug("Resume signal ignored, timer already running")
                return self._result(
                    ACTION_RESUME_SIGNAL,
                    False,
                    REASON_ALREADY_RUNNING,
                    self.snapshot(),
                )
            return await self._start_locked(ACTION_RESUME_SIGNAL)

    async def stop_flow_count_up(self) -> PhaseActionResult:
        async with self._lock:
            return self._stop_flow_locked(ACTION_STOP_FLOW)

    def set_power_saving(self, enabled: bool) -> None:
        """Switch tick cadence for low-refresh displays without touching the run."""
        self._power_saving = bool(enabled)
        self._scheduler.reschedule(self._cadence_policy())

    async def shutdown(self) -> None:
        async with self._lock:
            self._scheduler.stop()
            if self._holds_lease:
                self._release_lease()
            self._persist()

    async def _start_locked(self, action: PhaseAction) -> PhaseActionResult:
        if self.is_running:
            return self._result(action, False, REASON_ALREADY_RUNNING, self.snapshot())

        now = self._clock()
        run = TimerRun.countdown(self._remaining_seconds, now)
        self._timeline.begin(run)
        self._scheduler.start(self._cadence_policy())
        self._logger.info(
            "Timer started: phase=%s remaining=%ss",
            self._sequence.current_phase.name,
            self._remaining_seconds,
        )

        await self._retain_lease()
        self._schedule_alert(self._remaining_seconds)
        return self._result(action, True, REASON_STARTED, self._publish())

    def _pause_locked(self, action: PhaseAction) -> PhaseActionResult:
        run = self._timeline.run
        if run is None:
            return self._result(action, False, REASON_NOT_RUNNING, self.snapshot())
        if run.is_count_up:
            return self._stop_flow_locked(action)

        self._remaining_seconds = countdown_remaining(run, self._clock())
        self._halt_run()
        self._cancel_alerts()
        self._release_lease()
        self._logger.info("Timer paused: remaining=%ss", self._remaining_seconds)
        return self._result(action, True, REASON_PAUSED, self._publish())

    def _stop_flow_locked(self, action: PhaseAction) -> PhaseActionResult:
        run = self._timeline.run
        if run is None or not run.is_count_up:
            return self._result(action, False, REASON_NOT_IN_FLOW, self.snapshot())

        elapsed = count_up_elapsed(run, self._clock())
        self._halt_run()
        phase = self._sequence.current_phase
        self._sequence.record_adjusted_duration(phase.duration + elapsed)
        self._logger.info("Flow count-up stopped after %ss extra", elapsed)
        self._sequence.advance(skipped=False)
        self._reset_phase_time()
        self._cancel_alerts()
        self._release_lease()
        self._persist()
        return self._result(action, True, REASON_FLOW_STOPPED, self._publish())

    def _complete_phase_locked(self, run: TimerRun) -> None:
        if self._infinite_mode and self._sequence.is_work_phase():
            end_instant = run.end_instant if run.end_instant is not None else self._clock()
            self._timeline.begin(TimerRun.count_up(end_instant))
            self._remaining_seconds = 0
            self._flow_elapsed_seconds = count_up_elapsed(self._timeline.run, self._clock())
            self._scheduler.start(self._cadence_policy())
            self._logger.info("Work phase finished, entering flow count-up")
            self._publish()
            return

        self._timeline.clear()
        completed = self._sequence.current_phase.name
        self._sequence.advance(skipped=False)
        self._reset_phase_time()
        self._release_lease()
        self._persist()
        self._logger.info(
            "Phase completed: %s -> %s",
            completed,
            self._sequence.current_phase.name,
        )
        self._publish()

    def _evaluate(self) -> Optional[TimelineReading]:
        return self._timeline.evaluate(self._clock())

    async def _handle_tick(self, reading: TimelineReading) -> None:
        async with self._lock:
            run = self._timeline.run
            if run is None:
                return
            if run.is_count_up:
                self._flow_elapsed_seconds = reading.value
            else:
                self._remaining_seconds = reading.value

    async def _handle_boundary(self, reading: TimelineReading) -> None:
        async with self._lock:
            run = self._timeline.run
            if run is None or run.is_count_up:
                return
            if countdown_remaining(run, self._clock()) > 0:
                return
            self._remaining_seconds = 0
            self._complete_phase_locked(run)

    async def _handle_periodic_sync(self) -> None:
        async with self._lock:
            if self.is_running:
                self._publish(notify=False)

    def _halt_run(self) -> None:
        self._scheduler.stop()
        self._timeline.clear()
        self._flow_elapsed_seconds = 0

    def _reset_phase_time(self) -> None:
        self._total_seconds = self._sequence.current_phase.duration
        self._remaining_seconds = self._total_seconds
        self._flow_elapsed_seconds = 0

    def _cadence_policy(self) -> CadencePolicy:
        return self._power_saving_cadence if self._power_saving else self._normal_cadence

    async def _retain_lease(self) -> None:
        if self._lease is None:
            return
        if self._holds_lease:
            if self._lease.is_active:
                return
            # Invalidated out-of-band (expiry, refused grant); this run asks again.
            self._logger.info("Background lease lost while held, re-acquiring")
        self._holds_lease = True
        await self._lease.acquire()

    def _release_lease(self) -> None:
        if self._lease is None or not self._holds_lease:
            return
        self._holds_lease = False
        self._lease.release()

    def _schedule_alert(self, delay_seconds: int) -> None:
        if self._alerts is None:
            return
        next_phase = self._sequence.next_phase
        self._alerts.cancel_all()
        self._alerts.schedule(
            delay_seconds,
            AlertPayload(
                title=ALERT_TITLE,
                next_phase_name=next_phase.name,
                next_phase_duration=next_phase.duration,
            ),
        )

    def _cancel_alerts(self) -> None:
        if self._alerts is not None:
            self._alerts.cancel_all()

    def _persist(self) -> None:
        try:
            self._sequence.save(self._store)
        except StoreError as error:
            self._logger.error("Phase state persist failed: %s", error)

    def _timer_status(self, now: float) -> TimerStatus:
        run = self._timeline.run
        if run is None:
            return TimerStatus(
                remaining_seconds=self._remaining_seconds,
                total_seconds=self._total_seconds,
                running=False,
            )
        if run.is_count_up:
            return TimerStatus(
                remaining_seconds=0,
                total_seconds=self._total_seconds,
                running=True,
                in_flow_count_up=True,
                flow_elapsed_seconds=count_up_elapsed(run, now),
                flow_start_at=_to_datetime(run.reference_instant),
            )
        end_instant = run.end_instant
        return TimerStatus(
            remaining_seconds=countdown_remaining(run, now),
            total_seconds=self._total_seconds,
            running=True,
            phase_end_at=_to_datetime(end_instant) if end_instant is not None else None,
        )

    def _publish(self, *, notify: bool = True) -> SharedSnapshot:
        sequence = self._sequence.view()
        status = self._timer_status(self._clock())
        snapshot = self._publisher.publish(sequence, status)
        if snapshot is None:
            snapshot = self._publisher.build_snapshot(sequence, status)
        if notify:
            for listener in tuple(self._listeners):
                listener(snapshot)
        return snapshot

    @staticmethod
    def _result(
        action: PhaseAction,
        accepted: bool,
        reason: str,
        snapshot: SharedSnapshot,
    ) -> PhaseActionResult:
        return PhaseActionResult(
            action=action,
            accepted=accepted,
            reason=reason,
            snapshot=snapshot,
        )


def _to_datetime(instant: float) -> datetime:
    return datetime.fromtimestamp(instant, tz=timezone.utc)
