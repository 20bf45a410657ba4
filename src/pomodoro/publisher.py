"""Publishes the shared snapshot and throttles display refresh requests."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .constants import (
    DEFAULT_REFRESH_THRESHOLD_SECONDS,
    DISPLAY_FLOW,
    SHARED_STATE_KEY,
)
from .contracts import DisplayRefresher, KeyValueStore, StoreError
from .phases import phase_type
from .sequence import SequenceView
from .snapshot import PhaseInfo, SharedSnapshot, TimerStatus, derive_display_mode


class StateSyncPublisher:
    """Writes whole snapshots to the shared store and decides on refreshes.

    A refresh is requested only for structural changes or once the displayed
    time has drifted by ``refresh_threshold_seconds``. Both are measured
    against the snapshot displays were last refreshed with, not against the
    last published one, so small publish-to-publish steps still add up to a
    refresh and displays never lag by more than the threshold.
    """

    def __init__(
        self,
        store: KeyValueStore,
        refresher: Optional[DisplayRefresher] = None,
        *,
        key: str = SHARED_STATE_KEY,
        refresh_threshold_seconds: int = DEFAULT_REFRESH_THRESHOLD_SECONDS,
        now_fn: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._store = store
        self._refresher = refresher
        self._key = key
        self._threshold = refresh_threshold_seconds
        self._now = now_fn or (lambda: datetime.now(timezone.utc))
        self._logger = logger or logging.getLogger("pomodoro.publisher")
        self._last_published: Optional[SharedSnapshot] = None
        self._last_refreshed: Optional[SharedSnapshot] = None

    @property
    def last_published(self) -> Optional[SharedSnapshot]:
        return self._last_published

    def build_snapshot(self, sequence: SequenceView, timer: TimerStatus) -> SharedSnapshot:
        current = sequence.current_phase
        return SharedSnapshot(
            current_phase_index=sequence.current_index,
            remaining_time=timer.remaining_seconds,
            timer_running=timer.running,
            current_phase_name=current.name,
            last_update_time=self._now(),
            total_time=timer.total_seconds,
            phases=tuple(
                PhaseInfo(
                    duration=phase.duration,
                    name=phase.name,
                    status=status,
                    adjusted_duration=phase.adjusted_duration,
                )
                for phase, status in zip(sequence.phases, sequence.statuses)
            ),
            completed_cycles=sequence.completed_cycles,
            phase_completion_status=sequence.statuses,
            has_skipped_in_current_cycle=sequence.has_skipped_in_current_cycle,
            is_current_phase_work_phase=current.is_work,
            is_in_flow_count_up=timer.in_flow_count_up,
            flow_elapsed_time=timer.flow_elapsed_seconds if timer.in_flow_count_up else 0,
            display_mode=derive_display_mode(timer),
            current_phase_type=phase_type(current.name),
            phase_end_date=timer.phase_end_at,
            flow_start_date=timer.flow_start_at,
        )

    def refresh_reasons(
        self,
        old: Optional[SharedSnapshot],
        new: SharedSnapshot,
    ) -> list[str]:
        if old is None:
            return ["first publish"]

        reasons: list[str] = []
        if old.current_phase_index != new.current_phase_index:
            reasons.append("phase index")
        if old.timer_running != new.timer_running:
            reasons.append("running")
        if old.display_mode != new.display_mode:
            reasons.append("display mode")
        if old.current_phase_name != new.current_phase_name:
            reasons.append("phase name")
        if old.current_phase_type != new.current_phase_type:
            reasons.append("phase type")
        if old.completed_cycles != new.completed_cycles:
            reasons.append("completed cycles")
        if old.has_skipped_in_current_cycle != new.has_skipped_in_current_cycle:
            reasons.append("skip flag")
        if old.phase_completion_status != new.phase_completion_status:
            reasons.append("phase statuses")
        if old.total_time != new.total_time:
            reasons.append("total time")

        time_delta = abs(old.remaining_time - new.remaining_time)
        if time_delta >= self._threshold:
            reasons.append(f"remaining time moved {time_delta}s")
        if new.display_mode == DISPLAY_FLOW:
            flow_delta = abs(old.flow_elapsed_time - new.flow_elapsed_time)
            if flow_delta >= self._threshold:
                reasons.append(f"flow time moved {flow_delta}s")
        return reasons

    def publish(self, sequence: SequenceView, timer: TimerStatus) -> Optional[SharedSnapshot]:
        """Write a fresh snapshot; returns it, or None when the write failed."""
        snapshot = self.build_snapshot(sequence, timer)
        reasons = self.refresh_reasons(self._last_refreshed, snapshot)

        try:
            self._store.set(self._key, snapshot.to_dict())
        except (StoreError, TypeError, ValueError) as error:
            self._logger.error("Shared state write failed: %s", error)
            return None

        self._logger.debug(
            "Shared state written: phase=%s running=%s remaining=%ss",
            snapshot.current_phase_name,
            snapshot.timer_running,
            snapshot.remaining_time,
        )
        self._last_published = snapshot

        if reasons:
            self._logger.info("Display refresh requested: %s", ", ".join(reasons))
            self._last_refreshed = snapshot
            self._request_refresh(snapshot)
        return snapshot

    def force_refresh(self) -> None:
        if self._last_published is None:
            return
        self._logger.info("Display refresh forced")
        self._last_refreshed = self._last_published
        self._request_refresh(self._last_published)

    def _request_refresh(self, snapshot: SharedSnapshot) -> None:
        if self._refresher is not None:
            self._refresher.request_refresh(snapshot.to_dict())
