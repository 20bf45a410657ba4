"""Immutable cross-process snapshot of timer and phase state."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal, Mapping, Optional

from .constants import (
    DISPLAY_COUNTDOWN,
    DISPLAY_FLOW,
    DISPLAY_IDLE,
    DISPLAY_MODES,
    DISPLAY_PAUSED,
    PHASE_STATUSES,
    PHASE_TYPE_UNKNOWN,
    PHASE_TYPE_WORK,
    PHASE_TYPES,
    PHASE_WORK,
    STATUS_CURRENT,
)

DisplayMode = Literal["flow", "countdown", "paused", "idle"]
PhaseType = Literal["work", "shortBreak", "longBreak", "unknown"]


class SnapshotDecodeError(ValueError):
    """Raised when a stored snapshot cannot be decoded."""


@dataclass(frozen=True)
class TimerStatus:
    """Timer-side inputs for a snapshot, captured at one instant."""
    remaining_seconds: int
    total_seconds: int
    running: bool
    in_flow_count_up: bool = False
    flow_elapsed_seconds: int = 0
    phase_end_at: Optional[datetime] = None
    flow_start_at: Optional[datetime] = None


@dataclass(frozen=True)
class PhaseInfo:
    duration: int
    name: str
    status: str
    adjusted_duration: Optional[int] = None


@dataclass(frozen=True)
class SharedSnapshot:
    """Externally published projection; always written and read as a whole."""
    current_phase_index: int
    remaining_time: int
    timer_running: bool
    current_phase_name: str
    last_update_time: datetime
    total_time: int
    phases: tuple[PhaseInfo, ...]
    completed_cycles: int
    phase_completion_status: tuple[str, ...]
    has_skipped_in_current_cycle: bool
    is_current_phase_work_phase: bool
    is_in_flow_count_up: bool = False
    flow_elapsed_time: int = 0
    display_mode: DisplayMode = DISPLAY_IDLE
    current_phase_type: PhaseType = PHASE_TYPE_UNKNOWN
    phase_end_date: Optional[datetime] = None
    flow_start_date: Optional[datetime] = None

    @property
    def progress(self) -> float:
        if self.total_time <= 0:
            return 0.0
        return 1.0 - self.remaining_time / self.total_time

    def next_phase(self) -> Optional[PhaseInfo]:
        if not self.phases:
            return None
        return self.phases[(self.current_phase_index + 1) % len(self.phases)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentPhaseIndex": self.current_phase_index,
            "remainingTime": self.remaining_time,
            "timerRunning": self.timer_running,
            "currentPhaseName": self.current_phase_name,
            "lastUpdateTime": _encode_datetime(self.last_update_time),
            "totalTime": self.total_time,
            "phases": [_encode_phase(phase) for phase in self.phases],
            "completedCycles": self.completed_cycles,
            "phaseCompletionStatus": list(self.phase_completion_status),
            "hasSkippedInCurrentCycle": self.has_skipped_in_current_cycle,
            "isCurrentPhaseWorkPhase": self.is_current_phase_work_phase,
            "isInFlowCountUp": self.is_in_flow_count_up,
            "flowElapsedTime": self.flow_elapsed_time,
            "displayMode": self.display_mode,
            "currentPhaseType": self.current_phase_type,
            "phaseEndDate": _encode_datetime(self.phase_end_date),
            "flowStartDate": _encode_datetime(self.flow_start_date),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "SharedSnapshot":
        if not isinstance(raw, Mapping):
            raise SnapshotDecodeError("snapshot must be an object")
        try:
            display_mode = raw.get("displayMode", DISPLAY_IDLE)
            if display_mode not in DISPLAY_MODES:
                raise SnapshotDecodeError(f"unknown displayMode: {display_mode!r}")
            phase_type = raw.get("currentPhaseType", PHASE_TYPE_UNKNOWN)
            if phase_type not in PHASE_TYPES:
                phase_type = PHASE_TYPE_UNKNOWN
            statuses = tuple(raw["phaseCompletionStatus"])
            if any(status not in PHASE_STATUSES for status in statuses):
                raise SnapshotDecodeError("unknown phase completion status")
            last_update = _decode_datetime(raw["lastUpdateTime"])
            if last_update is None:
                raise SnapshotDecodeError("lastUpdateTime is required")

            return cls(
                current_phase_index=_int(raw["currentPhaseIndex"]),
                remaining_time=_int(raw["remainingTime"]),
                timer_running=bool(raw["timerRunning"]),
                current_phase_name=str(raw["currentPhaseName"]),
                last_update_time=last_update,
                total_time=_int(raw["totalTime"]),
                phases=tuple(_decode_phase(item) for item in raw.get("phases", [])),
                completed_cycles=_int(raw["completedCycles"]),
                phase_completion_status=statuses,
                has_skipped_in_current_cycle=bool(raw["hasSkippedInCurrentCycle"]),
                is_current_phase_work_phase=bool(
                    raw.get("isCurrentPhaseWorkPhase", raw["currentPhaseName"] == PHASE_WORK)
                ),
                is_in_flow_count_up=bool(raw.get("isInFlowCountUp", False)),
                flow_elapsed_time=_int(raw.get("flowElapsedTime", 0)),
                display_mode=display_mode,
                current_phase_type=phase_type,
                phase_end_date=_decode_datetime(raw.get("phaseEndDate")),
                flow_start_date=_decode_datetime(raw.get("flowStartDate")),
            )
        except SnapshotDecodeError:
            raise
        except (KeyError, TypeError, ValueError) as error:
            raise SnapshotDecodeError(f"invalid snapshot: {error}") from error


def derive_display_mode(status: TimerStatus) -> DisplayMode:
    if status.in_flow_count_up and status.running:
        return DISPLAY_FLOW
    if status.running:
        return DISPLAY_COUNTDOWN
    if status.remaining_seconds > 0:
        return DISPLAY_PAUSED
    return DISPLAY_IDLE


def encode_snapshot(snapshot: SharedSnapshot) -> str:
    return json.dumps(snapshot.to_dict(), separators=(",", ":"))


def decode_snapshot(raw: Any) -> SharedSnapshot:
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except ValueError as error:
            raise SnapshotDecodeError(f"snapshot is not valid JSON: {error}") from error
    return SharedSnapshot.from_dict(raw)


def placeholder_snapshot(now: Optional[datetime] = None) -> SharedSnapshot:
    """Neutral snapshot shown by consumers when no usable data exists."""
    return SharedSnapshot(
        current_phase_index=0,
        remaining_time=0,
        timer_running=False,
        current_phase_name=PHASE_WORK,
        last_update_time=now or datetime.now(timezone.utc),
        total_time=0,
        phases=(),
        completed_cycles=0,
        phase_completion_status=(STATUS_CURRENT,),
        has_skipped_in_current_cycle=False,
        is_current_phase_work_phase=True,
        current_phase_type=PHASE_TYPE_WORK,
    )


def read_snapshot_or_placeholder(raw: Any) -> SharedSnapshot:
    """Decode ``raw`` for display, never raising on absent or corrupt data."""
    if raw is None:
        return placeholder_snapshot()
    try:
        return decode_snapshot(raw)
    except SnapshotDecodeError:
        return placeholder_snapshot()


def _encode_phase(phase: PhaseInfo) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "duration": phase.duration,
        "name": phase.name,
        "status": phase.status,
    }
    if phase.adjusted_duration is not None:
        payload["adjustedDuration"] = phase.adjusted_duration
    return payload


def _decode_phase(raw: Any) -> PhaseInfo:
    if not isinstance(raw, Mapping):
        raise SnapshotDecodeError("phase entry must be an object")
    adjusted = raw.get("adjustedDuration")
    return PhaseInfo(
        duration=_int(raw["duration"]),
        name=str(raw["name"]),
        status=str(raw["status"]),
        adjusted_duration=_int(adjusted) if adjusted is not None else None,
    )


def _encode_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _decode_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise SnapshotDecodeError("timestamps must be ISO-8601 strings")
    return datetime.fromisoformat(value)


def _int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SnapshotDecodeError(f"expected integer, got {value!r}")
    return value
