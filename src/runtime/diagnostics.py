"""Health checks over the timer core, background lease and shared snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pomodoro import BackgroundLeaseManager, PhaseTimerService, SnapshotDecodeError
from pomodoro.constants import SHARED_STATE_KEY
from pomodoro.contracts import KeyValueStore
from pomodoro.snapshot import decode_snapshot

HealthStatus = Literal["healthy", "warning", "critical"]

HEALTHY: HealthStatus = "healthy"
WARNING: HealthStatus = "warning"
CRITICAL: HealthStatus = "critical"

_SEVERITY = {HEALTHY: 0, WARNING: 1, CRITICAL: 2}


@dataclass(frozen=True)
class DiagnosticItem:
    category: str
    name: str
    status: HealthStatus
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "name": self.name,
            "status": self.status,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class HealthReport:
    """Overall status is the worst status among the items."""
    items: tuple[DiagnosticItem, ...]

    @property
    def status(self) -> HealthStatus:
        worst = HEALTHY
        for item in self.items:
            if _SEVERITY[item.status] > _SEVERITY[worst]:
                worst = item.status
        return worst

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def single(cls, category: str, name: str, status: HealthStatus, message: str) -> "HealthReport":
        return cls(items=(DiagnosticItem(category, name, status, message),))


def check_timer_core(service: PhaseTimerService) -> list[DiagnosticItem]:
    snapshot = service.snapshot()
    items: list[DiagnosticItem] = []

    if snapshot.timer_running and not snapshot.is_in_flow_count_up and snapshot.remaining_time <= 0:
        items.append(
            DiagnosticItem(
                "timer",
                "state_consistency",
                WARNING,
                "Countdown running with no time remaining",
                {"remainingTime": snapshot.remaining_time},
            )
        )
    if snapshot.total_time <= 0:
        items.append(
            DiagnosticItem(
                "timer",
                "configuration",
                WARNING,
                "Current phase has no duration",
                {"totalTime": snapshot.total_time},
            )
        )

    if not items:
        items.append(
            DiagnosticItem(
                "timer",
                "status",
                HEALTHY,
                "Timer core consistent",
                {
                    "running": snapshot.timer_running,
                    "phase": snapshot.current_phase_name,
                    "remainingTime": snapshot.remaining_time,
                    "totalTime": snapshot.total_time,
                },
            )
        )
    return items


def check_background_lease(
    service: PhaseTimerService,
    lease: Optional[BackgroundLeaseManager],
) -> list[DiagnosticItem]:
    if lease is None:
        return [DiagnosticItem("lease", "status", HEALTHY, "Background lease disabled")]

    details = {
        "active": lease.is_active,
        "retainCount": lease.retain_count,
        "pendingRetains": lease.pending_retains,
        "acquiring": lease.is_acquiring,
    }
    if lease.retain_count < 0:
        return [DiagnosticItem("lease", "retain_count", CRITICAL, "Negative retain count", details)]
    if service.is_running and not lease.is_active:
        return [
            DiagnosticItem(
                "lease",
                "consistency",
                WARNING,
                "Timer running without a background lease",
                details,
            )
        ]
    return [DiagnosticItem("lease", "status", HEALTHY, "Background lease consistent", details)]


def check_shared_state(
    service: PhaseTimerService,
    shared_store: KeyValueStore,
    *,
    key: str = SHARED_STATE_KEY,
) -> list[DiagnosticItem]:
    raw = shared_store.get(key)
    if raw is None:
        return [DiagnosticItem("shared_state", "availability", WARNING, "No shared snapshot written")]
    try:
        shared = decode_snapshot(raw)
    except SnapshotDecodeError as error:
        return [
            DiagnosticItem(
                "shared_state",
                "availability",
                WARNING,
                "Shared snapshot unreadable",
                {"error": str(error)},
            )
        ]

    expected_mode = service.snapshot().display_mode
    details = {
        "displayMode": shared.display_mode,
        "isInFlow": shared.is_in_flow_count_up,
        "flowElapsed": shared.flow_elapsed_time,
    }
    if shared.display_mode != expected_mode:
        details["expectedMode"] = expected_mode
        return [
            DiagnosticItem(
                "shared_state",
                "consistency",
                WARNING,
                "Shared snapshot display mode out of sync",
                details,
            )
        ]
    return [DiagnosticItem("shared_state", "consistency", HEALTHY, "Shared snapshot in sync", details)]


def build_health_report(
    service: PhaseTimerService,
    lease: Optional[BackgroundLeaseManager],
    shared_store: KeyValueStore,
) -> HealthReport:
    """Run every check; call on the loop that owns ``service``."""
    items = [
        *check_timer_core(service),
        *check_background_lease(service, lease),
        *check_shared_state(service, shared_store),
    ]
    return HealthReport(items=tuple(items))
