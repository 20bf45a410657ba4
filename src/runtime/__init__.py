"""Runtime engine exports."""

from .actions import DispatchResult, ExecutionStats, RuntimeActionDispatcher
from .alerts import LoopAlertScheduler
from .diagnostics import DiagnosticItem, HealthReport, build_health_report
from .grantor import ExclusiveSessionGrantor, SessionGrant
from .loop import RuntimeBootstrap, RuntimeEngine, RuntimeHooks

__all__ = [
    "DiagnosticItem",
    "DispatchResult",
    "ExclusiveSessionGrantor",
    "ExecutionStats",
    "HealthReport",
    "LoopAlertScheduler",
    "RuntimeActionDispatcher",
    "RuntimeBootstrap",
    "RuntimeEngine",
    "RuntimeHooks",
    "SessionGrant",
    "build_health_report",
]
