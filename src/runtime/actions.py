"""Dispatcher that executes named external actions against the timer service."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from contracts.ui_protocol import (
    COMMAND_DISPLAY_ACTIVE,
    COMMAND_DISPLAY_DIMMED,
    COMMAND_OPEN,
    COMMAND_PAUSE,
    COMMAND_RESET_CYCLE,
    COMMAND_RESET_PHASE,
    COMMAND_SKIP_PHASE,
    COMMAND_START,
    COMMAND_START_BREAK,
    COMMAND_START_LONG_BREAK,
    COMMAND_START_NEXT_PHASE,
    COMMAND_START_WORK,
    COMMAND_STOP_FLOW,
    COMMAND_TOGGLE,
)
from pomodoro import PhaseActionResult, PhaseTimerService
from pomodoro.constants import PHASE_LONG_BREAK, PHASE_SHORT_BREAK, PHASE_WORK

DispatchOutcome = Literal["success", "duplicate", "rejected", "failed", "unsupported"]

_PHASE_BY_COMMAND = {
    COMMAND_START_WORK: PHASE_WORK,
    COMMAND_START_BREAK: PHASE_SHORT_BREAK,
    COMMAND_START_LONG_BREAK: PHASE_LONG_BREAK,
}


@dataclass(frozen=True)
class DispatchResult:
    action: str
    outcome: DispatchOutcome
    message: str
    result: Optional[PhaseActionResult] = None


@dataclass
class ExecutionStats:
    """Running counters of external action handling."""
    total_requests: int = 0
    successful_executions: int = 0
    duplicate_requests: int = 0
    failed_executions: int = 0

    @property
    def success_rate(self) -> float:
        if self.total_requests <= 0:
            return 0.0
        return self.successful_executions / self.total_requests


class RuntimeActionDispatcher:
    """Routes deep-link, alert-response and display commands to the service.

    The same action repeated inside ``duplicate_window_seconds`` is dropped,
    so a doubly delivered link does not toggle the timer twice.
    """

    def __init__(
        self,
        service: PhaseTimerService,
        *,
        duplicate_window_seconds: float = 1.0,
        clock: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._service = service
        self._duplicate_window = duplicate_window_seconds
        self._clock = clock or time.monotonic
        self._logger = logger or logging.getLogger("runtime.actions")
        self._last_execution: dict[str, float] = {}
        self._stats = ExecutionStats()

    @property
    def stats(self) -> ExecutionStats:
        return self._stats

    def reset_statistics(self) -> None:
        self._stats = ExecutionStats()
        self._last_execution.clear()
        self._logger.info("Action statistics reset")

    def execution_report(self) -> str:
        stats = self._stats
        return (
            f"requests={stats.total_requests} "
            f"successes={stats.successful_executions} "
            f"duplicates={stats.duplicate_requests} "
            f"failures={stats.failed_executions} "
            f"success_rate={stats.success_rate * 100:.1f}%"
        )

    async def dispatch(self, action: str) -> DispatchResult:
        self._stats.total_requests += 1

        if not self._is_supported(action):
            self._logger.warning("Unsupported action: %s", action)
            self._stats.failed_executions += 1
            return DispatchResult(action, "unsupported", f"unsupported action: {action}")

        now = self._clock()
        last = self._last_execution.get(action)
        if last is not None and now - last < self._duplicate_window:
            self._stats.duplicate_requests += 1
            message = f"{action} ignored, executed {now - last:.1f}s ago"
            self._logger.debug(message)
            return DispatchResult(action, "duplicate", message)

        self._logger.info("Executing action: %s", action)
        dispatch_result = await self._execute(action)
        self._last_execution[action] = self._clock()

        if dispatch_result.outcome == "failed":
            self._stats.failed_executions += 1
        else:
            self._stats.successful_executions += 1
        return dispatch_result

    def _is_supported(self, action: str) -> bool:
        return action in _PHASE_BY_COMMAND or action in {
            COMMAND_OPEN,
            COMMAND_START,
            COMMAND_PAUSE,
            COMMAND_TOGGLE,
            COMMAND_SKIP_PHASE,
            COMMAND_RESET_PHASE,
            COMMAND_RESET_CYCLE,
            COMMAND_START_NEXT_PHASE,
            COMMAND_STOP_FLOW,
            COMMAND_DISPLAY_DIMMED,
            COMMAND_DISPLAY_ACTIVE,
        }

    async def _execute(self, action: str) -> DispatchResult:
        service = self._service

        if action == COMMAND_OPEN:
            return DispatchResult(action, "success", "opened")

        if action in (COMMAND_DISPLAY_DIMMED, COMMAND_DISPLAY_ACTIVE):
            power_saving = action == COMMAND_DISPLAY_DIMMED
            service.set_power_saving(power_saving)
            return DispatchResult(
                action,
                "success",
                "power saving cadence" if power_saving else "normal cadence",
            )

        if action in _PHASE_BY_COMMAND:
            phase_name = _PHASE_BY_COMMAND[action]
            index = service.index_of_phase(phase_name)
            if index is None:
                return DispatchResult(action, "failed", f"no {phase_name} phase configured")
            return self._wrap(action, await service.start_phase_directly(index))

        if action == COMMAND_START:
            return self._wrap(action, await service.start())
        if action == COMMAND_PAUSE:
            return self._wrap(action, await service.pause())
        if action == COMMAND_TOGGLE:
            return self._wrap(action, await service.toggle())
        if action == COMMAND_SKIP_PHASE:
            return self._wrap(action, await service.skip_current_phase())
        if action == COMMAND_RESET_PHASE:
            return self._wrap(action, await service.reset_current_phase())
        if action == COMMAND_RESET_CYCLE:
            return self._wrap(action, await service.reset_cycle())
        if action == COMMAND_START_NEXT_PHASE:
            return self._wrap(action, await service.handle_external_resume_signal())
        return self._wrap(action, await service.stop_flow_count_up())

    @staticmethod
    def _wrap(action: str, result: PhaseActionResult) -> DispatchResult:
        outcome: DispatchOutcome = "success" if result.accepted else "rejected"
        return DispatchResult(action, outcome, result.reason, result)
