"""Advisory phase-end alerts scheduled on the core event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from pomodoro.contracts import AlertPayload

AlertSink = Callable[[AlertPayload], None]


class LoopAlertScheduler:
    """Schedules at most one pending alert with ``loop.call_later``.

    Delivery is best effort: a cancelled or superseded alert is simply
    dropped, and the timer never depends on an alert firing.
    """

    def __init__(
        self,
        sink: Optional[AlertSink] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self._sink = sink
        self._logger = logger or logging.getLogger("runtime.alerts")
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def has_pending(self) -> bool:
        return self._handle is not None and not self._handle.cancelled()

    def schedule(self, delay_seconds: int, payload: AlertPayload) -> None:
        self.cancel_all()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(delay_seconds, 0), self._fire, payload)
        self._logger.debug(
            "Alert scheduled in %ss (next phase %s)",
            delay_seconds,
            payload.next_phase_name,
        )

    def cancel_all(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None

    def _fire(self, payload: AlertPayload) -> None:
        self._handle = None
        self._logger.info(
            "%s Next up: %s (%d min)",
            payload.title,
            payload.next_phase_name,
            payload.next_phase_duration // 60,
        )
        if self._sink is not None:
            self._sink(payload)


def alert_event_payload(payload: AlertPayload) -> dict[str, object]:
    """Websocket payload for an alert, in the shared snapshot's key style."""
    return {
        "title": payload.title,
        "nextPhaseName": payload.next_phase_name,
        "nextPhaseDuration": payload.next_phase_duration,
    }
