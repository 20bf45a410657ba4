"""Utilities for serializing display events and preserving sticky state."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from contracts.ui_protocol import (
    COMMAND_MESSAGE_TYPE,
    COMMANDS,
    STICKY_EVENT_ORDER,
    STICKY_EVENT_TYPES,
)


def make_event(
    event_type: str,
    *,
    now_fn: Callable[[], datetime] | None = None,
    **payload: Any,
) -> str:
    """Serialize an event payload with type and timestamp for websocket delivery."""
    now = now_fn() if now_fn is not None else datetime.now(timezone.utc)
    return json.dumps(
        {
            "type": event_type,
            "timestamp": now.isoformat(),
            **payload,
        }
    )


@dataclass(frozen=True)
class InboundCommand:
    """Action request received from a connected display surface."""
    action: str
    params: dict[str, Any]


def parse_command(message: str | bytes) -> Optional[InboundCommand]:
    """Decode an inbound websocket message; returns None for anything but a known command."""
    try:
        payload = json.loads(message)
    except ValueError:
        return None
    if not isinstance(payload, dict) or payload.get("type") != COMMAND_MESSAGE_TYPE:
        return None
    action = payload.get("action")
    if action not in COMMANDS:
        return None
    params = {
        key: value
        for key, value in payload.items()
        if key not in ("type", "action")
    }
    return InboundCommand(action=action, params=params)


class StickyEventStore:
    """Thread-safe cache of sticky events replayed to new websocket clients."""
    def __init__(self):
        self._events: dict[str, str] = {}
        self._lock = threading.Lock()

    def remember(self, event_type: str, message: str) -> None:
        if event_type not in STICKY_EVENT_TYPES:
            return
        with self._lock:
            self._events[event_type] = message

    def latest(self, event_type: str) -> Optional[str]:
        with self._lock:
            return self._events.get(event_type)

    def snapshot(self) -> list[str]:
        with self._lock:
            return [self._events[key] for key in STICKY_EVENT_ORDER if key in self._events]
