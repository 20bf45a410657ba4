from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from contracts.ui_protocol import EVENT_ACTION_RESULT, EVENT_ALERT, EVENT_REFRESH, EVENT_SNAPSHOT
from pomodoro import SharedSnapshot
from pomodoro.contracts import AlertPayload

from .actions import DispatchResult
from .alerts import alert_event_payload


class UIServerLike(Protocol):
    def publish(self, event_type: str, **payload: Any) -> None:
        ...


class RuntimeUIPublisher:
    """Null-safe facade over the optional display server."""
    def __init__(self, ui_server: Optional[UIServerLike]):
        self._ui_server = ui_server

    def publish(self, event_type: str, **payload: Any) -> None:
        if self._ui_server:
            self._ui_server.publish(event_type, **payload)

    def request_refresh(self, snapshot: Mapping[str, Any]) -> None:
        self.publish(EVENT_REFRESH, snapshot=dict(snapshot))

    def publish_snapshot(self, snapshot: SharedSnapshot) -> None:
        self.publish(EVENT_SNAPSHOT, snapshot=snapshot.to_dict())

    def publish_alert(self, payload: AlertPayload) -> None:
        self.publish(EVENT_ALERT, **alert_event_payload(payload))

    def publish_action_result(self, dispatch: DispatchResult) -> None:
        payload: dict[str, Any] = {
            "action": dispatch.action,
            "outcome": dispatch.outcome,
            "message": dispatch.message,
        }
        if dispatch.result is not None:
            payload["accepted"] = dispatch.result.accepted
            payload["reason"] = dispatch.result.reason
        self.publish(EVENT_ACTION_RESULT, **payload)
