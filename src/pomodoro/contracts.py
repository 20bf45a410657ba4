"""Protocols describing collaborators injected into the timer core."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol


class StoreError(Exception):
    """Raised when a key-value store cannot be read or written."""


class GrantError(Exception):
    """Raised by a grantor when the OS refuses or fails a grant operation."""


class KeyValueStore(Protocol):
    """Opaque persistent store; ``set_many`` must be applied as one write."""
    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def set_many(self, values: Mapping[str, Any]) -> None:
        ...


class GrantHandle(Protocol):
    """OS background-execution grant as seen by the lease manager."""
    @property
    def is_active(self) -> bool:
        ...

    def invalidate(self) -> None:
        ...


InvalidationCallback = Callable[[GrantHandle, str], None]


class BackgroundGrantor(Protocol):
    """Issues single-instance background-execution grants."""
    def request(self, on_invalidated: InvalidationCallback) -> GrantHandle:
        ...


@dataclass(frozen=True)
class AlertPayload:
    """Content of the advisory alert fired when the current phase ends."""
    title: str
    next_phase_name: str
    next_phase_duration: int


class AlertScheduler(Protocol):
    """Best-effort advisory alert delivery."""
    def schedule(self, delay_seconds: int, payload: AlertPayload) -> None:
        ...

    def cancel_all(self) -> None:
        ...


class DisplayRefresher(Protocol):
    """Asks external display surfaces to re-read the shared snapshot."""
    def request_refresh(self, snapshot: Mapping[str, Any]) -> None:
        ...


class StateListener(Protocol):
    def __call__(self, snapshot: Any) -> None:
        ...

