"""In-process key-value store."""

from __future__ import annotations

import copy
import threading
from typing import Any, Mapping


class MemoryStore:
    """Thread-safe dict-backed store; values are deep-copied on the way in and out."""
    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._values: dict[str, Any] = copy.deepcopy(dict(initial or {}))
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._values:
                return default
            return copy.deepcopy(self._values[key])

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = copy.deepcopy(value)

    def set_many(self, values: Mapping[str, Any]) -> None:
        staged = copy.deepcopy(dict(values))
        with self._lock:
            self._values.update(staged)

    def as_dict(self) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._values)
