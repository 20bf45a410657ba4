"""JSON-file key-value store with whole-file atomic replacement."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Mapping, Optional

from pomodoro.contracts import StoreError


class JsonFileStore:
    """Persists a flat JSON object; every write replaces the file atomically.

    Readers in other processes therefore see either the previous or the new
    document, never a partial one.
    """

    def __init__(self, path: str | Path, logger: Optional[logging.Logger] = None):
        self._path = Path(path)
        self._logger = logger or logging.getLogger("storage")
        self._lock = threading.Lock()
        try:
            self._values: dict[str, Any] = self._read()
        except StoreError as error:
            self._logger.warning("Discarding unreadable store: %s", error)
            self._values = {}

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, Any]) -> None:
        with self._lock:
            merged = {**self._values, **values}
            self._write(merged)
            self._values = merged

    def reload(self) -> None:
        with self._lock:
            self._values = self._read()

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as error:
            raise StoreError(f"Cannot read store file {self._path}: {error}") from error
        if not isinstance(raw, dict):
            raise StoreError(f"Store file {self._path} must contain a JSON object")
        return raw

    def _write(self, values: Mapping[str, Any]) -> None:
        try:
            payload = json.dumps(values, indent=2, sort_keys=True)
        except (TypeError, ValueError) as error:
            raise StoreError(f"Store values are not JSON serializable: {error}") from error

        temp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(payload + "\n", encoding="utf-8")
            os.replace(temp_path, self._path)
        except OSError as error:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass
            raise StoreError(f"Cannot write store file {self._path}: {error}") from error
        self._logger.debug("Store written: %s (%d keys)", self._path, len(values))
