"""Simulated single-instance background session grants."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from pomodoro.contracts import GrantError, InvalidationCallback

REASON_EXPIRED = "expired"
REASON_INVALIDATED = "invalidated"


class SessionGrant:
    """One background session; invalidation is reported through the callback."""

    def __init__(
        self,
        grantor: "ExclusiveSessionGrantor",
        on_invalidated: InvalidationCallback,
        session_id: int,
    ):
        self._grantor = grantor
        self._on_invalidated = on_invalidated
        self._expiry: Optional[asyncio.TimerHandle] = None
        self.session_id = session_id
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    def invalidate(self) -> None:
        self._end(REASON_INVALIDATED)

    def expire(self) -> None:
        self._end(REASON_EXPIRED)

    def _end(self, reason: str) -> None:
        if not self._active:
            return
        self._active = False
        if self._expiry is not None:
            self._expiry.cancel()
            self._expiry = None
        self._grantor._session_ended(self, reason)
        self._on_invalidated(self, reason)


class ExclusiveSessionGrantor:
    """Hands out at most one live session at a time.

    Requests are refused while a session is live or still tearing down, and
    sessions expire on their own after ``max_session_seconds``.
    """

    def __init__(
        self,
        *,
        max_session_seconds: float = 3600.0,
        teardown_seconds: float = 1.0,
        clock: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._max_session_seconds = max_session_seconds
        self._teardown_seconds = teardown_seconds
        self._clock = clock or time.monotonic
        self._logger = logger or logging.getLogger("runtime.grantor")
        self._active: Optional[SessionGrant] = None
        self._teardown_until = 0.0
        self._next_id = 1

    @property
    def active_session(self) -> Optional[SessionGrant]:
        return self._active

    def request(self, on_invalidated: InvalidationCallback) -> SessionGrant:
        if self._active is not None:
            raise GrantError("another background session is already running")
        remaining = self._teardown_until - self._clock()
        if remaining > 0:
            raise GrantError(f"previous session still tearing down ({remaining:.2f}s)")

        grant = SessionGrant(self, on_invalidated, self._next_id)
        self._next_id += 1
        self._active = grant
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            grant._expiry = loop.call_later(self._max_session_seconds, grant.expire)
        self._logger.info("Background session %d started", grant.session_id)
        return grant

    def _session_ended(self, grant: SessionGrant, reason: str) -> None:
        if self._active is grant:
            self._active = None
        self._teardown_until = self._clock() + self._teardown_seconds
        self._logger.info("Background session %d ended: %s", grant.session_id, reason)
