"""Reference-counted wrapper around the exclusive background-execution grant."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .constants import DEFAULT_LEASE_CONFIRM_SECONDS, DEFAULT_LEASE_SETTLE_SECONDS
from .contracts import BackgroundGrantor, GrantError, GrantHandle

Sleep = Callable[[float], Awaitable[None]]


class BackgroundLeaseManager:
    """Shares one OS grant between every caller that needs background execution.

    Only this class talks to the grantor. ``osHandle`` is kept only while a
    grant is believed active; OS-side invalidation clears it and is never
    followed by an automatic re-acquire. A refused request is asked again
    once, after the settle wait.
    """

    def __init__(
        self,
        grantor: BackgroundGrantor,
        *,
        settle_seconds: float = DEFAULT_LEASE_SETTLE_SECONDS,
        confirm_seconds: float = DEFAULT_LEASE_CONFIRM_SECONDS,
        sleep: Optional[Sleep] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._grantor = grantor
        self._settle_seconds = settle_seconds
        self._confirm_seconds = confirm_seconds
        self._sleep = sleep or asyncio.sleep
        self._logger = logger or logging.getLogger("pomodoro.lease")

        self._handle: Optional[GrantHandle] = None
        self._retain_count = 0
        self._pending_retains = 0
        self._acquiring = False

    @property
    def retain_count(self) -> int:
        return self._retain_count

    @property
    def pending_retains(self) -> int:
        return self._pending_retains

    @property
    def is_acquiring(self) -> bool:
        return self._acquiring

    @property
    def has_handle(self) -> bool:
        return self._handle is not None

    @property
    def is_active(self) -> bool:
        return self._handle is not None and self._handle.is_active and self._retain_count > 0

    async def acquire(self) -> None:
        if self._retain_count > 0 and self._handle is not None and self._handle.is_active:
            self._retain_count += 1
            self._logger.debug("Lease already held, retain_count=%d", self._retain_count)
            return

        self._pending_retains += 1
        if self._acquiring:
            self._logger.debug(
                "Lease acquisition in flight, pending=%d",
                self._pending_retains,
            )
            return

        self._acquiring = True
        try:
            await self._acquire_grant()
        finally:
            self._acquiring = False

    def release(self) -> None:
        if self._acquiring:
            if self._pending_retains > 0:
                self._pending_retains -= 1
                self._logger.debug(
                    "Lease released during acquisition, pending=%d",
                    self._pending_retains,
                )
            return

        if self._retain_count <= 0:
            self._logger.debug("Lease release ignored, retain_count already 0")
            return

        self._retain_count -= 1
        if self._retain_count > 0:
            self._logger.debug("Lease still retained, retain_count=%d", self._retain_count)
            return

        handle = self._handle
        self._handle = None
        if handle is None:
            return
        self._logger.info("Releasing background grant")
        self._invalidate(handle)

    async def _acquire_grant(self) -> None:
        stale = self._handle
        if stale is not None:
            self._logger.info("Invalidating stale background grant before re-request")
            self._handle = None
            self._retain_count = 0
            self._invalidate(stale)
            await self._sleep(self._settle_seconds)

        if self._pending_retains == 0:
            self._logger.debug("All pending retains released, skipping grant request")
            return

        if self._handle is not None:
            self._logger.warning("Background grant appeared during settle, aborting request")
            self._pending_retains = max(self._pending_retains - 1, 0)
            return

        handle = self._request_grant()
        if handle is None:
            # A session released moments ago may still be tearing down.
            await self._sleep(self._settle_seconds)
            if self._pending_retains == 0:
                self._logger.debug("All pending retains released while settling")
                return
            handle = self._request_grant()
        if handle is None:
            self._logger.warning("Background grant unavailable, continuing without it")
            self._pending_retains = 0
            return

        self._handle = handle
        self._logger.info("Requested background grant (pending=%d)", self._pending_retains)

        await self._sleep(self._confirm_seconds)

        if self._handle is not handle:
            self._logger.info("Background grant invalidated before confirmation")
            self._pending_retains = 0
            return

        if self._pending_retains == 0:
            self._logger.info("No retains left after confirmation, releasing grant")
            self._handle = None
            self._invalidate(handle)
            return

        self._retain_count += self._pending_retains
        self._pending_retains = 0
        self._logger.info("Background grant active, retain_count=%d", self._retain_count)

    def _request_grant(self) -> Optional[GrantHandle]:
        try:
            return self._grantor.request(self._handle_invalidated)
        except GrantError as error:
            self._logger.warning("Background grant request failed: %s", error)
            return None

    def _handle_invalidated(self, handle: GrantHandle, reason: str) -> None:
        if handle is not self._handle:
            self._logger.debug("Ignoring invalidation of a previous grant: %s", reason)
            return

        self._logger.info("Background grant invalidated by the system: %s", reason)
        self._handle = None
        if self._acquiring:
            self._pending_retains = 0
        else:
            self._retain_count = 0

    def _invalidate(self, handle: GrantHandle) -> None:
        try:
            handle.invalidate()
        except GrantError as error:
            self._logger.warning("Background grant invalidation failed: %s", error)
