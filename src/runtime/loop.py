"""Runtime engine owning the timer core on a single asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Optional

from app_config import AppConfig
from pomodoro import (
    BackgroundLeaseManager,
    CadencePolicy,
    PhaseTimerService,
    StateSyncPublisher,
    load_phases,
)
from pomodoro.contracts import BackgroundGrantor, KeyValueStore
from server import InboundCommand, UIServer

from .actions import DispatchResult, RuntimeActionDispatcher
from .alerts import LoopAlertScheduler
from .diagnostics import CRITICAL, HealthReport, build_health_report
from .grantor import ExclusiveSessionGrantor
from .ui import RuntimeUIPublisher

StopCallback = Callable[[], None]

HEALTH_TIMEOUT_SECONDS = 1.0


@dataclass(frozen=True)
class RuntimeHooks:
    """Injectable lifecycle hooks used by runtime startup and shutdown flow."""
    setup_signal_handlers: Callable[[asyncio.AbstractEventLoop, StopCallback], None]


@dataclass(frozen=True)
class RuntimeBootstrap:
    """Dependency bundle required to construct the runtime engine."""
    logger: logging.Logger
    app_config: AppConfig
    state_store: KeyValueStore
    shared_store: KeyValueStore
    ui_server: Optional[UIServer]
    hooks: RuntimeHooks
    grantor: Optional[BackgroundGrantor] = None


class RuntimeEngine:
    """Wires the timer core to stores, alerts, the lease and display surfaces.

    Everything that mutates timer state runs on the loop ``run`` is awaited
    on; commands from the display server thread are marshalled onto it.
    """

    def __init__(self, bootstrap: RuntimeBootstrap):
        self._bootstrap = bootstrap
        self._logger = bootstrap.logger
        config = bootstrap.app_config

        self._ui = RuntimeUIPublisher(bootstrap.ui_server)
        self._alerts = LoopAlertScheduler(
            self._ui.publish_alert,
            logger=logging.getLogger("runtime.alerts"),
        )
        self._lease = self._build_lease()
        self._publisher = StateSyncPublisher(
            bootstrap.shared_store,
            self._ui,
            refresh_threshold_seconds=config.sync.refresh_threshold_seconds,
            logger=logging.getLogger("pomodoro.publisher"),
        )
        self._service = PhaseTimerService(
            store=bootstrap.state_store,
            publisher=self._publisher,
            phases=load_phases(
                config.timer.phases,
                logger=logging.getLogger("pomodoro.phases"),
            ),
            lease=self._lease,
            alerts=self._alerts,
            infinite_mode=config.timer.infinite_mode,
            normal_cadence=CadencePolicy.normal(
                config.scheduler.interval_seconds,
                config.scheduler.normal_tolerance_seconds,
            ),
            power_saving_cadence=CadencePolicy.power_saving(
                config.scheduler.interval_seconds,
                config.scheduler.power_saving_tolerance_seconds,
            ),
            periodic_sync_seconds=config.scheduler.periodic_sync_seconds,
            logger=logging.getLogger("pomodoro.service"),
        )
        self._service.subscribe(self._ui.publish_snapshot)
        self._dispatcher = RuntimeActionDispatcher(
            self._service,
            duplicate_window_seconds=config.actions.duplicate_window_seconds,
            logger=logging.getLogger("runtime.actions"),
        )

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None

    @property
    def service(self) -> PhaseTimerService:
        return self._service

    @property
    def dispatcher(self) -> RuntimeActionDispatcher:
        return self._dispatcher

    @property
    def lease(self) -> Optional[BackgroundLeaseManager]:
        return self._lease

    async def run(self) -> int:
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        self._bootstrap.hooks.setup_signal_handlers(self._loop, self.request_stop)

        snapshot = await self._service.restore()
        self._logger.info(
            "Timer ready: phase %d (%s), %d completed cycles",
            snapshot.current_phase_index,
            snapshot.current_phase_name,
            snapshot.completed_cycles,
        )

        ui_server = self._bootstrap.ui_server
        if ui_server is not None:
            ui_server.set_command_handler(self._on_command)
            ui_server.set_health_source(self.health_from_thread)

        try:
            await self._stop.wait()
        finally:
            await self._shutdown()
        return 0

    def request_stop(self) -> None:
        if self._stop is not None:
            self._stop.set()

    async def handle_action(self, action: str) -> DispatchResult:
        dispatch = await self._dispatcher.dispatch(action)
        self._ui.publish_action_result(dispatch)
        return dispatch

    def health_report(self) -> HealthReport:
        """Collect diagnostics; call on the core loop."""
        return build_health_report(self._service, self._lease, self._bootstrap.shared_store)

    def health_from_thread(self) -> dict[str, Any]:
        """Collect diagnostics from another thread by hopping onto the core loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return HealthReport.single("runtime", "loop", CRITICAL, "Runtime not running").to_dict()
        future = asyncio.run_coroutine_threadsafe(self._collect_health(), loop)
        try:
            return future.result(timeout=HEALTH_TIMEOUT_SECONDS)
        except FutureTimeoutError:
            future.cancel()
            self._logger.warning("Health check timed out after %.1fs", HEALTH_TIMEOUT_SECONDS)
            return HealthReport.single("runtime", "loop", CRITICAL, "Core loop unresponsive").to_dict()

    async def _collect_health(self) -> dict[str, Any]:
        return self.health_report().to_dict()

    def _build_lease(self) -> Optional[BackgroundLeaseManager]:
        settings = self._bootstrap.app_config.lease
        if not settings.enabled:
            self._logger.info("Background lease disabled via lease.enabled=false")
            return None
        grantor = self._bootstrap.grantor or ExclusiveSessionGrantor(
            max_session_seconds=settings.max_session_seconds,
            teardown_seconds=settings.teardown_seconds,
            logger=logging.getLogger("runtime.grantor"),
        )
        return BackgroundLeaseManager(
            grantor,
            settle_seconds=settings.settle_seconds,
            confirm_seconds=settings.confirm_seconds,
            logger=logging.getLogger("pomodoro.lease"),
        )

    def _on_command(self, command: InboundCommand) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            self._logger.warning("Dropping command %s, runtime not running", command.action)
            return
        future = asyncio.run_coroutine_threadsafe(self.handle_action(command.action), loop)
        future.add_done_callback(self._log_command_failure)

    def _log_command_failure(self, future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self._logger.error("Command handling failed: %s", error, exc_info=error)

    async def _shutdown(self) -> None:
        self._logger.info("Stopping timer core...")
        self._alerts.cancel_all()
        await self._service.shutdown()

        ui_server = self._bootstrap.ui_server
        if ui_server is not None:
            ui_server.set_command_handler(None)
            ui_server.set_health_source(None)
            self._logger.info("Stopping UI server...")
            ui_server.stop(timeout_seconds=5.0)
