import asyncio
import logging
import signal
from typing import Callable, Optional

from app_config import AppConfigurationError, load_app_config
from pomodoro.constants import SHARED_STATE_KEY
from runtime import RuntimeBootstrap, RuntimeEngine, RuntimeHooks
from server import ServerConfigurationError, UIServer, UIServerConfig
from storage import JsonFileStore


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure logging for the application."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("runtime")


def setup_signal_handlers(loop: asyncio.AbstractEventLoop, stop: Callable[[], None]) -> None:
    """Set up graceful shutdown on SIGTERM and SIGINT."""
    for signum in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(signum, stop)
        except NotImplementedError:
            # Windows event loops have no signal support; Ctrl+C still raises.
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(stop))


def main() -> int:
    """Run the phase timer until a shutdown signal arrives."""
    logger = setup_logging(level=logging.INFO)

    try:
        app_config = load_app_config()
        logger.info("Loaded runtime config: %s", app_config.source_file or "built-in defaults")
    except AppConfigurationError as error:
        logger.error("App configuration error: %s", error)
        return 1

    state_store = JsonFileStore(app_config.store.state_file, logger=logging.getLogger("storage"))
    shared_store = JsonFileStore(app_config.store.shared_file, logger=logging.getLogger("storage"))

    # Optional websocket server for display surfaces
    ui_server: Optional[UIServer] = None
    ui_server_config: Optional[UIServerConfig] = None
    try:
        ui_server_config = UIServerConfig.from_settings(app_config.ui_server)
    except ServerConfigurationError as error:
        logger.error("UI server configuration error: %s", error)
        logger.warning("Continuing without UI server.")

    if ui_server_config and ui_server_config.enabled:
        ui_server = UIServer(
            config=ui_server_config,
            snapshot_source=lambda: shared_store.get(SHARED_STATE_KEY),
            logger=logging.getLogger("ui_server"),
        )
        try:
            logger.info("Starting UI server...")
            ui_server.start(timeout_seconds=5.0)
        except RuntimeError as error:
            logger.error("UI server startup failed: %s", error)
            logger.warning("Continuing without UI server.")
            ui_server = None

    engine = RuntimeEngine(
        RuntimeBootstrap(
            logger=logger,
            app_config=app_config,
            state_store=state_store,
            shared_store=shared_store,
            ui_server=ui_server,
            hooks=RuntimeHooks(setup_signal_handlers=setup_signal_handlers),
        )
    )

    try:
        return asyncio.run(engine.run())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by keyboard interrupt.")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
