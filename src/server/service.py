from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any, Awaitable, Callable, Mapping, Optional
from urllib.parse import urlsplit

import websockets
from websockets.asyncio.server import ServerConnection
from websockets.datastructures import Headers
from websockets.http11 import Request, Response

from contracts.ui_protocol import EVENT_ERROR, EVENT_HELLO
from pomodoro.snapshot import encode_snapshot, read_snapshot_or_placeholder

from .config import HEALTHZ_PATH, SNAPSHOT_PATH, UIServerConfig
from .events import InboundCommand, StickyEventStore, make_event, parse_command

CommandHandler = Callable[[InboundCommand], None]
SnapshotSource = Callable[[], Any]
HealthSource = Callable[[], Mapping[str, Any]]

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


class UIServer:
    """Websocket feed for display surfaces, served from its own thread and loop.

    ``publish`` may be called from any thread. Inbound commands reach
    ``command_handler`` on the server thread; the receiver marshals them onto
    its own loop. ``health_source`` is likewise called off the server loop.
    """

    def __init__(
        self,
        config: UIServerConfig,
        *,
        snapshot_source: Optional[SnapshotSource] = None,
        command_handler: Optional[CommandHandler] = None,
        health_source: Optional[HealthSource] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._snapshot_source = snapshot_source
        self._command_handler = command_handler
        self._health_source = health_source
        self._logger = logger or logging.getLogger("ui_server")
        self._sticky = StickyEventStore()
        self._clients: set[ServerConnection] = set()
        self._routes: dict[str, Callable[[], Awaitable[Response]]] = {
            SNAPSHOT_PATH: self._snapshot_response,
            HEALTHZ_PATH: self._health_response,
        }

        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown: Optional[asyncio.Event] = None
        self._ready = threading.Event()
        self._startup_error: Optional[Exception] = None

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and self._startup_error is None

    def set_command_handler(self, handler: Optional[CommandHandler]) -> None:
        self._command_handler = handler

    def set_health_source(self, source: Optional[HealthSource]) -> None:
        self._health_source = source

    def start(self, timeout_seconds: float = 5.0) -> None:
        if self.is_running:
            self._logger.warning("UI server is already running")
            return

        self._startup_error = None
        self._ready.clear()
        self._thread = threading.Thread(target=self._thread_main, daemon=True, name="ui-server")
        self._thread.start()

        if not self._ready.wait(timeout_seconds):
            raise RuntimeError(f"UI server did not start within {timeout_seconds:.1f}s")
        if self._startup_error is not None:
            raise RuntimeError(f"UI server startup failed: {self._startup_error}")

    def stop(self, timeout_seconds: float = 5.0) -> None:
        thread = self._thread
        if thread is None:
            return
        if self._loop is not None and self._shutdown is not None:
            self._loop.call_soon_threadsafe(self._shutdown.set)
        thread.join(timeout=timeout_seconds)
        if thread.is_alive():
            self._logger.error("UI server thread did not stop within %.1fs", timeout_seconds)
        self._thread = None
        self._loop = None
        self._shutdown = None

    def publish(self, event_type: str, **payload: Any) -> None:
        message = make_event(event_type, **payload)
        self._sticky.remember(event_type, message)

        loop = self._loop
        if not self.is_running or loop is None:
            return
        try:
            future = asyncio.run_coroutine_threadsafe(self._broadcast(message), loop)
        except RuntimeError:
            # Loop closed between the check and the call.
            return
        future.add_done_callback(self._log_broadcast_failure)

    def _log_broadcast_failure(self, future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self._logger.warning("Broadcast failed: %s", error)

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._shutdown = asyncio.Event()
        try:
            loop.run_until_complete(self._serve())
        except OSError as error:
            self._startup_error = error
            self._logger.error("UI server failed: %s", error, exc_info=True)
            self._ready.set()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()

    async def _serve(self) -> None:
        async with websockets.serve(
            self._handle_connection,
            host=self._config.host,
            port=self._config.port,
            process_request=self._route_http,
            logger=self._logger,
        ):
            self._logger.info(
                "UI server running at ws://%s:%d%s",
                self._config.host,
                self._config.port,
                self._config.websocket_path,
            )
            self._ready.set()
            await self._shutdown.wait()
            await asyncio.gather(
                *(client.close(code=1001, reason="Server shutting down") for client in tuple(self._clients)),
                return_exceptions=True,
            )
            self._clients.clear()

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        request = websocket.request
        if request is None or urlsplit(request.path).path != self._config.websocket_path:
            await websocket.close(code=1008, reason="Invalid websocket path")
            return

        self._clients.add(websocket)
        self._logger.info("Display connected: %s", websocket.remote_address)
        try:
            await websocket.send(make_event(EVENT_HELLO, message="Display connected"))
            for message in self._sticky.snapshot():
                await websocket.send(message)
            async for message in websocket:
                await self._handle_message(websocket, message)
        except websockets.exceptions.ConnectionClosed:
            self._logger.info("Display disconnected: %s", websocket.remote_address)
        finally:
            self._clients.discard(websocket)

    async def _handle_message(self, websocket: ServerConnection, message: str | bytes) -> None:
        command = parse_command(message)
        if command is None:
            self._logger.debug("Ignoring unrecognized message: %s", message)
            await websocket.send(make_event(EVENT_ERROR, message="Unrecognized command"))
            return

        self._logger.info("Command received from display: %s", command.action)
        if self._command_handler is None:
            self._logger.warning("No command handler registered, dropping %s", command.action)
            return
        self._command_handler(command)

    async def _route_http(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        del connection
        path = urlsplit(request.path).path
        if path == self._config.websocket_path:
            return None
        route = self._routes.get(path)
        if route is None:
            return _response(404, "Not Found", b"not found\n", TEXT_CONTENT_TYPE)
        return await route()

    async def _snapshot_response(self) -> Response:
        raw = self._snapshot_source() if self._snapshot_source is not None else None
        body = encode_snapshot(read_snapshot_or_placeholder(raw)).encode("utf-8")
        return _response(200, "OK", body, JSON_CONTENT_TYPE)

    async def _health_response(self) -> Response:
        source = self._health_source
        if source is None:
            return _response(200, "OK", b"ok\n", TEXT_CONTENT_TYPE)
        # The source may block waiting on another loop.
        report = await asyncio.to_thread(source)
        body = json.dumps(report).encode("utf-8")
        if report.get("status") == "critical":
            return _response(503, "Service Unavailable", body, JSON_CONTENT_TYPE)
        return _response(200, "OK", body, JSON_CONTENT_TYPE)

    async def _broadcast(self, message: str) -> None:
        clients = tuple(self._clients)
        if not clients:
            return
        results = await asyncio.gather(
            *(client.send(message) for client in clients),
            return_exceptions=True,
        )
        for client, result in zip(clients, results):
            if isinstance(result, Exception):
                self._logger.warning("Failed to send message to display: %s", result)
                self._clients.discard(client)


def _response(status_code: int, reason_phrase: str, body: bytes, content_type: str) -> Response:
    headers = Headers()
    headers["Content-Type"] = content_type
    headers["Content-Length"] = str(len(body))
    headers["Cache-Control"] = "no-store"
    return Response(status_code, reason_phrase, headers, body)
