import asyncio
import logging
import unittest
from pathlib import Path

from app_config_parser import parse_app_config
from runtime import RuntimeBootstrap, RuntimeEngine, RuntimeHooks
from server import InboundCommand
from storage import MemoryStore


class _Handle:
    def __init__(self):
        self.is_active = True

    def invalidate(self) -> None:
        self.is_active = False


class _Grantor:
    def __init__(self):
        self.handles: list[_Handle] = []

    def request(self, on_invalidated) -> _Handle:
        handle = _Handle()
        self.handles.append(handle)
        return handle


class _RecordingUIServer:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []
        self.handler = None
        self.health_source = None
        self.stopped = False

    def publish(self, event_type: str, **payload) -> None:
        self.events.append((event_type, payload))

    def set_command_handler(self, handler) -> None:
        self.handler = handler

    def set_health_source(self, source) -> None:
        self.health_source = source

    def stop(self, timeout_seconds: float = 5.0) -> None:
        self.stopped = True

    def of_type(self, event_type: str) -> list[dict]:
        return [payload for kind, payload in self.events if kind == event_type]


async def _until(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class RuntimeEngineTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        config = parse_app_config(
            {"lease": {"settle_seconds": 0, "confirm_seconds": 0}},
            base_dir=Path("."),
            source_file="",
        )
        self.state_store = MemoryStore({"currentPhaseIndex": 1, "completedCycles": 2})
        self.shared_store = MemoryStore()
        self.ui_server = _RecordingUIServer()
        self.grantor = _Grantor()
        self.engine = RuntimeEngine(
            RuntimeBootstrap(
                logger=logging.getLogger("runtime"),
                app_config=config,
                state_store=self.state_store,
                shared_store=self.shared_store,
                ui_server=self.ui_server,
                hooks=RuntimeHooks(setup_signal_handlers=lambda loop, stop: None),
                grantor=self.grantor,
            )
        )
        self.run_task = asyncio.create_task(self.engine.run())
        await _until(lambda: self.ui_server.handler is not None)

    async def asyncTearDown(self) -> None:
        self.engine.request_stop()
        await asyncio.wait_for(self.run_task, timeout=2.0)

    async def test_startup_restores_state_and_publishes_snapshot(self) -> None:
        shared = self.shared_store.get("TimerState")

        self.assertEqual(1, shared["currentPhaseIndex"])
        self.assertEqual("Short Break", shared["currentPhaseName"])
        self.assertEqual(2, shared["completedCycles"])
        self.assertTrue(self.ui_server.of_type("snapshot"))

    async def test_action_result_and_snapshot_are_published(self) -> None:
        dispatch = await self.engine.handle_action("start")

        self.assertEqual("success", dispatch.outcome)
        self.assertTrue(self.engine.service.is_running)
        self.assertEqual(1, len(self.grantor.handles))
        result = self.ui_server.of_type("action_result")[-1]
        self.assertEqual("start", result["action"])
        self.assertTrue(result["accepted"])
        self.assertEqual("countdown", self.ui_server.of_type("snapshot")[-1]["snapshot"]["displayMode"])

    async def test_command_from_server_thread_reaches_service(self) -> None:
        handler = self.ui_server.handler

        await asyncio.to_thread(handler, InboundCommand(action="skipPhase", params={}))
        await _until(lambda: self.engine.service.sequence.current_index == 2)

        self.assertEqual(2, self.state_store.get("currentPhaseIndex"))

    async def test_stop_releases_lease_and_stops_server(self) -> None:
        await self.engine.handle_action("start")

        self.engine.request_stop()
        await asyncio.wait_for(self.run_task, timeout=2.0)

        self.assertTrue(self.ui_server.stopped)
        self.assertIsNone(self.ui_server.handler)
        self.assertFalse(self.grantor.handles[0].is_active)
        self.assertFalse(self.engine.service.scheduler.is_armed)
        self.assertIsNone(self.ui_server.health_source)

    async def test_health_report_collected_from_server_thread(self) -> None:
        await self.engine.handle_action("start")

        report = await asyncio.to_thread(self.ui_server.health_source)

        self.assertEqual("healthy", report["status"])
        categories = {item["category"]: item for item in report["items"]}
        self.assertEqual({"timer", "lease", "shared_state"}, set(categories))
        self.assertTrue(categories["lease"]["details"]["active"])
        self.assertEqual("countdown", categories["shared_state"]["details"]["displayMode"])

    async def test_health_reports_lost_lease_while_running(self) -> None:
        await self.engine.handle_action("start")
        self.grantor.handles[0].invalidate()

        report = self.engine.health_report().to_dict()

        self.assertEqual("warning", report["status"])
        lease_item = next(item for item in report["items"] if item["category"] == "lease")
        self.assertEqual("consistency", lease_item["name"])


if __name__ == "__main__":
    unittest.main()
