import json
import socket
import threading
import unittest
import urllib.error
import urllib.request

from websockets.sync.client import connect

from server import UIServer, UIServerConfig


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class UIServerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.port = _free_port()
        self.commands = []
        self.command_seen = threading.Event()
        self.server = UIServer(
            UIServerConfig(host="127.0.0.1", port=self.port),
            snapshot_source=lambda: None,
            command_handler=self._on_command,
        )
        self.server.start()

    def tearDown(self) -> None:
        self.server.stop()

    def _on_command(self, command) -> None:
        self.commands.append(command)
        self.command_seen.set()

    def _get(self, path: str):
        return urllib.request.urlopen(f"http://127.0.0.1:{self.port}{path}", timeout=2)

    def test_healthz_without_source_returns_plain_ok(self) -> None:
        with self._get("/healthz") as response:
            self.assertEqual(200, response.status)
            self.assertEqual(b"ok\n", response.read())

    def test_healthz_serves_report_from_source(self) -> None:
        self.server.set_health_source(lambda: {"status": "warning", "items": []})

        with self._get("/healthz") as response:
            self.assertEqual(200, response.status)
            self.assertEqual("warning", json.loads(response.read())["status"])

    def test_critical_health_maps_to_service_unavailable(self) -> None:
        self.server.set_health_source(lambda: {"status": "critical", "items": []})

        with self.assertRaises(urllib.error.HTTPError) as raised:
            self._get("/healthz")

        self.assertEqual(503, raised.exception.code)
        self.assertEqual("critical", json.loads(raised.exception.read())["status"])
        raised.exception.close()

    def test_snapshot_route_falls_back_to_placeholder(self) -> None:
        with self._get("/snapshot") as response:
            payload = json.loads(response.read())

        self.assertFalse(payload["timerRunning"])
        self.assertEqual(0, payload["currentPhaseIndex"])

    def test_unknown_path_is_not_found(self) -> None:
        with self.assertRaises(urllib.error.HTTPError) as raised:
            self._get("/nope")

        self.assertEqual(404, raised.exception.code)
        raised.exception.close()

    def test_new_display_gets_hello_then_latest_snapshot(self) -> None:
        self.server.publish("snapshot", snapshot={"remainingTime": 1500})
        self.server.publish("snapshot", snapshot={"remainingTime": 1400})

        with connect(f"ws://127.0.0.1:{self.port}/ws") as websocket:
            hello = json.loads(websocket.recv(timeout=2))
            replayed = json.loads(websocket.recv(timeout=2))

        self.assertEqual("hello", hello["type"])
        self.assertEqual("snapshot", replayed["type"])
        self.assertEqual({"remainingTime": 1400}, replayed["snapshot"])

    def test_commands_reach_handler_and_garbage_gets_error(self) -> None:
        with connect(f"ws://127.0.0.1:{self.port}/ws") as websocket:
            websocket.recv(timeout=2)
            websocket.send("not json")
            error = json.loads(websocket.recv(timeout=2))
            websocket.send(json.dumps({"type": "command", "action": "start"}))
            self.assertTrue(self.command_seen.wait(2))

        self.assertEqual("error", error["type"])
        self.assertEqual(["start"], [command.action for command in self.commands])


if __name__ == "__main__":
    unittest.main()
