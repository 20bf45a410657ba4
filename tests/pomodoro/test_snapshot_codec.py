import datetime as dt
import json
import unittest

from pomodoro.snapshot import (
    PhaseInfo,
    SharedSnapshot,
    SnapshotDecodeError,
    TimerStatus,
    decode_snapshot,
    derive_display_mode,
    encode_snapshot,
    placeholder_snapshot,
    read_snapshot_or_placeholder,
)

NOW = dt.datetime(2026, 3, 1, 9, 30, tzinfo=dt.timezone.utc)


def _snapshot(**overrides) -> SharedSnapshot:
    values = dict(
        current_phase_index=1,
        remaining_time=120,
        timer_running=True,
        current_phase_name="Short Break",
        last_update_time=NOW,
        total_time=300,
        phases=(
            PhaseInfo(1500, "Work", "normalCompleted", adjusted_duration=1740),
            PhaseInfo(300, "Short Break", "current"),
            PhaseInfo(1500, "Work", "notStarted"),
            PhaseInfo(900, "Long Break", "notStarted"),
        ),
        completed_cycles=3,
        phase_completion_status=("normalCompleted", "current", "notStarted", "notStarted"),
        has_skipped_in_current_cycle=False,
        is_current_phase_work_phase=False,
        display_mode="countdown",
        current_phase_type="shortBreak",
        phase_end_date=NOW + dt.timedelta(seconds=120),
    )
    values.update(overrides)
    return SharedSnapshot(**values)


class DisplayModeTests(unittest.TestCase):
    def test_display_mode_precedence(self) -> None:
        self.assertEqual(
            "flow",
            derive_display_mode(TimerStatus(0, 1500, True, in_flow_count_up=True)),
        )
        self.assertEqual("countdown", derive_display_mode(TimerStatus(10, 1500, True)))
        self.assertEqual("paused", derive_display_mode(TimerStatus(10, 1500, False)))
        self.assertEqual("idle", derive_display_mode(TimerStatus(0, 1500, False)))


class SnapshotCodecTests(unittest.TestCase):
    def test_encoded_keys_follow_shared_schema(self) -> None:
        payload = json.loads(encode_snapshot(_snapshot()))

        self.assertEqual(1, payload["currentPhaseIndex"])
        self.assertEqual("countdown", payload["displayMode"])
        self.assertEqual("shortBreak", payload["currentPhaseType"])
        self.assertEqual(NOW.isoformat(), payload["lastUpdateTime"])
        self.assertEqual(1740, payload["phases"][0]["adjustedDuration"])
        self.assertNotIn("adjustedDuration", payload["phases"][1])
        self.assertIsNone(payload["flowStartDate"])

    def test_decode_restores_an_equal_snapshot(self) -> None:
        original = _snapshot()
        self.assertEqual(original, decode_snapshot(encode_snapshot(original)))

    def test_derived_helpers(self) -> None:
        snapshot = _snapshot()

        self.assertAlmostEqual(0.6, snapshot.progress)
        self.assertEqual("Work", snapshot.next_phase().name)
        self.assertEqual(0.0, _snapshot(total_time=0).progress)

    def test_unknown_phase_type_decodes_as_unknown(self) -> None:
        payload = _snapshot().to_dict()
        payload["currentPhaseType"] = "stretch"

        self.assertEqual("unknown", decode_snapshot(payload).current_phase_type)

    def test_unknown_display_mode_is_rejected(self) -> None:
        payload = _snapshot().to_dict()
        payload["displayMode"] = "ambient"

        with self.assertRaises(SnapshotDecodeError):
            decode_snapshot(payload)

    def test_missing_field_is_rejected(self) -> None:
        payload = _snapshot().to_dict()
        del payload["remainingTime"]

        with self.assertRaises(SnapshotDecodeError):
            decode_snapshot(payload)

    def test_malformed_json_is_rejected(self) -> None:
        with self.assertRaises(SnapshotDecodeError):
            decode_snapshot("{not json")


class PlaceholderTests(unittest.TestCase):
    def test_placeholder_is_idle_work(self) -> None:
        snapshot = placeholder_snapshot(NOW)

        self.assertEqual("Work", snapshot.current_phase_name)
        self.assertEqual("idle", snapshot.display_mode)
        self.assertFalse(snapshot.timer_running)
        self.assertEqual(NOW, snapshot.last_update_time)

    def test_reader_never_raises(self) -> None:
        self.assertEqual("Work", read_snapshot_or_placeholder(None).current_phase_name)
        self.assertEqual("idle", read_snapshot_or_placeholder("garbage").display_mode)
        self.assertEqual(0, read_snapshot_or_placeholder({"displayMode": "flow"}).total_time)

    def test_reader_passes_valid_data_through(self) -> None:
        original = _snapshot()
        self.assertEqual(original, read_snapshot_or_placeholder(original.to_dict()))


if __name__ == "__main__":
    unittest.main()
