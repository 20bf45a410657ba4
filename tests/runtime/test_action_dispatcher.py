import unittest

from pomodoro.publisher import StateSyncPublisher
from pomodoro.scheduler import CadencePolicy
from pomodoro.service import PhaseTimerService
from runtime.actions import RuntimeActionDispatcher
from storage import MemoryStore


class _Clock:
    def __init__(self):
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


class RuntimeActionDispatcherTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.service = PhaseTimerService(
            store=MemoryStore(),
            publisher=StateSyncPublisher(MemoryStore()),
            normal_cadence=CadencePolicy.normal(interval_seconds=0.01),
            power_saving_cadence=CadencePolicy.power_saving(interval_seconds=0.01),
        )
        self.clock = _Clock()
        self.dispatcher = RuntimeActionDispatcher(
            self.service,
            duplicate_window_seconds=1.0,
            clock=self.clock,
        )

    async def asyncTearDown(self) -> None:
        await self.service.shutdown()

    async def test_toggle_starts_timer(self) -> None:
        dispatch = await self.dispatcher.dispatch("toggle")

        self.assertEqual("success", dispatch.outcome)
        self.assertEqual("started", dispatch.message)
        self.assertTrue(self.service.is_running)

    async def test_repeated_action_inside_window_is_duplicate(self) -> None:
        await self.dispatcher.dispatch("toggle")
        self.clock.now += 0.4

        dispatch = await self.dispatcher.dispatch("toggle")

        self.assertEqual("duplicate", dispatch.outcome)
        self.assertTrue(self.service.is_running)
        self.assertEqual(1, self.dispatcher.stats.duplicate_requests)

    async def test_repeated_action_after_window_executes(self) -> None:
        await self.dispatcher.dispatch("toggle")
        self.clock.now += 1.5

        dispatch = await self.dispatcher.dispatch("toggle")

        self.assertEqual("paused", dispatch.message)
        self.assertFalse(self.service.is_running)

    async def test_unsupported_action_counts_as_failure(self) -> None:
        dispatch = await self.dispatcher.dispatch("selfDestruct")

        self.assertEqual("unsupported", dispatch.outcome)
        self.assertEqual(1, self.dispatcher.stats.failed_executions)
        self.assertFalse(self.service.is_running)

    async def test_rejected_action_reports_reason(self) -> None:
        dispatch = await self.dispatcher.dispatch("pause")

        self.assertEqual("rejected", dispatch.outcome)
        self.assertEqual("not_running", dispatch.message)
        self.assertFalse(dispatch.result.accepted)

    async def test_start_long_break_jumps_by_phase_name(self) -> None:
        dispatch = await self.dispatcher.dispatch("startLongBreak")

        self.assertEqual("success", dispatch.outcome)
        self.assertEqual(3, self.service.sequence.current_index)
        self.assertTrue(self.service.is_running)

    async def test_display_commands_switch_cadence(self) -> None:
        await self.dispatcher.dispatch("displayDimmed")
        self.assertEqual("power_saving", self.service.scheduler.policy.name)

        await self.dispatcher.dispatch("displayActive")
        self.assertEqual("normal", self.service.scheduler.policy.name)

    async def test_start_next_phase_is_noop_while_running(self) -> None:
        await self.dispatcher.dispatch("start")

        dispatch = await self.dispatcher.dispatch("START_NEXT_PHASE")

        self.assertEqual("rejected", dispatch.outcome)
        self.assertEqual("already_running", dispatch.message)

    async def test_report_and_reset(self) -> None:
        await self.dispatcher.dispatch("open")
        await self.dispatcher.dispatch("bogus")

        self.assertEqual(0.5, self.dispatcher.stats.success_rate)
        self.assertIn("requests=2", self.dispatcher.execution_report())

        self.dispatcher.reset_statistics()
        self.assertEqual(0, self.dispatcher.stats.total_requests)


if __name__ == "__main__":
    unittest.main()
