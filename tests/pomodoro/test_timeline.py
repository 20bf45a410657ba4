import unittest

from pomodoro.timeline import (
    PhaseTimeline,
    TimerRun,
    count_up_elapsed,
    countdown_remaining,
)


class CountdownMathTests(unittest.TestCase):
    def test_remaining_rounds_partial_seconds_up(self) -> None:
        run = TimerRun.countdown(1500, now=1000.0)

        self.assertEqual(1500, countdown_remaining(run, 1000.0))
        self.assertEqual(1500, countdown_remaining(run, 1000.4))
        self.assertEqual(1499, countdown_remaining(run, 1001.0))
        self.assertEqual(1, countdown_remaining(run, 2499.2))
        self.assertEqual(0, countdown_remaining(run, 2500.0))

    def test_remaining_is_clamped_to_total_and_zero(self) -> None:
        run = TimerRun.countdown(60, now=500.0)

        self.assertEqual(60, countdown_remaining(run, 400.0))
        self.assertEqual(0, countdown_remaining(run, 10_000.0))

    def test_non_positive_total_is_already_expired(self) -> None:
        run = TimerRun.countdown(0, now=500.0)
        self.assertEqual(0, countdown_remaining(run, 500.0))

    def test_end_instant_only_exists_for_countdowns(self) -> None:
        self.assertEqual(1300.0, TimerRun.countdown(300, now=1000.0).end_instant)
        self.assertIsNone(TimerRun.count_up(1000.0).end_instant)

    def test_count_up_floors_elapsed_seconds(self) -> None:
        run = TimerRun.count_up(2000.0)

        self.assertEqual(0, count_up_elapsed(run, 2000.9))
        self.assertEqual(61, count_up_elapsed(run, 2061.5))
        self.assertEqual(0, count_up_elapsed(run, 1990.0))


class PhaseTimelineTests(unittest.TestCase):
    def test_evaluate_without_run_returns_none(self) -> None:
        timeline = PhaseTimeline()
        self.assertIsNone(timeline.evaluate(100.0))

    def test_boundary_is_reported_exactly_once(self) -> None:
        timeline = PhaseTimeline()
        timeline.begin(TimerRun.countdown(3, now=100.0))

        readings = [timeline.evaluate(now) for now in (100.0, 101.0, 102.0, 103.0, 104.0)]

        self.assertEqual([3, 2, 1, 0, 0], [reading.value for reading in readings])
        self.assertEqual(
            [False, False, False, True, False],
            [reading.crossed_boundary for reading in readings],
        )

    def test_missed_ticks_jump_straight_to_the_boundary(self) -> None:
        timeline = PhaseTimeline()
        timeline.begin(TimerRun.countdown(300, now=0.0))

        reading = timeline.evaluate(3600.0)

        self.assertEqual(0, reading.value)
        self.assertTrue(reading.crossed_boundary)

    def test_zero_duration_run_crosses_on_first_evaluation(self) -> None:
        timeline = PhaseTimeline()
        timeline.begin(TimerRun.countdown(0, now=50.0))

        reading = timeline.evaluate(50.0)
        self.assertTrue(reading.crossed_boundary)

    def test_begin_rearms_boundary_for_a_new_run(self) -> None:
        timeline = PhaseTimeline()
        timeline.begin(TimerRun.countdown(1, now=0.0))
        self.assertTrue(timeline.evaluate(1.0).crossed_boundary)

        timeline.begin(TimerRun.countdown(1, now=10.0))
        self.assertFalse(timeline.evaluate(10.0).crossed_boundary)
        self.assertTrue(timeline.evaluate(11.0).crossed_boundary)

    def test_count_up_never_crosses_a_boundary(self) -> None:
        timeline = PhaseTimeline()
        timeline.begin(TimerRun.count_up(0.0))

        reading = timeline.evaluate(86_400.0)

        self.assertEqual(86_400, reading.value)
        self.assertFalse(reading.crossed_boundary)

    def test_clear_stops_evaluation(self) -> None:
        timeline = PhaseTimeline()
        timeline.begin(TimerRun.countdown(10, now=0.0))
        timeline.clear()

        self.assertIsNone(timeline.run)
        self.assertIsNone(timeline.evaluate(5.0))


if __name__ == "__main__":
    unittest.main()
