import asyncio
import unittest

from pomodoro.contracts import GrantError
from pomodoro.lease import BackgroundLeaseManager
from runtime.grantor import ExclusiveSessionGrantor


class _FakeHandle:
    def __init__(self, on_invalidated):
        self.on_invalidated = on_invalidated
        self.is_active = True
        self.invalidations = 0

    def invalidate(self) -> None:
        self.is_active = False
        self.invalidations += 1


class _FakeGrantor:
    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.handles: list[_FakeHandle] = []

    def request(self, on_invalidated) -> _FakeHandle:
        if self.fail:
            raise GrantError("session already running")
        handle = _FakeHandle(on_invalidated)
        self.handles.append(handle)
        return handle

    def expire(self, handle: _FakeHandle) -> None:
        handle.is_active = False
        handle.on_invalidated(handle, "expired")


class _ControlledSleep:
    """Sleep stand-in that parks the caller until the test releases it."""
    def __init__(self):
        self.calls: list[float] = []
        self._gates: list[asyncio.Event] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        gate = asyncio.Event()
        self._gates.append(gate)
        await gate.wait()

    def release_all(self) -> None:
        for gate in self._gates:
            gate.set()
        self._gates.clear()


async def _no_wait(seconds: float) -> None:
    await asyncio.sleep(0)


class BackgroundLeaseManagerTests(unittest.IsolatedAsyncioTestCase):
    async def test_concurrent_acquires_share_a_single_grant(self) -> None:
        grantor = _FakeGrantor()
        manager = BackgroundLeaseManager(grantor, sleep=_no_wait)

        await asyncio.gather(manager.acquire(), manager.acquire())

        self.assertEqual(1, len(grantor.handles))
        self.assertEqual(2, manager.retain_count)
        self.assertEqual(0, manager.pending_retains)
        self.assertTrue(manager.is_active)

    async def test_acquire_while_active_only_counts(self) -> None:
        grantor = _FakeGrantor()
        manager = BackgroundLeaseManager(grantor, sleep=_no_wait)
        await manager.acquire()

        await manager.acquire()

        self.assertEqual(1, len(grantor.handles))
        self.assertEqual(2, manager.retain_count)

    async def test_last_release_invalidates_the_grant(self) -> None:
        grantor = _FakeGrantor()
        manager = BackgroundLeaseManager(grantor, sleep=_no_wait)
        await manager.acquire()
        await manager.acquire()

        manager.release()
        self.assertEqual(0, grantor.handles[0].invalidations)
        manager.release()

        self.assertEqual(1, grantor.handles[0].invalidations)
        self.assertEqual(0, manager.retain_count)
        self.assertFalse(manager.has_handle)

    async def test_release_at_zero_is_ignored(self) -> None:
        manager = BackgroundLeaseManager(_FakeGrantor(), sleep=_no_wait)
        manager.release()
        self.assertEqual(0, manager.retain_count)

    async def test_release_during_acquisition_gives_the_grant_back(self) -> None:
        grantor = _FakeGrantor()
        sleep = _ControlledSleep()
        manager = BackgroundLeaseManager(grantor, sleep=sleep)

        task = asyncio.create_task(manager.acquire())
        while not sleep.calls:
            await asyncio.sleep(0)
        self.assertTrue(manager.is_acquiring)

        manager.release()
        sleep.release_all()
        await task

        self.assertEqual(1, len(grantor.handles))
        self.assertEqual(1, grantor.handles[0].invalidations)
        self.assertEqual(0, manager.retain_count)
        self.assertFalse(manager.has_handle)

    async def test_system_invalidation_clears_state_without_reacquiring(self) -> None:
        grantor = _FakeGrantor()
        manager = BackgroundLeaseManager(grantor, sleep=_no_wait)
        await manager.acquire()

        grantor.expire(grantor.handles[0])

        self.assertFalse(manager.has_handle)
        self.assertEqual(0, manager.retain_count)
        self.assertEqual(1, len(grantor.handles))

    async def test_invalidation_while_confirming_drops_pending_retains(self) -> None:
        grantor = _FakeGrantor()
        sleep = _ControlledSleep()
        manager = BackgroundLeaseManager(grantor, sleep=sleep)

        task = asyncio.create_task(manager.acquire())
        while not sleep.calls:
            await asyncio.sleep(0)
        grantor.expire(grantor.handles[0])
        sleep.release_all()
        await task

        self.assertEqual(0, manager.retain_count)
        self.assertEqual(0, manager.pending_retains)
        self.assertFalse(manager.is_active)

    async def test_stale_handle_is_invalidated_and_settled_before_rerequest(self) -> None:
        waits: list[float] = []

        async def recording_sleep(seconds: float) -> None:
            waits.append(seconds)

        grantor = _FakeGrantor()
        manager = BackgroundLeaseManager(
            grantor,
            settle_seconds=1.5,
            confirm_seconds=0.5,
            sleep=recording_sleep,
        )
        await manager.acquire()
        stale = grantor.handles[0]
        stale.is_active = False
        waits.clear()

        await manager.acquire()

        self.assertEqual(1, stale.invalidations)
        self.assertEqual([1.5, 0.5], waits)
        self.assertEqual(2, len(grantor.handles))
        self.assertEqual(1, manager.retain_count)

    async def test_refused_grant_leaves_the_lease_idle(self) -> None:
        manager = BackgroundLeaseManager(_FakeGrantor(fail=True), sleep=_no_wait)

        with self.assertLogs("pomodoro.lease", level="WARNING"):
            await manager.acquire()

        self.assertEqual(0, manager.retain_count)
        self.assertEqual(0, manager.pending_retains)
        self.assertFalse(manager.is_acquiring)

    async def test_grant_refused_during_teardown_is_retried_after_settling(self) -> None:
        clock = [100.0]
        waits: list[float] = []

        async def advancing_sleep(seconds: float) -> None:
            waits.append(seconds)
            clock[0] += seconds

        grantor = ExclusiveSessionGrantor(teardown_seconds=1.0, clock=lambda: clock[0])
        manager = BackgroundLeaseManager(grantor, sleep=advancing_sleep)
        await manager.acquire()
        first = grantor.active_session
        manager.release()

        with self.assertLogs("pomodoro.lease", level="WARNING"):
            await manager.acquire()

        self.assertTrue(manager.is_active)
        self.assertEqual(1, manager.retain_count)
        self.assertEqual([0.5, 1.5, 0.5], waits)
        self.assertIsNot(first, grantor.active_session)
        self.assertEqual(2, grantor.active_session.session_id)
        manager.release()

    async def test_refused_retry_is_skipped_once_retains_are_released(self) -> None:
        grantor = _FakeGrantor(fail=True)
        sleep = _ControlledSleep()
        manager = BackgroundLeaseManager(grantor, sleep=sleep)

        with self.assertLogs("pomodoro.lease", level="WARNING") as logs:
            task = asyncio.create_task(manager.acquire())
            while not sleep.calls:
                await asyncio.sleep(0)
            manager.release()
            sleep.release_all()
            await task

        self.assertEqual([1.5], sleep.calls)
        self.assertEqual(1, sum("request failed" in line for line in logs.output))
        self.assertEqual(0, manager.pending_retains)
        self.assertFalse(manager.is_active)


if __name__ == "__main__":
    unittest.main()
