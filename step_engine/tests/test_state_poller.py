"""Timing and error-propagation tests for the state poller."""

import unittest

from step_engine.poller import PollTimeout, StatePoller


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class CountingFetch:
    def __init__(self, fail_on=None) -> None:
        self.calls = 0
        self._fail_on = fail_on

    async def __call__(self) -> int:
        self.calls += 1
        if self.calls == self._fail_on:
            raise ConnectionError("daemon went away")
        return self.calls


class StatePollerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.poller = StatePoller(interval=1.0, deadline=3.5, clock=self.clock, sleep=self.clock.sleep)

    async def test_returns_immediately_when_first_state_matches(self) -> None:
        fetch = CountingFetch()

        state = await self.poller.poll(fetch, lambda value: True)

        self.assertEqual(state, 1)
        self.assertEqual(fetch.calls, 1)
        self.assertEqual(self.clock.sleeps, [])

    async def test_returns_first_matching_state(self) -> None:
        fetch = CountingFetch()

        state = await self.poller.poll(fetch, lambda value: value >= 3)

        self.assertEqual(state, 3)
        self.assertEqual(self.clock.sleeps, [1.0, 1.0])

    async def test_times_out_within_one_interval_of_deadline(self) -> None:
        fetch = CountingFetch()

        with self.assertRaises(PollTimeout) as ctx:
            await self.poller.poll(fetch, lambda value: False, description="never")

        error = ctx.exception
        self.assertEqual(self.clock.sleeps, [1.0, 1.0, 1.0, 0.5])
        self.assertEqual(error.attempts, 5)
        self.assertEqual(error.last_state, 5)
        self.assertGreaterEqual(error.elapsed, 3.5)
        self.assertLessEqual(error.elapsed, 3.5 + self.poller.interval)
        self.assertIn("never", str(error))

    async def test_zero_deadline_checks_exactly_once(self) -> None:
        fetch = CountingFetch()

        with self.assertRaises(PollTimeout) as ctx:
            await self.poller.poll(fetch, lambda value: False, deadline=0.0)

        self.assertEqual(fetch.calls, 1)
        self.assertEqual(ctx.exception.attempts, 1)

    async def test_fetch_error_is_not_turned_into_timeout(self) -> None:
        fetch = CountingFetch(fail_on=2)

        with self.assertRaises(ConnectionError):
            await self.poller.poll(fetch, lambda value: False)

        self.assertEqual(fetch.calls, 2)
        self.assertEqual(self.clock.sleeps, [1.0])

    async def test_per_call_overrides(self) -> None:
        fetch = CountingFetch()

        state = await self.poller.poll(fetch, lambda value: value == 2, interval=0.25)

        self.assertEqual(state, 2)
        self.assertEqual(self.clock.sleeps, [0.25])

    def test_rejects_invalid_timing(self) -> None:
        with self.assertRaises(ValueError):
            StatePoller(interval=0)
        with self.assertRaises(ValueError):
            StatePoller(interval=1.0, deadline=-1.0)


if __name__ == "__main__":
    unittest.main()
