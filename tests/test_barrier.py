"""Tests for kvbench.barrier — start barrier over the coordination store."""

from __future__ import annotations

import threading
import time
import unittest

import fakeredis

from kvbench.barrier import Barrier
from kvbench.errors import BarrierTimeout
from kvbench.store import RedisStore


class StepClock:
    """Deterministic clock advancing *step* nanoseconds per reading."""

    def __init__(self, step: int = 1_000_000_000) -> None:
        self.step = step
        self.now = 0
        self.readings = 0

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        self.readings += 1
        return value


class CountingStore(RedisStore):
    def __init__(self, *args: object, **kwargs: object) -> None:
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]
        self.gets = 0

    def get(self, key: str) -> str | None:
        self.gets += 1
        return super().get(key)


def _store(server: fakeredis.FakeServer) -> CountingStore:
    return CountingStore(fakeredis.FakeRedis(server=server, decode_responses=True), ttl=60)


class TestBarrierSingleProcess(unittest.TestCase):
    def setUp(self) -> None:
        self.server = fakeredis.FakeServer()

    def test_rejects_empty_barrier(self) -> None:
        with self.assertRaises(ValueError):
            Barrier(_store(self.server), "c", "s", 0)

    def test_last_registrant_writes_start(self) -> None:
        clock = StepClock(step=5)
        store = _store(self.server)
        first = Barrier(store, "c", "s", 2, clock=clock)
        second = Barrier(_store(self.server), "c", "s", 2, clock=clock)

        self.assertEqual(first.register(), 1)
        self.assertIsNone(store.get("s"))
        self.assertEqual(second.register(), 2)
        self.assertEqual(store.get("s"), "0")
        self.assertEqual(first.arrived(), 2)

    def test_start_is_never_overwritten(self) -> None:
        store = _store(self.server)
        store.set_if_absent("s", "123")
        barrier = Barrier(store, "c", "s", 1, clock=StepClock())
        barrier.register()
        self.assertEqual(barrier.shared_start(timeout=1.0), 123)

    def test_await_returns_once_everyone_arrived(self) -> None:
        barrier = Barrier(_store(self.server), "c", "s", 1, clock=StepClock())
        barrier.register()
        barrier.await_all(timeout=1.0)
        self.assertEqual(barrier.shared_start(timeout=1.0), 0)

    def test_timeout_reports_expected_and_observed(self) -> None:
        barrier = Barrier(_store(self.server), "c", "s", 3, check_every=1, clock=StepClock())
        barrier.register()
        with self.assertRaises(BarrierTimeout) as ctx:
            barrier.await_all(timeout=2.5)
        self.assertEqual(ctx.exception.expected, 3)
        self.assertEqual(ctx.exception.observed, 1)

    def test_clock_checked_every_n_polls(self) -> None:
        """The deadline is read once up front, then once per check_every polls."""
        clock = StepClock(step=1_000_000_000)
        store = _store(self.server)
        barrier = Barrier(store, "c", "s", 2, check_every=100, clock=clock)
        barrier.register()
        with self.assertRaises(BarrierTimeout):
            barrier.await_all(timeout=1.5)
        self.assertEqual(clock.readings, 3)
        self.assertEqual(store.gets, 200)

    def test_shared_start_times_out_without_start(self) -> None:
        barrier = Barrier(_store(self.server), "c", "s", 2, check_every=1, clock=StepClock())
        with self.assertRaises(BarrierTimeout):
            barrier.shared_start(timeout=1.0)


class TestBarrierThreads(unittest.TestCase):
    def test_all_participants_agree_on_start(self) -> None:
        server = fakeredis.FakeServer()
        participants = 4
        starts: list[int] = []
        ranks: list[int] = []
        lock = threading.Lock()

        def participant() -> None:
            barrier = Barrier(_store(server), "c", "s", participants)
            rank = barrier.register()
            barrier.await_all(timeout=5.0)
            start = barrier.shared_start(timeout=5.0)
            with lock:
                ranks.append(rank)
                starts.append(start)

        threads = [threading.Thread(target=participant) for _ in range(participants)]
        before = time.monotonic_ns()
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        self.assertEqual(sorted(ranks), [1, 2, 3, 4])
        self.assertEqual(len(set(starts)), 1)
        self.assertGreaterEqual(starts[0], before)


if __name__ == "__main__":
    unittest.main()
