"""Start barrier for independently spawned worker processes.

Each participant increments a shared counter once, then spins reading it
until every expected participant has arrived.  The participant whose
increment lands exactly on the expected count also records the global
start instant (write-once), so every worker measures its window against
the same origin no matter which of them finishes last.

The spin loop never sleeps.  Reading the clock is the expensive part of
a poll, so the timeout is only checked every ``check_every`` polls.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from kvbench.errors import BarrierTimeout
from kvbench.store import CoordinationStore

log = logging.getLogger("kvbench")

Clock = Callable[[], int]


class Barrier:
    """Rendezvous of ``expected`` processes over a :class:`CoordinationStore`.

    Args:
        store: This process's own store connection.
        counter_key: Key of the shared arrival counter.
        start_key: Key of the shared start instant.
        expected: Number of participants.
        check_every: Polls between two timeout checks.
        clock: Nanosecond clock shared by all participants.  The default,
            ``time.monotonic_ns``, is system-wide on Linux and macOS.
    """

    def __init__(
        self,
        store: CoordinationStore,
        counter_key: str,
        start_key: str,
        expected: int,
        *,
        check_every: int = 100,
        clock: Clock = time.monotonic_ns,
    ) -> None:
        if expected < 1:
            raise ValueError(f"Barrier needs at least one participant (got {expected})")
        self.store = store
        self.counter_key = counter_key
        self.start_key = start_key
        self.expected = expected
        self.check_every = max(1, check_every)
        self.clock = clock

    def register(self) -> int:
        """Announce arrival.  Returns this participant's 1-based rank."""
        rank = self.store.incr(self.counter_key)
        if rank == self.expected:
            self.store.set_if_absent(self.start_key, str(self.clock()))
        log.debug("Registered at barrier %s as %d/%d", self.counter_key, rank, self.expected)
        return rank

    def arrived(self) -> int:
        """How many participants have registered so far."""
        return int(self.store.get(self.counter_key) or 0)

    def await_all(self, timeout: float) -> None:
        """Block until every participant has registered.

        Raises:
            BarrierTimeout: If *timeout* seconds pass first.
        """
        deadline = self.clock() + int(timeout * 1e9)
        polls = 0
        while True:
            observed = self.arrived()
            if observed >= self.expected:
                return
            polls += 1
            if polls % self.check_every == 0 and self.clock() >= deadline:
                raise BarrierTimeout(self.expected, observed)

    def shared_start(self, timeout: float) -> int:
        """Return the start instant recorded by the last participant.

        The last participant writes it right after its increment, so
        an early participant released by the counter may have to wait
        briefly for the value to appear.

        Raises:
            BarrierTimeout: If no start instant appears within *timeout*.
        """
        deadline = self.clock() + int(timeout * 1e9)
        polls = 0
        while True:
            value = self.store.get(self.start_key)
            if value is not None:
                return int(value)
            polls += 1
            if polls % self.check_every == 0 and self.clock() >= deadline:
                raise BarrierTimeout(self.expected, self.arrived())
