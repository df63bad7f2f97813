"""Measurement loops and resource readings.

Two loops, one per execution mode:

- :func:`run_revolutions` calls an operation a fixed number of times
  and returns the elapsed nanoseconds.
- :func:`run_for_duration` calls an operation until a deadline measured
  from a shared start instant, summing the operation counts it returns.

:class:`PeakMemory` measures the Python heap high-water mark of one
measurement window with :mod:`tracemalloc`, so every window starts
from a fresh peak instead of inheriting the process-wide maximum.
"""

from __future__ import annotations

import time
import tracemalloc
from typing import Callable

from kvbench.workload import Operation


def run_revolutions(operation: Operation, revolutions: int) -> int:
    """Call *operation* exactly *revolutions* times.

    Returns:
        Elapsed wall time in nanoseconds.
    """
    start = time.perf_counter_ns()
    for _ in range(revolutions):
        operation()
    return time.perf_counter_ns() - start


def run_for_duration(
    operation: Operation,
    start_ns: int,
    duration_ns: int,
    *,
    clock: Callable[[], int] = time.monotonic_ns,
) -> tuple[int, int]:
    """Call *operation* until ``clock() - start_ns >= duration_ns``.

    The deadline is checked before every call, so the loop overruns
    the duration by at most one call.

    Returns:
        Tuple of (operations executed, clock reading at exit).
    """
    operations = 0
    now = clock()
    while now - start_ns < duration_ns:
        operations += operation()
        now = clock()
    return operations, now


class PeakMemory:
    """Peak bytes allocated inside a ``with`` block.

    Usage::

        with PeakMemory() as memory:
            run_revolutions(operation, 50)
        memory.peak  # bytes above the level at block entry

    Tracing is started on entry and stopped on exit unless it was
    already running, in which case only the peak is reset.
    """

    def __init__(self) -> None:
        self.peak = 0
        self._base = 0
        self._owner = False

    def __enter__(self) -> PeakMemory:
        self._owner = not tracemalloc.is_tracing()
        if self._owner:
            tracemalloc.start()
        tracemalloc.reset_peak()
        self._base = tracemalloc.get_traced_memory()[0]
        return self

    def __exit__(self, *exc_info: object) -> None:
        peak = tracemalloc.get_traced_memory()[1]
        self.peak = max(0, peak - self._base)
        if self._owner:
            tracemalloc.stop()
