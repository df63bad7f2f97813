"""Benchmark result data structures.

Hierarchy::

    BenchRun (one kvbench invocation)
      → benchmarks: list[Subjects]          (one per workload)
        → Subject                           (one per client)
          → iterations: list[Iteration]     (one per measurement window)

    RawResult (one worker's contribution to a duration-mode window,
    exchanged through the coordination store and folded into a single
    Iteration by :func:`aggregate_raw_results`)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator, Sequence

from kvbench.backend import NetworkSample
from kvbench.stats import describe, median, rstdev
from kvbench.workload import Workload


# ---------------------------------------------------------------------------
# Worker-level result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawResult:
    """What one worker process measured in one duration-mode window."""

    worker_id: int
    timestamp_ns: int  # clock reading when the worker stopped
    operations: int
    peak_memory: int  # bytes
    pid: int = 0
    # Server network counters sampled just before and after the loop
    net_before: NetworkSample = NetworkSample()
    net_after: NetworkSample = NetworkSample()

    def to_json(self) -> str:
        """Encode as a compact JSON blob for the result set."""
        return json.dumps(
            {
                "worker_id": self.worker_id,
                "timestamp_ns": self.timestamp_ns,
                "operations": self.operations,
                "peak_memory": self.peak_memory,
                "pid": self.pid,
                "net_before": [self.net_before.bytes_in, self.net_before.bytes_out],
                "net_after": [self.net_after.bytes_in, self.net_after.bytes_out],
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, blob: str) -> RawResult:
        """Decode a blob, ignoring unknown fields."""
        data = json.loads(blob)
        known = {f.name for f in cls.__dataclass_fields__.values()}
        fields = {k: v for k, v in data.items() if k in known}
        for name in ("net_before", "net_after"):
            if name in fields:
                fields[name] = NetworkSample(*fields[name])
        return cls(**fields)


@dataclass
class Aggregate:
    """Several workers' RawResults folded into one window."""

    operations: int
    peak_memory: int
    elapsed_ns: int
    reported: int
    traffic: NetworkSample = NetworkSample()

    @property
    def ms(self) -> float:
        return self.elapsed_ns / 1e6


def aggregate_raw_results(results: Sequence[RawResult], start_ns: int) -> Aggregate:
    """Combine worker results measured against a shared start instant.

    Operation counts are summed and the largest peak memory is kept.
    Elapsed time runs from *start_ns* to the latest worker timestamp:
    the window is as long as its slowest worker, so ``operations /
    elapsed`` never overstates throughput.

    Server counters only grow, so the latest ``net_before`` and the
    earliest ``net_after`` bound the span in which every worker was
    inside its loop and none was talking to the coordination store.
    Traffic is charged for that span.  If the loops never overlapped
    (a worker started after another had finished) the span from the
    earliest ``net_before`` to the latest ``net_after`` is used.
    """
    if not results:
        return Aggregate(operations=0, peak_memory=0, elapsed_ns=0, reported=0)
    return Aggregate(
        operations=sum(r.operations for r in results),
        peak_memory=max(r.peak_memory for r in results),
        elapsed_ns=max(0, max(r.timestamp_ns for r in results) - start_ns),
        reported=len(results),
        traffic=_loop_traffic(results),
    )


def _loop_traffic(results: Sequence[RawResult]) -> NetworkSample:
    opened = NetworkSample(
        max(r.net_before.bytes_in for r in results),
        max(r.net_before.bytes_out for r in results),
    )
    closed = NetworkSample(
        min(r.net_after.bytes_in for r in results),
        min(r.net_after.bytes_out for r in results),
    )
    traffic = closed - opened
    if traffic.bytes_in >= 0 and traffic.bytes_out >= 0:
        return traffic
    return NetworkSample(
        max(r.net_after.bytes_in for r in results),
        max(r.net_after.bytes_out for r in results),
    ) - NetworkSample(
        min(r.net_before.bytes_in for r in results),
        min(r.net_before.bytes_out for r in results),
    )


# ---------------------------------------------------------------------------
# Iteration
# ---------------------------------------------------------------------------


@dataclass
class Iteration:
    """One completed measurement window for one client."""

    ms: float
    memory: int
    bytes_in: int
    bytes_out: int
    operations: int | None = None  # measured count (duration mode only)

    @property
    def bytes(self) -> int:
        return self.bytes_in + self.bytes_out

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "ms": round(self.ms, 6),
            "memory": self.memory,
            "bytes_in": self.bytes_in,
            "bytes_out": self.bytes_out,
        }
        if self.operations is not None:
            d["operations"] = self.operations
        return d


# ---------------------------------------------------------------------------
# Subject
# ---------------------------------------------------------------------------


@dataclass
class Subject:
    """All iterations of one workload run with one client.

    Statistics are recomputed on every call; the iteration list only
    grows during a run and holds a handful of samples.
    """

    client: str
    workload: Workload
    iterations: list[Iteration] = field(default_factory=list)

    def add_iteration(
        self,
        ms: float,
        memory: int,
        bytes_in: int,
        bytes_out: int,
        operations: int | None = None,
    ) -> Iteration:
        iteration = Iteration(
            ms=ms,
            memory=memory,
            bytes_in=bytes_in,
            bytes_out=bytes_out,
            operations=operations,
        )
        self.iterations.append(iteration)
        return iteration

    def ops_per_sec(self, iteration: Iteration) -> float:
        """Throughput of one iteration.

        Fixed-revolution iterations executed a configured number of
        operations; duration-mode iterations carry the measured count.
        """
        if iteration.ms <= 0:
            return 0.0
        if iteration.operations is not None:
            ops = iteration.operations
        else:
            ops = self.workload.ops_total
        return ops / (iteration.ms / 1000)

    def ms_median(self) -> float:
        return median([it.ms for it in self.iterations])

    def ms_rstdev(self) -> float:
        return rstdev([it.ms for it in self.iterations])

    def memory_median(self) -> float:
        return median([it.memory for it in self.iterations])

    def bytes_median(self) -> float:
        return median([it.bytes for it in self.iterations])

    def ops_median(self) -> float:
        return median([self.ops_per_sec(it) for it in self.iterations])

    def to_dict(self) -> dict[str, Any]:
        return {
            "client": self.client,
            "iterations": [it.to_dict() for it in self.iterations],
            "ms_stats": describe([it.ms for it in self.iterations]).to_dict(),
            "ops_median": round(self.ops_median(), 3),
            "memory_median": self.memory_median(),
            "bytes_median": self.bytes_median(),
        }


class Subjects:
    """The subjects of one workload, in the order they were run."""

    def __init__(self, workload: Workload, key: str = "") -> None:
        self.workload = workload
        self.key = key or workload.name
        self._subjects: list[Subject] = []

    def add(self, client: str) -> Subject:
        subject = Subject(client=client, workload=self.workload)
        self._subjects.append(subject)
        return subject

    def sort_by_time(self) -> list[Subject]:
        """Fastest (lowest median time) first."""
        return sorted(self._subjects, key=lambda s: s.ms_median())

    def sort_by_ops_per_sec(self) -> list[Subject]:
        """Highest median throughput first."""
        return sorted(self._subjects, key=lambda s: s.ops_median(), reverse=True)

    def __iter__(self) -> Iterator[Subject]:
        return iter(self._subjects)

    def __len__(self) -> int:
        return len(self._subjects)

    def __getitem__(self, index: int) -> Subject:
        return self._subjects[index]

    def to_dict(self) -> dict[str, Any]:
        w = self.workload
        return {
            "workload": self.key,
            "name": w.name,
            "operations": w.operations,
            "iterations": w.iterations,
            "revolutions": w.revolutions,
            "warmup": w.warmup,
            "subjects": [s.to_dict() for s in self._subjects],
        }


# ---------------------------------------------------------------------------
# Run-level result
# ---------------------------------------------------------------------------


@dataclass
class BenchRun:
    """Everything one kvbench invocation measured."""

    run_id: str
    workers: int = 1
    duration: float = 0.0
    backend: str = ""
    server_version: str = ""
    start_time: str = ""
    end_time: str = ""
    benchmarks: list[Subjects] = field(default_factory=list)

    @property
    def concurrent(self) -> bool:
        return self.workers > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "workers": self.workers,
            "duration": self.duration,
            "backend": self.backend,
            "server_version": self.server_version,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "benchmarks": [b.to_dict() for b in self.benchmarks],
        }
