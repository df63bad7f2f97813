"""Exceptions raised by kvbench.

Hierarchy::

    KvbenchError
      ├── ConfigError        invalid configuration, raised before any work
      ├── ForkFailure        a worker process could not be started
      ├── BarrierTimeout     not every worker reached the start barrier
      └── AggregationGap     fewer worker results than workers spawned

Coordination failures always abort the whole benchmark run.  Statistics
on an empty sample set are not an error: they evaluate to 0.
"""

from __future__ import annotations


class KvbenchError(Exception):
    """Base class for all kvbench errors."""


class ConfigError(KvbenchError, ValueError):
    """The benchmark configuration is invalid."""


class ForkFailure(KvbenchError):
    """A worker process could not be created."""

    def __init__(self, worker_id: int, cause: BaseException) -> None:
        super().__init__(f"Cannot start worker {worker_id}: {cause}")
        self.worker_id = worker_id
        self.cause = cause


class BarrierTimeout(KvbenchError):
    """Workers did not all rendezvous before the timeout elapsed."""

    def __init__(self, expected: int, observed: int) -> None:
        super().__init__(
            f"Barrier timed out waiting for {expected} workers (got {observed})"
        )
        self.expected = expected
        self.observed = observed


class AggregationGap(KvbenchError):
    """Some workers did not publish a result."""

    def __init__(self, subject: str, expected: int, reported: int) -> None:
        super().__init__(
            f"{subject}: expected results from {expected} workers, "
            f"{reported} reported"
        )
        self.subject = subject
        self.expected = expected
        self.reported = reported
