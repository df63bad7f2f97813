"""Benchmark execution engine.

Orchestrates, per selected workload and per client:

- Fixed-revolution mode (one worker): warmup, then ``iterations``
  in-process rounds of exactly ``revolutions`` calls, each charged with
  its wall time, peak memory and server network traffic.
- Fixed-duration mode (several workers): a shared warmup in the parent,
  then ``workers`` forked processes that rendezvous on a start barrier,
  call the operation until the duration has elapsed from the shared
  start instant, and publish a :class:`~kvbench.results.RawResult`
  carrying the server's network counters read around that loop.
  The parent joins every child before aggregating anything.

Worker processes share nothing with the parent except the coordination
store; each opens its own store and backend connections after the fork.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
import time
from datetime import datetime, timezone
from typing import Any, Callable

from kvbench.backend import RedisBackend
from kvbench.barrier import Barrier
from kvbench.config import BenchConfig, check_config
from kvbench.display import CliReporter
from kvbench.errors import AggregationGap, BarrierTimeout, ForkFailure
from kvbench.results import BenchRun, RawResult, Subject, Subjects, aggregate_raw_results
from kvbench.store import CoordinationStore, RedisStore, RunContext
from kvbench.timing import PeakMemory, run_for_duration, run_revolutions
from kvbench.workload import Workload, WorkloadRegistry, WorkloadSpec

log = logging.getLogger("kvbench")

EXIT_WORKER_ERROR = 1
EXIT_BARRIER_TIMEOUT = 3

# Callable[..., Process-like]: accepts target/args/name keywords and returns
# an object with start(), join(), terminate() and exitcode.
ProcessFactory = Any


def fork_process(**kwargs: Any) -> Any:
    """Create a process with the ``fork`` start method."""
    return multiprocessing.get_context("fork").Process(**kwargs)


# ---------------------------------------------------------------------------
# Worker pool
# ---------------------------------------------------------------------------


def _worker_entry(target: Callable[[int], None], worker_id: int) -> None:
    """Child-side wrapper mapping failures onto exit statuses."""
    try:
        target(worker_id)
    except BarrierTimeout as exc:
        log.error("Worker %d: %s", worker_id, exc)
        raise SystemExit(EXIT_BARRIER_TIMEOUT) from exc
    except Exception:
        log.exception("Worker %d failed", worker_id)
        raise SystemExit(EXIT_WORKER_ERROR) from None


class WorkerPool:
    """Spawns a fixed number of worker processes and waits for all of them.

    Args:
        workers: Number of processes per :meth:`run`.
        process_factory: Builds one process object.  Defaults to
            :func:`fork_process`; tests pass a thread-backed factory.
    """

    def __init__(self, workers: int, process_factory: ProcessFactory = None) -> None:
        self.workers = workers
        self.process_factory = process_factory or fork_process

    def run(self, target: Callable[[int], None]) -> list[int | None]:
        """Run ``target(worker_id)`` in every worker and join them all.

        Returns:
            Exit status of each worker, indexed by worker id.

        Raises:
            ForkFailure: If a process cannot be started.  Workers that
                were already started are terminated and joined first.
        """
        processes: list[Any] = []
        for worker_id in range(self.workers):
            proc = self.process_factory(
                target=_worker_entry,
                args=(target, worker_id),
                name=f"kvbench-worker-{worker_id}",
            )
            try:
                proc.start()
            except OSError as exc:
                log.error("Cannot start worker %d: %s", worker_id, exc)
                for started in processes:
                    started.terminate()
                for started in processes:
                    started.join()
                raise ForkFailure(worker_id, exc) from exc
            processes.append(proc)

        log.debug("Started %d workers", len(processes))
        for proc in processes:
            proc.join()
        return [proc.exitcode for proc in processes]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class Runner:
    """Executes a benchmark run according to a BenchConfig.

    Usage::

        config = BenchConfig(workers=4, duration=2.0)
        runner = Runner(config, BUILTIN)
        bench_run = runner.run()

    The factories exist so tests can substitute in-memory stores,
    fake backends and thread-backed workers.
    """

    def __init__(
        self,
        config: BenchConfig,
        registry: WorkloadRegistry,
        *,
        reporter: CliReporter | None = None,
        context: RunContext | None = None,
        process_factory: ProcessFactory = None,
        store_factory: Callable[[], CoordinationStore] | None = None,
        backend_factory: Callable[[], RedisBackend] | None = None,
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        self.config = config
        self.registry = registry
        self.reporter = reporter or CliReporter(verbose=config.verbose)
        self.context = context or RunContext(key_ttl=config.key_ttl)
        self.pool = WorkerPool(config.workers, process_factory)
        self.store_factory = store_factory or self._default_store
        self.backend_factory = backend_factory or self._default_backend
        self.clock = clock

    def _default_store(self) -> CoordinationStore:
        return RedisStore.from_settings(self.config.redis, ttl=self.context.key_ttl)

    def _default_backend(self) -> RedisBackend:
        return RedisBackend(self.config.redis)

    # -- top level ---------------------------------------------------------

    def run(self) -> BenchRun:
        """Execute every selected workload.

        Raises:
            ConfigError: Before any work, if the configuration is invalid
                or names an unknown workload.
            ForkFailure, BarrierTimeout: On coordination failure.
            AggregationGap: On missing worker results with ``strict``.
        """
        check_config(self.config)
        specs = self.registry.select(self.config.workloads)

        backend = self.backend_factory()
        try:
            bench_run = BenchRun(
                run_id=self.context.run_id,
                workers=self.config.workers,
                duration=self.config.duration if self.config.concurrent else 0.0,
                backend=self.config.redis.address,
                server_version=backend.server_version(),
                start_time=_now_iso(),
            )
            self.reporter.connected(bench_run.server_version, bench_run.backend)
            log.info(
                "Run %s: %d workload(s), %d worker(s)",
                bench_run.run_id,
                len(specs),
                self.config.workers,
            )
            for spec in specs:
                bench_run.benchmarks.append(self.run_workload(spec, backend))
            bench_run.end_time = _now_iso()
        finally:
            backend.close()
        return bench_run

    def run_workload(self, spec: WorkloadSpec, backend: RedisBackend) -> Subjects:
        """Run every client of one workload and report the comparison."""
        workload = self._build(spec)
        subjects = Subjects(workload, key=spec.key)
        concurrent = self.config.concurrent

        if concurrent:
            self.reporter.starting_timed_benchmark(
                workload, self.config.workers, self.config.duration
            )
        else:
            self.reporter.starting_benchmark(workload)

        try:
            for client in workload.clients:
                subject = subjects.add(client)
                log.debug("Benchmarking %s with %s", spec.key, client)
                if concurrent:
                    self._run_concurrent(spec, workload, subject)
                else:
                    self._run_method(workload, subject, backend)
        finally:
            workload.close()

        if concurrent:
            self.reporter.finished_subjects_concurrent(subjects, self.config.workers)
        else:
            self.reporter.finished_subjects(subjects)
        return subjects

    def _build(self, spec: WorkloadSpec, *, populate: bool = True) -> Workload:
        workload = spec.build(self.config.redis, populate=populate)
        return workload.with_overrides(
            iterations=self.config.iterations,
            revolutions=self.config.revolutions,
            warmup=self.config.warmup,
        )

    # -- fixed-revolution mode --------------------------------------------

    def _run_method(self, workload: Workload, subject: Subject, backend: RedisBackend) -> None:
        operation = workload.operation(subject.client)

        for _ in range(workload.warmup_calls):
            operation()

        for _ in range(workload.iterations):
            if self.config.settle_delay > 0:
                time.sleep(self.config.settle_delay)
            before = backend.network_sample()
            with PeakMemory() as memory:
                elapsed_ns = run_revolutions(operation, workload.revolutions)
            traffic = backend.network_sample() - before
            iteration = subject.add_iteration(
                elapsed_ns / 1e6, memory.peak, traffic.bytes_in, traffic.bytes_out
            )
            self.reporter.finished_iteration(subject, iteration)

        self.reporter.finished_subject(subject)

    # -- fixed-duration mode ----------------------------------------------

    def _run_concurrent(
        self,
        spec: WorkloadSpec,
        workload: Workload,
        subject: Subject,
    ) -> None:
        client = subject.client
        ctx = self.context

        operation = workload.operation(client)
        for _ in range(workload.warmup_calls):
            operation()

        store = self.store_factory()
        try:
            exit_codes = self.pool.run(
                lambda worker_id: self._worker_main(spec, client, worker_id)
            )

            barrier_key = ctx.barrier_key(spec.key, client)
            if EXIT_BARRIER_TIMEOUT in exit_codes:
                raise BarrierTimeout(self.config.workers, int(store.get(barrier_key) or 0))

            blobs = store.read_set(ctx.results_key(spec.key, client))
            start = store.get(ctx.start_key(spec.key, client))
        finally:
            store.close()

        results = [RawResult.from_json(blob) for blob in blobs]
        if start is None:
            results = []
        agg = aggregate_raw_results(results, int(start or 0))
        failed = sum(1 for code in exit_codes if code != 0)
        self._check_gap(subject, reported=agg.reported, failed=failed)
        if not agg.reported:
            return

        self.reporter.finished_timed_subject(subject, agg.operations, agg.ms)
        subject.add_iteration(
            agg.ms,
            agg.peak_memory,
            agg.traffic.bytes_in,
            agg.traffic.bytes_out,
            operations=agg.operations,
        )

    def _worker_main(self, spec: WorkloadSpec, client: str, worker_id: int) -> None:
        """Body of one forked worker.  Runs in the child process."""
        ctx = self.context
        store = self.store_factory()
        backend: RedisBackend | None = None
        workload: Workload | None = None
        try:
            backend = self.backend_factory()
            workload = self._build(spec, populate=False)
            operation = workload.operation(client)
            barrier = Barrier(
                store,
                ctx.barrier_key(spec.key, client),
                ctx.start_key(spec.key, client),
                self.config.workers,
                clock=self.clock,
            )
            barrier.register()
            barrier.await_all(self.config.barrier_timeout)
            start_ns = barrier.shared_start(self.config.barrier_timeout)

            net_before = backend.network_sample()
            with PeakMemory() as memory:
                operations, end_ns = run_for_duration(
                    operation,
                    start_ns,
                    int(self.config.duration * 1e9),
                    clock=self.clock,
                )
            net_after = backend.network_sample()
            result = RawResult(
                worker_id=worker_id,
                timestamp_ns=end_ns,
                operations=operations,
                peak_memory=memory.peak,
                pid=os.getpid(),
                net_before=net_before,
                net_after=net_after,
            )
            store.add_to_set(ctx.results_key(spec.key, client), result.to_json())
        finally:
            if workload is not None:
                workload.close()
            if backend is not None:
                backend.close()
            store.close()

    def _check_gap(self, subject: Subject, *, reported: int, failed: int) -> None:
        expected = self.config.workers
        if reported >= expected and not failed:
            return
        label = f"{subject.workload.name}/{subject.client}"
        if self.config.strict:
            raise AggregationGap(label, expected, reported)
        log.warning(
            "%s: expected results from %d workers, %d reported (%d exited abnormally)",
            label,
            expected,
            reported,
            failed,
        )
