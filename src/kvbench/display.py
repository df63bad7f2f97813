"""Terminal display of benchmark progress and results.

:class:`CliReporter` receives the runner's callbacks and writes a banner
per workload, optional per-iteration progress lines, and one comparison
table per workload.  The table builders are plain functions so the
factor arithmetic can be checked without a terminal.
"""

from __future__ import annotations

from typing import IO

import click

from kvbench.formatting import format_pct, format_table
from kvbench.results import Iteration, Subject, Subjects
from kvbench.stats import human_memory, human_number
from kvbench.workload import Workload


# ---------------------------------------------------------------------------
# Comparison tables
# ---------------------------------------------------------------------------


def format_subjects(subjects: Subjects) -> str:
    """Single-worker comparison, fastest client first.

    The baseline is the lowest median time.  Every other row shows
    ``factor = ms_median / baseline`` and ``change = (factor - 1) * 100``.
    """
    ordered = subjects.sort_by_time()
    if not ordered:
        return ""
    baseline = ordered[0].ms_median()

    headers = ["Client", "Memory", "Network", "IOPS", "rstdev", "Time", "Change", "Factor"]
    rows: list[list[str]] = []
    for i, subject in enumerate(ordered):
        ms = subject.ms_median()
        if i == 0 or baseline <= 0:
            change, factor = "0%", "1x"
        else:
            multiple = ms / baseline
            change = format_pct((multiple - 1) * 100)
            factor = f"{multiple:.2f}x"
        rows.append(
            [
                subject.client,
                human_memory(subject.memory_median()),
                human_memory(subject.bytes_median()),
                human_number(subject.ops_median()),
                f"±{subject.ms_rstdev():.2f}%",
                f"{ms:,.0f}ms",
                change,
                factor,
            ]
        )
    return format_table(headers, rows, alignments=["l"] + ["r"] * 7)


def format_subjects_concurrent(subjects: Subjects, workers: int) -> str:
    """Multi-worker comparison, highest throughput first.

    The baseline is the highest median throughput and
    ``factor = ops / baseline_ops``.
    """
    ordered = subjects.sort_by_ops_per_sec()
    if not ordered:
        return ""
    baseline = ordered[0].ops_median()

    headers = [
        "Workers",
        "Client",
        "Memory",
        "Network",
        "IOPS",
        "IOPS/Worker",
        "Change",
        "Factor",
    ]
    rows: list[list[str]] = []
    for i, subject in enumerate(ordered):
        ops = subject.ops_median()
        if i == 0 or baseline <= 0:
            change, factor = "0%", "1x"
        else:
            multiple = ops / baseline
            change = format_pct((multiple - 1) * 100, 2)
            factor = f"{multiple:.2f}x"
        rows.append(
            [
                str(workers),
                subject.client,
                human_memory(subject.memory_median()),
                human_memory(subject.bytes_median()),
                human_number(ops),
                human_number(ops / max(1, workers)),
                change,
                factor,
            ]
        )
    return format_table(headers, rows, alignments=["r", "l"] + ["r"] * 6)


# ---------------------------------------------------------------------------
# Progress reporter
# ---------------------------------------------------------------------------


class CliReporter:
    """Writes progress and result tables to a text stream.

    Banners and tables are always written; iteration and subject lines
    only when *verbose* is set.
    """

    def __init__(self, *, verbose: bool = False, stream: IO[str] | None = None) -> None:
        self.verbose = verbose
        self.stream = stream

    def _echo(self, message: str = "") -> None:
        click.echo(message, file=self.stream)

    @staticmethod
    def _banner(name: str) -> str:
        return click.style(f" {name} ", fg="black", bg="green")

    def connected(self, server_version: str, address: str) -> None:
        self._echo(f"Connected to Redis ({server_version}) at {address}")
        self._echo()

    def starting_benchmark(self, workload: Workload) -> None:
        warmup = workload.warmup or "no"
        self._echo()
        self._echo(
            f"{self._banner(workload.name)} Executing {workload.iterations} iterations "
            f"({warmup} warmup, {workload.revolutions} revs) of "
            f"{workload.ops_total:,} {workload.name} operations..."
        )
        self._echo()

    def starting_timed_benchmark(self, workload: Workload, workers: int, duration: float) -> None:
        warmup = workload.warmup or "no"
        self._echo()
        self._echo(
            f"{self._banner(workload.name)} Executing operations for {duration:.2f}s "
            f"using {workers} workers (warmup: {warmup})..."
        )
        self._echo()

    def finished_iteration(self, subject: Subject, iteration: Iteration) -> None:
        if not self.verbose:
            return
        self._echo(
            f"Executed {subject.workload.ops_total:,} {subject.workload.name} "
            f"using {subject.client} in {iteration.ms:,.2f}ms "
            f"({human_number(subject.ops_per_sec(iteration))} ops/s) "
            f"[memory:{human_memory(iteration.memory)}, "
            f"network:{human_memory(iteration.bytes)}]"
        )

    def finished_subject(self, subject: Subject) -> None:
        if not self.verbose:
            return
        workload = subject.workload
        ms = subject.ms_median()
        ops = workload.ops_total / (ms / 1000) if ms > 0 else 0.0
        self._echo(
            f"Executed {len(subject.iterations)} iterations of {workload.ops_total:,} "
            f"{workload.name} using {subject.client} in ~{ms:,.2f}ms "
            f"[±{subject.ms_rstdev():.2f}%] (~{human_number(ops)} ops/s) "
            f"[memory:{human_memory(subject.memory_median())}, "
            f"network:{human_memory(subject.bytes_median() * workload.iterations)}]"
        )
        self._echo()

    def finished_timed_subject(self, subject: Subject, operations: int, ms: float) -> None:
        if not self.verbose:
            return
        rate = operations / (ms / 1000) if ms > 0 else 0.0
        self._echo(
            f"Executed {human_number(operations)} {subject.workload.name} "
            f"using {subject.client} in {ms:,.2f}ms ({human_number(rate)}/sec)"
        )

    def finished_subjects(self, subjects: Subjects) -> None:
        self._echo(format_subjects(subjects))

    def finished_subjects_concurrent(self, subjects: Subjects, workers: int) -> None:
        self._echo()
        self._echo(format_subjects_concurrent(subjects, workers))
