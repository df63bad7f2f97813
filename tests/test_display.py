"""Tests for kvbench.display — comparison tables and progress lines."""

from __future__ import annotations

import io
import unittest

from bench_test_helpers import make_subject, make_subjects, make_workload

from kvbench.display import CliReporter, format_subjects, format_subjects_concurrent
from kvbench.results import Subjects


def _rows(table: str) -> dict[str, list[str]]:
    """Map the client column to the row's cells (skips header and rule)."""
    rows: dict[str, list[str]] = {}
    for line in table.splitlines()[2:]:
        cells = line.split()
        rows[cells[0]] = cells
    return rows


class TestFormatSubjects(unittest.TestCase):
    def setUp(self) -> None:
        self.subjects = make_subjects({"mid": [10.0], "slow": [20.0], "fast": [5.0]})
        self.table = format_subjects(self.subjects)

    def test_rows_sorted_by_ascending_time(self) -> None:
        order = [line.split()[0] for line in self.table.splitlines()[2:]]
        self.assertEqual(order, ["fast", "mid", "slow"])

    def test_factor_relative_to_fastest(self) -> None:
        rows = _rows(self.table)
        self.assertEqual(rows["slow"][-1], "4.00x")
        self.assertEqual(rows["slow"][-2], "+300.0%")
        self.assertEqual(rows["mid"][-1], "2.00x")
        self.assertEqual(rows["mid"][-2], "+100.0%")

    def test_baseline_row(self) -> None:
        rows = _rows(self.table)
        self.assertEqual(rows["fast"][-1], "1x")
        self.assertEqual(rows["fast"][-2], "0%")

    def test_columns(self) -> None:
        header = self.table.splitlines()[0].split()
        self.assertEqual(
            header, ["Client", "Memory", "Network", "IOPS", "rstdev", "Time", "Change", "Factor"]
        )
        rows = _rows(self.table)
        self.assertEqual(rows["slow"][5], "20ms")
        self.assertEqual(rows["slow"][4], "±0.00%")

    def test_empty(self) -> None:
        self.assertEqual(format_subjects(Subjects(make_workload())), "")


class TestFormatSubjectsConcurrent(unittest.TestCase):
    def setUp(self) -> None:
        workload = make_workload(clients=("a", "b"))
        self.subjects = Subjects(workload)
        # 1,000ms windows: a -> 4,000 ops/s, b -> 8,000 ops/s
        self.subjects.add("a").add_iteration(1000.0, 1024, 0, 0, operations=4000)
        self.subjects.add("b").add_iteration(1000.0, 1024, 0, 0, operations=8000)
        self.table = format_subjects_concurrent(self.subjects, workers=4)

    def _rows(self) -> dict[str, list[str]]:
        rows: dict[str, list[str]] = {}
        for line in self.table.splitlines()[2:]:
            cells = line.split()
            rows[cells[1]] = cells
        return rows

    def test_sorted_by_descending_throughput(self) -> None:
        order = [line.split()[1] for line in self.table.splitlines()[2:]]
        self.assertEqual(order, ["b", "a"])

    def test_factor_relative_to_fastest(self) -> None:
        rows = self._rows()
        self.assertEqual(rows["b"][-1], "1x")
        self.assertEqual(rows["b"][-2], "0%")
        self.assertEqual(rows["a"][-1], "0.50x")
        self.assertEqual(rows["a"][-2], "-50.00%")

    def test_per_worker_throughput(self) -> None:
        rows = self._rows()
        self.assertEqual(rows["b"][0], "4")
        self.assertEqual(rows["b"][4], "8.00K")
        self.assertEqual(rows["b"][5], "2.00K")


class TestCliReporter(unittest.TestCase):
    def setUp(self) -> None:
        self.stream = io.StringIO()

    def test_quiet_reporter_prints_banner_and_table_only(self) -> None:
        reporter = CliReporter(verbose=False, stream=self.stream)
        subject = make_subject("redis", [10.0])
        reporter.starting_benchmark(subject.workload)
        reporter.finished_iteration(subject, subject.iterations[0])
        reporter.finished_subject(subject)
        reporter.finished_timed_subject(subject, 100, 10.0)
        reporter.finished_subjects(make_subjects({"redis": [10.0]}))
        out = self.stream.getvalue()
        self.assertIn("Executing 3 iterations (no warmup, 5 revs) of 50 GET operations", out)
        self.assertNotIn("Executed", out)
        self.assertIn("Factor", out)

    def test_verbose_iteration_line(self) -> None:
        reporter = CliReporter(verbose=True, stream=self.stream)
        subject = make_subject("redis", [10.0], memory=1536, bytes_in=1000, bytes_out=24)
        reporter.finished_iteration(subject, subject.iterations[0])
        self.assertEqual(
            self.stream.getvalue().strip(),
            "Executed 50 GET using redis in 10.00ms (5.00K ops/s) "
            "[memory:1.50kb, network:1.00kb]",
        )

    def test_verbose_subject_line(self) -> None:
        reporter = CliReporter(verbose=True, stream=self.stream)
        subject = make_subject("redis", [10.0, 10.0, 10.0])
        reporter.finished_subject(subject)
        out = self.stream.getvalue()
        self.assertIn("Executed 3 iterations of 50 GET using redis in ~10.00ms", out)
        self.assertIn("[±0.00%]", out)

    def test_timed_banner_and_subject(self) -> None:
        reporter = CliReporter(verbose=True, stream=self.stream)
        subject = make_subject("redis", [])
        reporter.starting_timed_benchmark(subject.workload, 4, 2.5)
        reporter.finished_timed_subject(subject, 5000, 500.0)
        out = self.stream.getvalue()
        self.assertIn("Executing operations for 2.50s using 4 workers (warmup: no)", out)
        self.assertIn("Executed 5.00K GET using redis in 500.00ms (10.00K/sec)", out)

    def test_connected(self) -> None:
        CliReporter(stream=self.stream).connected("7.2.4", "tcp://127.0.0.1:6379")
        self.assertIn("Connected to Redis (7.2.4) at tcp://127.0.0.1:6379", self.stream.getvalue())


if __name__ == "__main__":
    unittest.main()
