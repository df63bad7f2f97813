"""Export benchmark results to JSON and CSV.

JSON format: the whole run, every iteration plus a summary of the
iteration times per client.

CSV format: one row per workload per client per iteration (long
format for pandas/R).  This is the raw data, every single measurement.
"""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from kvbench.errors import ConfigError
from kvbench.results import BenchRun


def export_json(run: BenchRun, indent: int = 2) -> str:
    """Export the full run as a JSON document."""
    return json.dumps(run.to_dict(), indent=indent)


def export_csv(run: BenchRun) -> str:
    """Export results as CSV (long format).

    Columns:
        run_id, workload, client, workers, iteration, ms, ops_per_sec,
        operations, memory, bytes_in, bytes_out
    """
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow(
        [
            "run_id",
            "workload",
            "client",
            "workers",
            "iteration",
            "ms",
            "ops_per_sec",
            "operations",
            "memory",
            "bytes_in",
            "bytes_out",
        ]
    )

    for subjects in run.benchmarks:
        for subject in subjects:
            for index, it in enumerate(subject.iterations, start=1):
                operations = (
                    it.operations if it.operations is not None else subject.workload.ops_total
                )
                writer.writerow(
                    [
                        run.run_id,
                        subjects.key,
                        subject.client,
                        run.workers,
                        index,
                        f"{it.ms:.6f}",
                        f"{subject.ops_per_sec(it):.3f}",
                        operations,
                        it.memory,
                        it.bytes_in,
                        it.bytes_out,
                    ]
                )

    return output.getvalue()


def write_export(run: BenchRun, path: Path, fmt: str) -> None:
    """Write *run* to *path* in format ``json`` or ``csv``."""
    if fmt == "json":
        text = export_json(run)
    elif fmt == "csv":
        text = export_csv(run)
    else:
        raise ConfigError(f"Unknown export format '{fmt}'")
    path.write_text(text)
