"""Command-line interface for kvbench.

Subcommands:
    kvbench run      Benchmark the registered workloads against Redis
    kvbench list     List the registered workloads
    kvbench system   Print system characterization
"""

from __future__ import annotations

import logging
from pathlib import Path

import click
import redis

from kvbench import __version__
from kvbench.errors import KvbenchError
from kvbench.logging import setup_logging

log = logging.getLogger("kvbench")


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """kvbench: compare Redis clients under identical workloads."""


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, path_type=Path),
    help="YAML profile with run defaults.",
)
@click.option("--host", default=None, help="Redis host, or unix socket path with --port 0.")
@click.option("--port", type=int, default=None, help="Redis port (0 for a unix socket).")
@click.option("--password", envvar="KVBENCH_PASSWORD", default=None, help="Redis password.")
@click.option(
    "--workers",
    type=int,
    default=None,
    help="Worker processes (default: 1). More than one switches to timed runs.",
)
@click.option(
    "--duration",
    type=float,
    default=None,
    help="Seconds each worker runs per client (default: 1.0).",
)
@click.option(
    "--workload",
    "workloads",
    multiple=True,
    help="Workload to run (repeatable or comma-separated; default: all).",
)
@click.option("--iterations", type=int, default=None, help="Override measured iterations.")
@click.option("--revolutions", type=int, default=None, help="Override calls per iteration.")
@click.option("--warmup", type=int, default=None, help="Override warmup rounds.")
@click.option(
    "--barrier-timeout",
    type=float,
    default=None,
    help="Seconds to wait for every worker at the start barrier (default: 10).",
)
@click.option("--settle-delay", type=float, default=None, help="Pause before each iteration.")
@click.option("--key-ttl", type=int, default=None, help="Expiry of coordination keys.")
@click.option(
    "--strict",
    is_flag=True,
    help="Fail the run when a worker result is missing.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Also write results to this file.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "csv"]),
    default=None,
    help="Format of --output (default: json).",
)
@click.option("-v", "--verbose", is_flag=True, help="Show per-iteration lines.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option("--debug", is_flag=True, help="Log debug messages to the console.")
@click.option("--log-file", type=click.Path(path_type=Path), default=None)
def run(  # noqa: PLR0913
    profile_path: Path | None,
    host: str | None,
    port: int | None,
    password: str | None,
    workers: int | None,
    duration: float | None,
    workloads: tuple[str, ...],
    iterations: int | None,
    revolutions: int | None,
    warmup: int | None,
    barrier_timeout: float | None,
    settle_delay: float | None,
    key_ttl: int | None,
    strict: bool,
    output: Path | None,
    output_format: str | None,
    verbose: bool,
    quiet: bool,
    debug: bool,
    log_file: Path | None,
) -> None:
    """Run the benchmark.

    \b
    Examples:
        # Every workload, one worker, fixed revolutions
        kvbench run -v

        # Four workers hammering GET for two seconds per client
        kvbench run --workload get --workers 4 --duration 2

        # Settings from a profile, results saved as CSV
        kvbench run --profile bench.yaml -o results.csv --format csv
    """
    from kvbench.config import config_from_profile, load_profile
    from kvbench.display import CliReporter
    from kvbench.export import write_export
    from kvbench.runner import Runner
    from kvbench.system import capture_system_profile, format_system_profile
    from kvbench.workloads import BUILTIN

    setup_logging(verbose=debug, quiet=quiet, log_file=log_file)

    selected = [w.strip() for item in workloads for w in item.split(",") if w.strip()]
    cli_overrides: dict[str, object] = {
        "host": host,
        "port": port,
        "password": password,
        "workers": workers,
        "duration": duration,
        "workloads": selected or None,
        "iterations": iterations,
        "revolutions": revolutions,
        "warmup": warmup,
        "barrier_timeout": barrier_timeout,
        "settle_delay": settle_delay,
        "key_ttl": key_ttl,
        "strict": strict or None,
        "verbose": verbose or None,
        "output": output,
        "output_format": output_format,
    }

    try:
        profile_data = load_profile(profile_path) if profile_path else {}
        config = config_from_profile(profile_data, cli_overrides=cli_overrides)

        system = capture_system_profile()
        click.echo(format_system_profile(system))
        for warning in system.warnings:
            log.warning("Timings may be distorted: %s", warning)

        runner = Runner(config, BUILTIN, reporter=CliReporter(verbose=config.verbose))
        bench_run = runner.run()
    except KvbenchError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    except redis.RedisError as exc:
        click.echo(f"Error: Redis: {exc}", err=True)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        click.echo("\nBenchmark interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    if config.output is not None:
        write_export(bench_run, config.output, config.output_format)
        click.echo()
        click.echo(f"Results saved to: {config.output}")


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


@main.command("list")
def list_cmd() -> None:
    """List the registered workloads."""
    from kvbench.workloads import BUILTIN

    for spec in BUILTIN:
        click.echo(f"{spec.key:10s} {spec.description}")


# ---------------------------------------------------------------------------
# system
# ---------------------------------------------------------------------------


@main.command("system")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def system_cmd(as_json: bool) -> None:
    """Print system characterization for benchmark documentation."""
    from kvbench.system import capture_system_profile, format_system_profile

    profile = capture_system_profile()
    if as_json:
        click.echo(profile.to_json())
    else:
        click.echo(format_system_profile(profile))
        for warning in profile.warnings:
            click.echo(f"Warning: {warning}")
