"""Benchmark configuration and profile loading.

Handles:
- Loading run profiles from YAML files.
- Merging CLI options with profile defaults.
- Validating the final configuration before any process is forked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from kvbench.backend import RedisSettings
from kvbench.errors import ConfigError
from kvbench.store import DEFAULT_KEY_TTL

log = logging.getLogger("kvbench")

OUTPUT_FORMATS = ("json", "csv")


# ---------------------------------------------------------------------------
# BenchConfig
# ---------------------------------------------------------------------------


@dataclass
class BenchConfig:
    """Resolved configuration for a benchmark run."""

    # Backend
    redis: RedisSettings = field(default_factory=RedisSettings)

    # Execution mode: one worker runs fixed revolutions in-process,
    # several workers run for a fixed duration each.
    workers: int = 1
    duration: float = 1.0  # seconds per duration-mode window

    # Workload selection and per-run overrides (None = workload default)
    workloads: list[str] | None = None
    iterations: int | None = None
    revolutions: int | None = None
    warmup: int | None = None

    # Coordination
    barrier_timeout: float = 10.0
    settle_delay: float = 0.1
    key_ttl: int = DEFAULT_KEY_TTL
    strict: bool = False

    # Output
    verbose: bool = False
    output: Path | None = None
    output_format: str = "json"

    @property
    def concurrent(self) -> bool:
        """Whether the run forks worker processes."""
        return self.workers > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "redis": self.redis.to_dict(),
            "workers": self.workers,
            "duration": self.duration,
            "workloads": self.workloads,
            "iterations": self.iterations,
            "revolutions": self.revolutions,
            "warmup": self.warmup,
            "barrier_timeout": self.barrier_timeout,
            "settle_delay": self.settle_delay,
            "key_ttl": self.key_ttl,
            "strict": self.strict,
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: BenchConfig) -> list[ValidationError]:
    """Validate a benchmark configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    if config.workers < 1:
        errors.append(
            ValidationError(
                field="workers",
                message=f"Need at least one worker (got {config.workers}).",
            )
        )

    if config.concurrent and config.duration <= 0:
        errors.append(
            ValidationError(
                field="duration",
                message=f"Duration must be positive (got {config.duration}).",
            )
        )

    for name in ("iterations", "revolutions"):
        value = getattr(config, name)
        if value is not None and value < 1:
            errors.append(
                ValidationError(
                    field=name,
                    message=f"{name.capitalize()} must be at least 1 (got {value}).",
                )
            )

    if config.warmup is not None and config.warmup < 0:
        errors.append(
            ValidationError(
                field="warmup",
                message=f"Warmup rounds cannot be negative (got {config.warmup}).",
            )
        )

    if config.barrier_timeout <= 0:
        errors.append(
            ValidationError(
                field="barrier_timeout",
                message=f"Barrier timeout must be positive (got {config.barrier_timeout}).",
            )
        )

    if config.settle_delay < 0:
        errors.append(
            ValidationError(
                field="settle_delay",
                message=f"Settle delay cannot be negative (got {config.settle_delay}).",
            )
        )

    if config.key_ttl < 1:
        errors.append(
            ValidationError(
                field="key_ttl",
                message=f"Key TTL must be at least one second (got {config.key_ttl}).",
            )
        )

    if not 0 <= config.redis.port <= 65535:
        errors.append(
            ValidationError(
                field="redis.port",
                message=f"Port out of range: {config.redis.port}",
            )
        )

    if config.output_format not in OUTPUT_FORMATS:
        errors.append(
            ValidationError(
                field="output_format",
                message=(
                    f"Unknown output format '{config.output_format}'. "
                    f"Choose from: {', '.join(OUTPUT_FORMATS)}"
                ),
            )
        )

    # Warnings.
    if not config.concurrent and config.iterations is not None and config.iterations < 3:
        errors.append(
            ValidationError(
                field="iterations",
                message=(
                    f"Only {config.iterations} measured iterations; "
                    f"the rstdev column will not be meaningful."
                ),
                severity="warning",
            )
        )

    if config.concurrent and (config.iterations is not None or config.revolutions is not None):
        errors.append(
            ValidationError(
                field="iterations",
                message=(
                    "Iterations and revolutions are ignored with more than one worker; "
                    "each subject runs a single timed window."
                ),
                severity="warning",
            )
        )

    return errors


def check_config(config: BenchConfig) -> None:
    """Log warnings and raise on fatal validation errors.

    Raises:
        ConfigError: Listing every error-severity problem.
    """
    problems = validate_config(config)
    for problem in problems:
        if problem.severity == "warning":
            log.warning("%s: %s", problem.field, problem.message)
    fatal = [p for p in problems if p.severity == "error"]
    if fatal:
        raise ConfigError("; ".join(f"{p.field}: {p.message}" for p in fatal))


# ---------------------------------------------------------------------------
# YAML profiles
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a run profile from a YAML file.

    Profile format::

        redis:
          host: 127.0.0.1
          port: 6379
          password: null
        workers: 4
        duration: 2.5
        workloads: [get, mget]
        barrier_timeout: 10
        strict: true

    Returns:
        The parsed YAML as a dict.
    """
    if not profile_path.exists():
        raise ConfigError(f"Profile not found: {profile_path}")

    data = yaml.safe_load(profile_path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Profile must be a YAML mapping, got {type(data).__name__}")

    return data


_SCALAR_KEYS: dict[str, type] = {
    "workers": int,
    "duration": float,
    "iterations": int,
    "revolutions": int,
    "warmup": int,
    "barrier_timeout": float,
    "settle_delay": float,
    "key_ttl": int,
    "strict": bool,
    "verbose": bool,
    "output_format": str,
}

_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0"}


def _coerce(key: str, value: Any, kind: type) -> Any:
    """Convert a profile value to *kind*, raising ConfigError if it does not fit."""
    try:
        if kind is bool:
            if isinstance(value, bool):
                return value
            word = str(value).strip().lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
            raise ValueError(value)
        if kind is int and isinstance(value, float) and not value.is_integer():
            raise ValueError(value)
        if kind is not str and isinstance(value, bool):
            raise ValueError(value)
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigError(
            f"Profile '{key}' must be {kind.__name__}, got {value!r}"
        ) from None


def config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> BenchConfig:
    """Build a BenchConfig from a parsed profile.

    CLI overrides take precedence over profile values.  An override of
    ``None`` means the option was not given on the command line.

    Args:
        profile_data: Parsed YAML profile dict.
        cli_overrides: CLI option values keyed by BenchConfig field name,
            plus ``host``, ``port`` and ``password`` for the backend.

    Returns:
        BenchConfig with profile and CLI settings applied.
    """
    cli = {k: v for k, v in (cli_overrides or {}).items() if v is not None}

    known = {"redis", "workloads", "output", *_SCALAR_KEYS}
    for key in profile_data:
        if key not in known:
            log.warning("Ignoring unknown profile key '%s'", key)

    redis_data = profile_data.get("redis") or {}
    if not isinstance(redis_data, dict):
        raise ConfigError("Profile 'redis' must be a mapping of host/port/password")
    defaults = RedisSettings()
    settings = RedisSettings(
        host=str(cli.get("host", redis_data.get("host", defaults.host))),
        port=_coerce(
            "redis.port", cli.get("port", redis_data.get("port", defaults.port)), int
        ),
        password=cli.get("password", redis_data.get("password")),
    )

    config = BenchConfig(redis=settings)
    for key, kind in _SCALAR_KEYS.items():
        if key in cli:
            setattr(config, key, _coerce(key, cli[key], kind))
        elif key in profile_data and profile_data[key] is not None:
            setattr(config, key, _coerce(key, profile_data[key], kind))

    workloads = cli.get("workloads", profile_data.get("workloads"))
    if isinstance(workloads, str):
        workloads = [w.strip() for w in workloads.split(",") if w.strip()]
    if workloads is not None and not isinstance(workloads, list):
        raise ConfigError("Profile 'workloads' must be a list of workload names")
    config.workloads = workloads or None

    output = cli.get("output", profile_data.get("output"))
    if output:
        config.output = Path(output)

    return config
