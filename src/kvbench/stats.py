"""Statistical functions for benchmark comparison.

Provides the median and relative standard deviation used to summarise
a subject's iterations, a descriptive summary for exports, and the
human-readable magnitude formatting used in reports.

Every function here is total: an empty sample set yields 0 rather than
an exception.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Sequence


# ---------------------------------------------------------------------------
# Central tendency and spread
# ---------------------------------------------------------------------------


def median(values: Sequence[float]) -> float:
    """Order-statistic median; the mean of the two central values for
    even-length input.  Returns 0 for an empty sample."""
    if not values:
        return 0.0
    return float(statistics.median(values))


def rstdev(values: Sequence[float]) -> float:
    """Relative standard deviation as a percentage of the mean.

    Uses the population standard deviation.  Samples with fewer than
    two values, or a zero mean, have a relative deviation of 0.
    """
    if len(values) < 2:
        return 0.0
    mean = statistics.fmean(values)
    if mean == 0:
        return 0.0
    return 100.0 * statistics.pstdev(values) / mean


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


@dataclass
class DescriptiveStats:
    """Summary statistics for a sample."""

    n: int
    mean: float
    median: float
    stdev: float
    min: float
    max: float
    rstdev: float  # percent

    def to_dict(self) -> dict[str, float | int]:
        """Serialize to a dict with rounded values."""
        return {
            "n": self.n,
            "mean": round(self.mean, 6),
            "median": round(self.median, 6),
            "stdev": round(self.stdev, 6),
            "min": round(self.min, 6),
            "max": round(self.max, 6),
            "rstdev": round(self.rstdev, 6),
        }


def describe(values: Sequence[float]) -> DescriptiveStats:
    """Compute descriptive statistics for a sample.

    An empty sample produces all-zero statistics.
    """
    if not values:
        return DescriptiveStats(n=0, mean=0.0, median=0.0, stdev=0.0, min=0.0, max=0.0, rstdev=0.0)

    n = len(values)
    return DescriptiveStats(
        n=n,
        mean=statistics.fmean(values),
        median=median(values),
        stdev=statistics.pstdev(values) if n >= 2 else 0.0,
        min=float(min(values)),
        max=float(max(values)),
        rstdev=rstdev(values),
    )


# ---------------------------------------------------------------------------
# Magnitude formatting
# ---------------------------------------------------------------------------

_MEMORY_UNITS = ("b", "kb", "mb", "gb")
_NUMBER_UNITS = ("", "K", "M", "B")
# Decimals per tier: whole units at the smallest tier, two above it.
_PRECISION = (0, 2, 2, 2)


def _tier(value: float, base: int, tiers: int) -> int:
    """Return ``floor(log_base(value))`` clamped to the available tiers.

    Compares against exact powers of *base*, so ``1000`` is tier 1 in
    base 1000.  Values below 1, zero included, use tier 0.
    """
    tier = 0
    while tier < tiers - 1 and value >= base ** (tier + 1):
        tier += 1
    return tier


def _scaled(value: float, base: int, units: Sequence[str]) -> str:
    tier = _tier(value, base, len(units))
    return f"{value / base**tier:,.{_PRECISION[tier]}f}{units[tier]}"


def human_memory(value: float) -> str:
    """Format a byte count with 1024-based units, e.g. ``'1.50mb'``."""
    return _scaled(value, 1024, _MEMORY_UNITS)


def human_number(value: float) -> str:
    """Format a count with 1000-based units, e.g. ``'12.35K'``."""
    return _scaled(value, 1000, _NUMBER_UNITS)
