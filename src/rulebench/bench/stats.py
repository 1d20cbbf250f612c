"""Statistical functions for rule benchmarks.

Provides Tukey-fence outlier rejection and the descriptive metrics
reported for every (test case, code sample) pair, all in pure Python.

Raw samples are durations in milliseconds throughout the pipeline.
``period`` is the mean converted to seconds and ``hz`` its reciprocal.

Percentiles use the nearest-rank estimator (an observed value at rank
``ceil(p * n) - 1``), not linear interpolation, so reports always show
a duration that was actually measured.

References:
    Tukey's fences: Tukey, J. W. (1977). "Exploratory Data Analysis."
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

DEFAULT_OUTLIER_MULTIPLIER = 1.5

# Raw samples are milliseconds; period is reported in seconds.
MS_PER_SECOND = 1000.0


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenchmarkMetrics:
    """Summary statistics for one rule evaluated against one code sample."""

    sample_count: int = 0
    mean: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    p75: float = 0.0
    p99: float = 0.0
    std_dev: float = 0.0
    period: float = 0.0  # seconds
    hz: float = 0.0  # operations per second

    def to_dict(self) -> dict[str, float | int]:
        """Serialize to a dict with rounded values."""
        return {
            "sample_count": self.sample_count,
            "mean": round(self.mean, 6),
            "median": round(self.median, 6),
            "min": round(self.min, 6),
            "max": round(self.max, 6),
            "p75": round(self.p75, 6),
            "p99": round(self.p99, 6),
            "std_dev": round(self.std_dev, 6),
            "period": round(self.period, 9),
            "hz": round(self.hz, 3),
        }


def calculate_statistics(samples: Sequence[float]) -> BenchmarkMetrics:
    """Compute descriptive metrics for a sample.

    Args:
        samples: Durations in milliseconds, in any order.

    Returns:
        BenchmarkMetrics. An empty input yields all-zero metrics.
    """
    if not samples:
        return BenchmarkMetrics()

    sorted_v = sorted(samples)
    n = len(sorted_v)
    mean = sum(sorted_v) / n

    if n % 2 == 0:
        median = (sorted_v[n // 2 - 1] + sorted_v[n // 2]) / 2
    else:
        median = sorted_v[n // 2]

    # Population variance: divide by n, not n - 1.
    variance = sum((v - mean) ** 2 for v in sorted_v) / n

    period = mean / MS_PER_SECOND
    hz = 1 / period if period > 0 else 0.0

    return BenchmarkMetrics(
        sample_count=n,
        mean=mean,
        median=median,
        min=sorted_v[0],
        max=sorted_v[-1],
        p75=_nearest_rank(sorted_v, 0.75),
        p99=_nearest_rank(sorted_v, 0.99),
        std_dev=math.sqrt(variance),
        period=period,
        hz=hz,
    )


def _nearest_rank(sorted_values: Sequence[float], p: float) -> float:
    """Return the nearest-rank p-th percentile of a non-empty sorted list."""
    index = max(math.ceil(p * len(sorted_values)) - 1, 0)
    return sorted_values[index]


# ---------------------------------------------------------------------------
# Outlier rejection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FilteredSamples:
    """Samples surviving Tukey's fences, sorted ascending."""

    filtered_samples: list[float] = field(default_factory=list)
    outliers_removed_count: int = 0


def filter_outliers(
    samples: Sequence[float],
    multiplier: float = DEFAULT_OUTLIER_MULTIPLIER,
) -> FilteredSamples:
    """Drop values outside Tukey's fences.

    Quartiles are read at ``n // 4`` and ``ceil(3n / 4) - 1`` of the
    sorted values; anything outside ``[q1 - k*iqr, q3 + k*iqr]`` is
    removed.  When every value is identical the IQR is zero and any
    distinct value is removed.

    Args:
        samples: The data points (not modified).
        multiplier: IQR multiplier (1.5 for standard outliers, 3.0 for
            extreme outliers).

    Returns:
        FilteredSamples with the kept values sorted ascending.
    """
    if not samples:
        return FilteredSamples()

    sorted_v = sorted(samples)
    n = len(sorted_v)
    q1 = sorted_v[n // 4]
    q3 = sorted_v[max(math.ceil(3 * n / 4) - 1, 0)]
    iqr = q3 - q1

    lower = q1 - multiplier * iqr
    upper = q3 + multiplier * iqr

    kept = [v for v in sorted_v if lower <= v <= upper]
    return FilteredSamples(
        filtered_samples=kept,
        outliers_removed_count=n - len(kept),
    )
