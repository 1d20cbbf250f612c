"""Terminal display formatting for benchmark results.

Produces one aligned table per test specification, all tables sharing
the same column widths, followed by the system information block.
No external dependencies.
"""

from __future__ import annotations

import math
from typing import Any

from rulebench.bench.results import SampleResult, TestSpecResult
from rulebench.bench.system import SystemProfile, format_system_profile

TABLE_HEADERS = ["Sample", "Ops/sec", "Avg Time", "Median", "Min", "Max", "StdDev"]
EMPTY_ROW_VALUES = ["No samples", "N/A", "N/A", "N/A", "N/A", "N/A", "N/A"]

MIN_COLUMN_WIDTH = 5
CELL_PADDING = 1

NO_RESULTS = "No benchmark results available."
NO_CASES = "No test cases found or all failed for this specification."


# ---------------------------------------------------------------------------
# Number formatting
# ---------------------------------------------------------------------------


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_number(value: Any) -> str:
    """Format with thousands separators and at most three decimals."""
    if not _is_finite_number(value):
        return "N/A"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def format_ms(milliseconds: Any) -> str:
    """Format a duration, e.g. ``1,234.567 ms``."""
    if not _is_finite_number(milliseconds):
        return "N/A"
    return f"{milliseconds:,.3f} ms"


def format_hz(hz: Any) -> str:
    """Format a rate rounded to whole operations, e.g. ``1,235 ops/sec``."""
    if not _is_finite_number(hz):
        return "N/A"
    return f"{round_half_up(hz):,} ops/sec"


def format_deviation(deviation: Any) -> str:
    """Format a standard deviation, e.g. ``±0.123 ms``."""
    if not _is_finite_number(deviation):
        return "N/A"
    return f"±{format_ms(deviation)}"


# ---------------------------------------------------------------------------
# Table rendering
# ---------------------------------------------------------------------------


def sample_row(sample: SampleResult) -> list[str]:
    """Cells for one sample: its metrics, or ``failed`` markers."""
    if sample.metrics is None:
        return [sample.name, "failed", "N/A", "N/A", "N/A", "N/A", "N/A"]
    m = sample.metrics
    return [
        sample.name,
        format_hz(m.hz),
        format_ms(m.mean),
        format_ms(m.median),
        format_ms(m.min),
        format_ms(m.max),
        format_deviation(m.std_dev),
    ]


def _spec_rows(spec: TestSpecResult) -> list[list[str]]:
    rows: list[list[str]] = []
    for case in spec.cases:
        if not case.samples:
            rows.append(list(EMPTY_ROW_VALUES))
            continue
        rows.extend(sample_row(s) for s in case.samples)
    return rows


def _uniform_column_widths(results: list[TestSpecResult]) -> list[int]:
    widths = [len(h) for h in TABLE_HEADERS]
    for spec in results:
        for row in _spec_rows(spec):
            for i, value in enumerate(row):
                widths[i] = max(widths[i], len(value))
    return [max(w, MIN_COLUMN_WIDTH) for w in widths]


def _render_table(title: str, rows: list[list[str]], widths: list[int]) -> str:
    last = len(widths) - 1
    left_pads = [0 if i == 0 else CELL_PADDING for i in range(len(widths))]
    right_pads = [0 if i == last else CELL_PADDING for i in range(len(widths))]
    separator = "-".join(
        "-" * (w + left_pads[i] + right_pads[i]) for i, w in enumerate(widths)
    )

    lines = [separator, title.center(len(separator)).rstrip(), separator]
    for row in [TABLE_HEADERS, *rows]:
        cells = [
            " " * left_pads[i] + cell.ljust(widths[i]) + " " * right_pads[i]
            for i, cell in enumerate(row)
        ]
        lines.append("|".join(cells).rstrip())
    lines.append(separator)
    return "\n".join(lines)


def format_console_report(
    results: list[TestSpecResult],
    system: SystemProfile | None = None,
) -> str:
    """Format aggregated results for terminal output.

    Args:
        results: Aggregated results, one per test specification.
        system: System profile to append; omitted when None.

    Returns:
        Formatted string for terminal output.
    """
    if not results:
        return NO_RESULTS

    widths = _uniform_column_widths(results)
    lines: list[str] = [""]
    for spec in results:
        if not spec.cases:
            lines.append(f"  {NO_CASES}")
            continue
        lines.append(_render_table(spec.name, _spec_rows(spec), widths))

    if system is not None:
        lines.append("")
        lines.append(format_system_profile(system))
    lines.append("")
    return "\n".join(lines)
