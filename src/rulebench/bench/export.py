"""Export benchmark results to JSON and Markdown, and run reporters.

JSON keeps the formatted metrics for every sample, and an ``error`` for
samples or cases that produced none.  Markdown is suitable for pull
request comments and README files.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import click

from rulebench.bench.config import ReporterOptions
from rulebench.bench.display import (
    EMPTY_ROW_VALUES,
    NO_CASES,
    NO_RESULTS,
    format_console_report,
    format_deviation,
    format_hz,
    format_ms,
    format_number,
    round_half_up,
    sample_row,
)
from rulebench.bench.results import SampleResult, TestCaseResult, TestSpecResult
from rulebench.bench.stats import BenchmarkMetrics
from rulebench.bench.system import SystemProfile, capture_system_profile
from rulebench.integrations.github import is_github_pull_request, publish_github_comment

log = logging.getLogger("rulebench")

REPORT_FORMATS = ("console", "json", "markdown")

MARKDOWN_TITLE = "# Rule Benchmark Report"


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------


def _metrics_to_json(metrics: BenchmarkMetrics) -> dict[str, Any]:
    return {
        "operationsPerSecond": round_half_up(metrics.hz),
        "averageTime": format_ms(metrics.mean),
        "medianTime": format_ms(metrics.median),
        "minimumTime": format_ms(metrics.min),
        "maximumTime": format_ms(metrics.max),
        "p75": format_ms(metrics.p75),
        "p99": format_ms(metrics.p99),
        "standardDeviation": format_deviation(metrics.std_dev),
        "periodInSeconds": metrics.period,
        "totalSamples": metrics.sample_count,
    }


def _sample_to_json(sample: SampleResult) -> dict[str, Any]:
    d: dict[str, Any] = {"sampleName": sample.name}
    if sample.metrics is not None:
        d["metrics"] = _metrics_to_json(sample.metrics)
        d["outliersRemoved"] = sample.outliers_removed
    if sample.error is not None:
        d["error"] = sample.error
    return d


def _case_to_json(case: TestCaseResult, rule_id: str) -> dict[str, Any]:
    d: dict[str, Any] = {
        "id": case.id,
        "name": case.name,
        "description": case.description,
        "ruleId": rule_id,
        "samples": [_sample_to_json(s) for s in case.samples],
    }
    if case.error is not None:
        d["error"] = case.error
    return d


def export_json(
    results: Sequence[TestSpecResult],
    system: SystemProfile | None = None,
) -> str:
    """Export results as an indented JSON document."""
    report = {
        "testSpecifications": [
            {
                "name": spec.name,
                "ruleId": spec.rule_id,
                "rulePath": spec.rule_path,
                "benchmarkConfig": spec.config.to_dict(),
                "testCases": [_case_to_json(c, spec.rule_id) for c in spec.cases],
            }
            for spec in results
        ],
        "systemInfo": system.to_dict() if system is not None else {},
    }
    return json.dumps(report, indent=2)


# ---------------------------------------------------------------------------
# Markdown export
# ---------------------------------------------------------------------------


def export_markdown(results: Sequence[TestSpecResult]) -> str:
    """Export results as a Markdown report, one table per specification."""
    if not results:
        return NO_RESULTS

    lines: list[str] = [MARKDOWN_TITLE]
    for spec in results:
        lines.append("")
        lines.append(f"## {spec.name}")
        lines.append("")
        if not spec.cases:
            lines.append(NO_CASES)
            continue

        lines.append("| Sample | Ops/sec | Avg Time | Median | Min | Max | StdDev | Samples |")
        lines.append("| ------ | ------- | -------- | ------ | --- | --- | ------ | ------- |")
        for case in spec.cases:
            if not case.samples:
                lines.append("| " + " | ".join([*EMPTY_ROW_VALUES, "N/A"]) + " |")
                continue
            for sample in case.samples:
                row = sample_row(sample)
                if sample.metrics is not None:
                    # Markdown shows the plain deviation, without the ± sign.
                    row[6] = format_ms(sample.metrics.std_dev)
                    row.append(format_number(sample.metrics.sample_count))
                else:
                    row.append("N/A")
                lines.append("| " + " | ".join(row) + " |")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Reporter dispatch
# ---------------------------------------------------------------------------


def render_report(
    results: Sequence[TestSpecResult],
    fmt: str,
    system: SystemProfile | None = None,
) -> str:
    """Render *results* in the requested format.

    Raises:
        ValueError: If *fmt* is not a known report format.
    """
    if fmt == "console":
        return format_console_report(list(results), system)
    if fmt == "json":
        return export_json(results, system)
    if fmt == "markdown":
        return export_markdown(results)
    raise ValueError(f"Unknown report format: {fmt!r} (expected one of {REPORT_FORMATS})")


def run_reporters(
    results: Sequence[TestSpecResult],
    reporters: Sequence[ReporterOptions],
    *,
    echo: Callable[[str], None] = click.echo,
    env: Mapping[str, str] | None = None,
) -> None:
    """Produce every requested report.

    Reports with an ``output_path`` are written there (parent directories
    are created); others are passed to *echo*.  A failing reporter is
    logged and does not stop the others.  Inside a GitHub pull request
    the Markdown report is also published as a comment.
    """
    if not reporters:
        log.warning("No reporters configured. Skipping report generation.")
        return

    system = capture_system_profile()

    for reporter in reporters:
        try:
            content = render_report(results, reporter.format, system)
            if reporter.output_path is not None:
                path = Path(reporter.output_path).resolve()
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(content, encoding="utf-8")
                log.info('Report in "%s" format saved to: %s', reporter.format, path)
            else:
                echo(content)
        except (OSError, ValueError) as exc:
            log.error('Error generating report for format "%s": %s', reporter.format, exc)

    env = os.environ if env is None else env
    if is_github_pull_request(env):
        if publish_github_comment(export_markdown(results), env=env):
            log.info("GitHub comment published successfully.")
