"""Command-line interface for rulebench.

Subcommands:
    rulebench run          Run every benchmark in a configuration file
    rulebench run-single   Benchmark one rule against one source path
    rulebench system       Print system characterization
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

import click

from rulebench import __version__
from rulebench.bench.config import (
    DEFAULT_ITERATIONS,
    DEFAULT_REPORTER_FORMAT,
    DEFAULT_SEVERITY,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_WARMUP_ITERATIONS,
    ReporterOptions,
    UserConfig,
    find_config,
    load_config,
    validate_config,
)
from rulebench.bench.export import REPORT_FORMATS, run_reporters
from rulebench.bench.runner import require_results, run_benchmarks_from_config, single_rule_config
from rulebench.errors import ConfigError, NoRunnableWorkError
from rulebench.logging import setup_logging

log = logging.getLogger("rulebench")


def _output_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every benchmarking command."""
    decorators = [
        click.option(
            "--report",
            type=click.Choice(REPORT_FORMATS),
            default=DEFAULT_REPORTER_FORMAT,
            show_default=True,
            help="Report format.",
        ),
        click.option(
            "--output",
            type=click.Path(path_type=Path),
            default=None,
            help="Write the report to this file instead of stdout.",
        ),
        click.option("-v", "--verbose", is_flag=True, help="Show detailed output."),
        click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors."),
        click.option(
            "--log-file",
            type=click.Path(path_type=Path),
            default=None,
            help="Also log at DEBUG level to this file.",
        ),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """rulebench: statistical benchmarks for lint rules."""


def _execute(
    user_config: UserConfig,
    config_dir: Path,
    *,
    report: str,
    output: Path | None,
    error_heading: str,
) -> None:
    """Validate, run, and report; exit 1 on invalid config or an empty run."""
    errors = validate_config(user_config, config_dir)
    for warning in [e for e in errors if e.severity == "warning"]:
        log.warning("Config warning: %s: %s", warning.field, warning.message)
    fatal = [e for e in errors if e.severity == "error"]
    if fatal:
        click.echo(error_heading, err=True)
        for error in fatal:
            click.echo(f"- {error}", err=True)
        raise SystemExit(1)

    results = asyncio.run(run_benchmarks_from_config(user_config, config_dir))
    try:
        require_results(results)
    except NoRunnableWorkError as exc:
        log.error("%s", exc)
        raise SystemExit(1)

    run_reporters(results, [ReporterOptions(format=report, output_path=output)])
    log.info("Benchmark run finished.")


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Configuration file (default: search the current directory).",
)
@_output_options
def run(
    config_path: Path | None,
    report: str,
    output: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Run benchmarks from a configuration file.

    \b
    Examples:
        rulebench run
        rulebench run --config bench/rulebench.yaml --report markdown --output report.md
    """
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    try:
        path = find_config(config_path)
        user_config, config_dir = load_config(path)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)

    log.debug("Using config %s", path)
    _execute(
        user_config,
        config_dir,
        report=report,
        output=output,
        error_heading="Configuration validation errors:",
    )


# ---------------------------------------------------------------------------
# run-single
# ---------------------------------------------------------------------------


@main.command("run-single")
@click.option("--rule", "rule_path", required=True, help="Rule file or module to load.")
@click.option("--name", "rule_id", required=True, help="Id of the rule to benchmark.")
@click.option(
    "--source",
    required=True,
    help="File or directory with code samples.",
)
@click.option(
    "--iterations",
    type=int,
    default=DEFAULT_ITERATIONS,
    show_default=True,
    help="Measured iterations per sample.",
)
@click.option(
    "--warmup",
    type=int,
    default=DEFAULT_WARMUP_ITERATIONS,
    show_default=True,
    help="Warm-up iterations (0 disables warm-up).",
)
@click.option(
    "--max-duration",
    type=int,
    default=DEFAULT_TIMEOUT_MS,
    show_default=True,
    help="Time budget per sample in milliseconds.",
)
@click.option(
    "--severity",
    type=click.IntRange(0, 2),
    default=DEFAULT_SEVERITY,
    show_default=True,
    help="Rule severity: 0 off, 1 warn, 2 error.",
)
@_output_options
def run_single(
    rule_path: str,
    rule_id: str,
    source: str,
    iterations: int,
    warmup: int,
    max_duration: int,
    severity: int,
    report: str,
    output: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Benchmark a single rule against a file or directory of samples."""
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    user_config = single_rule_config(
        rule_path=rule_path,
        rule_id=rule_id,
        source=source,
        iterations=iterations,
        warmup=warmup,
        max_duration=max_duration,
        severity=severity,
    )
    _execute(
        user_config,
        Path.cwd(),
        report=report,
        output=output,
        error_heading="Constructed configuration validation errors:",
    )


# ---------------------------------------------------------------------------
# system
# ---------------------------------------------------------------------------


@main.command()
def system() -> None:
    """Print system characterization."""
    from rulebench.bench.system import capture_system_profile, format_system_profile

    click.echo(format_system_profile(capture_system_profile()))
