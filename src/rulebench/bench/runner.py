"""Benchmark execution engine.

Orchestrates:
1. Per-spec sampling policy resolution (spec > global > default)
2. Code sample loading, concurrently for every case of every spec
3. Evaluator construction, one per test case
4. Serial measurement of every (test case, code sample) pair
5. Outlier rejection and statistics
6. Aggregation into per-spec / per-case results

Measurement is never concurrent: specs are measured one after another,
the cases of a spec one after another, and the samples of a case one
after another.  Only setup work (reading sample files) overlaps.

Failures are contained at the smallest granularity that makes sense:
a sample whose measurement fails is recorded as a ``TaskFailure``; a
case whose samples cannot be loaded or whose evaluator cannot be built
is skipped with a single warning.  Neither stops the run.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol, Sequence

from rulebench.bench.config import (
    DEFAULT_SEVERITY,
    BenchmarkConfig,
    CaseConfig,
    TestSpecConfig,
    UserConfig,
    resolve_benchmark_config,
)
from rulebench.bench.results import (
    STATUS_BUILDING,
    STATUS_COMPLETED,
    STATUS_EVALUATOR_FAILED,
    STATUS_READY,
    STATUS_SAMPLE_ABORTED,
    STATUS_SAMPLING,
    STATUS_SKIPPED,
    BenchmarkRun,
    CaseState,
    CodeSample,
    DeclaredCase,
    DeclaredSpec,
    ProcessedBenchmarkTask,
    RuleConfig,
    TaskFailure,
    TestCase,
    TestSpecResult,
    aggregate_results,
    task_name,
)
from rulebench.bench.samples import load_code_samples
from rulebench.bench.stats import calculate_statistics, filter_outliers
from rulebench.bench.timing import collect_samples
from rulebench.errors import EvaluatorConstructionError, NoRunnableWorkError, SampleLoadError
from rulebench.lint.evaluator import EvaluatorProvider
from rulebench.lint.loader import ModuleCache

log = logging.getLogger("rulebench")


class Evaluator(Protocol):
    def evaluate(self, sample: CodeSample) -> Any: ...


class Provider(Protocol):
    async def create(self, rule: RuleConfig, languages: Sequence[str]) -> Evaluator: ...


# Type aliases for the progress callbacks.
TestStartCallback = Callable[[TestCase], None]
TestCompleteCallback = Callable[[TestCase, CaseState], None]


# ---------------------------------------------------------------------------
# Single orchestrator pass
# ---------------------------------------------------------------------------


async def _measure_sample(
    test_case: TestCase,
    sample: CodeSample,
    evaluator: Evaluator,
    config: BenchmarkConfig,
) -> ProcessedBenchmarkTask | TaskFailure:
    async def work() -> None:
        evaluator.evaluate(sample)

    run = await collect_samples(
        work,
        iterations=config.iterations,
        timeout_ms=config.timeout,
        warmup=config.warmup,
    )
    if run.aborted:
        return TaskFailure(
            test_case_id=test_case.id,
            sample_name=sample.filename,
            error=run.error or "Measurement aborted",
        )

    filtered = filter_outliers(run.samples)
    return ProcessedBenchmarkTask(
        name=task_name(test_case.name, sample.filename),
        metrics=calculate_statistics(filtered.filtered_samples),
        test_case_id=test_case.id,
        sample_name=sample.filename,
        outliers_removed=filtered.outliers_removed_count,
        raw_sample_count=len(run.samples),
    )


async def run_benchmark(
    test_cases: Sequence[TestCase],
    config: BenchmarkConfig,
    *,
    provider: Provider,
    on_test_start: TestStartCallback | None = None,
    on_test_complete: TestCompleteCallback | None = None,
) -> BenchmarkRun:
    """Measure every sample of every test case, one at a time.

    Args:
        test_cases: The cases to measure, in order.
        config: Sampling policy applied to every sample.
        provider: Builds the evaluator for each test case.
        on_test_start: Called before a case's evaluator is built.
        on_test_complete: Called once a case has finished or been skipped.

    Returns:
        BenchmarkRun.  ``tasks`` is empty when nothing could be measured.
    """
    result = BenchmarkRun()

    for test_case in test_cases:
        state = CaseState(test_case_id=test_case.id)
        result.states[test_case.id] = state
        if on_test_start is not None:
            on_test_start(test_case)

        if not test_case.samples:
            state.status = STATUS_SKIPPED
            state.error = "No samples"
            log.warning('Skipping test case "%s": no code samples', test_case.name)
            if on_test_complete is not None:
                on_test_complete(test_case, state)
            continue

        state.status = STATUS_BUILDING
        try:
            evaluator = await provider.create(test_case.rule, test_case.languages)
        except Exception as exc:  # noqa: BLE001
            state.status = STATUS_EVALUATOR_FAILED
            state.error = str(exc) or type(exc).__name__
            log.warning(
                'Skipping test case "%s": could not build evaluator: %s',
                test_case.name,
                state.error,
            )
            if on_test_complete is not None:
                on_test_complete(test_case, state)
            continue

        state.status = STATUS_READY
        log.debug("Measuring %s (%d samples)", test_case.name, len(test_case.samples))
        state.status = STATUS_SAMPLING
        aborted = False
        for sample in test_case.samples:
            outcome = await _measure_sample(test_case, sample, evaluator, config)
            if isinstance(outcome, TaskFailure):
                aborted = True
                result.failures.append(outcome)
                log.warning(
                    "Sample %s failed: %s",
                    task_name(test_case.name, sample.filename),
                    outcome.error,
                )
            else:
                result.tasks.append(outcome)
                log.debug(
                    "%s: mean %.4f ms over %d samples (%d outliers)",
                    outcome.name,
                    outcome.metrics.mean,
                    outcome.metrics.sample_count,
                    outcome.outliers_removed,
                )

        state.status = STATUS_SAMPLE_ABORTED if aborted else STATUS_COMPLETED
        if on_test_complete is not None:
            on_test_complete(test_case, state)

    return result


# ---------------------------------------------------------------------------
# Configuration-driven runs
# ---------------------------------------------------------------------------


@dataclass
class PreparedSpec:
    """A test specification with its loaded test cases."""

    spec: TestSpecConfig
    config: BenchmarkConfig
    declared: DeclaredSpec
    test_cases: list[TestCase]


def _slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip()) or "spec"


def _build_rule_config(spec: TestSpecConfig, case: CaseConfig) -> RuleConfig:
    options = case.options if isinstance(case.options, list) else []
    severity = DEFAULT_SEVERITY if case.severity is None else case.severity
    return RuleConfig(
        rule_id=spec.rule_id,
        path=spec.rule_path,
        severity=severity,
        options=options,
        parser=spec.parser,
    )


async def _prepare_case(
    spec: TestSpecConfig,
    spec_index: int,
    case: CaseConfig,
    case_index: int,
    config_dir: Path,
) -> TestCase | DeclaredCase:
    case_id = f"{spec_index}-{_slug(spec.name)}-case-{case_index}"
    case_name = case.name or f"{spec.name} - Case {case_index + 1}"
    try:
        samples = await asyncio.to_thread(load_code_samples, case.test_path, config_dir)
    except SampleLoadError as exc:
        log.warning(
            'Skipping case %d in test "%s" due to an error: %s',
            case_index + 1,
            spec.name,
            exc,
        )
        return DeclaredCase(
            id=case_id, name=case_name, description=case.description, error=str(exc)
        )
    return TestCase(
        id=case_id,
        name=case_name,
        rule=_build_rule_config(spec, case),
        samples=samples,
        description=case.description,
    )


async def prepare_specs(user_config: UserConfig, config_dir: Path) -> list[PreparedSpec]:
    """Resolve sampling policies and load every case's samples concurrently."""

    async def prepare(spec_index: int, spec: TestSpecConfig) -> PreparedSpec:
        config = resolve_benchmark_config(spec, user_config)
        outcomes = await asyncio.gather(
            *(
                _prepare_case(spec, spec_index, case, case_index, config_dir)
                for case_index, case in enumerate(spec.cases)
            )
        )
        declared = DeclaredSpec(
            name=spec.name,
            rule_id=spec.rule_id,
            config=config,
            rule_path=spec.rule_path,
        )
        test_cases: list[TestCase] = []
        for outcome in outcomes:
            if isinstance(outcome, TestCase):
                test_cases.append(outcome)
                declared.cases.append(DeclaredCase.from_test_case(outcome))
            else:
                declared.cases.append(outcome)
        return PreparedSpec(spec=spec, config=config, declared=declared, test_cases=test_cases)

    return list(
        await asyncio.gather(*(prepare(i, spec) for i, spec in enumerate(user_config.tests)))
    )


async def run_benchmarks_from_config(
    user_config: UserConfig,
    config_dir: Path,
    *,
    provider: Provider | None = None,
    on_test_start: TestStartCallback | None = None,
    on_test_complete: TestCompleteCallback | None = None,
) -> list[TestSpecResult]:
    """Run every test specification of *user_config*.

    Args:
        user_config: Parsed (and validated) configuration.
        config_dir: Directory relative paths are resolved against.
        provider: Evaluator provider; defaults to an ``EvaluatorProvider``
            with a fresh module cache for this run.

    Returns:
        One TestSpecResult per declared spec, in declaration order.
    """
    if not user_config.tests:
        log.warning("Configuration contains no tests.")
        return []

    if provider is None:
        provider = EvaluatorProvider(config_dir, ModuleCache())

    prepared = await prepare_specs(user_config, config_dir)

    runs: list[BenchmarkRun] = []
    for item in prepared:
        if not item.test_cases:
            log.warning('No runnable test cases for "%s"', item.spec.name)
            continue
        log.info(
            'Starting benchmark run for "%s" with %d test case(s)...',
            item.spec.name,
            len(item.test_cases),
        )
        runs.append(
            await run_benchmark(
                item.test_cases,
                item.config,
                provider=provider,
                on_test_start=on_test_start,
                on_test_complete=on_test_complete,
            )
        )

    results = aggregate_results([item.declared for item in prepared], runs)
    log.info("Benchmark run completed. %d test specifications processed.", len(results))
    return results


def require_results(results: list[TestSpecResult]) -> list[TestSpecResult]:
    """Return *results* unchanged if at least one sample was measured.

    Raises:
        NoRunnableWorkError: If no sample produced metrics.
    """
    if not any(spec.measured_samples for spec in results):
        raise NoRunnableWorkError(
            "No valid test cases or benchmark results could be generated "
            "from the configuration."
        )
    return results


def single_rule_config(
    *,
    rule_path: str,
    rule_id: str,
    source: str,
    iterations: int,
    warmup: int,
    max_duration: int,
    severity: int = DEFAULT_SEVERITY,
) -> UserConfig:
    """Build a one-spec, one-case configuration for benchmarking one rule.

    Non-positive *iterations* and *max_duration* fall back to the
    defaults; a non-positive *warmup* disables warm-up.
    """
    return UserConfig(
        tests=[
            TestSpecConfig(
                name=f"CLI: {rule_id}",
                rule_id=rule_id,
                rule_path=rule_path,
                cases=[CaseConfig(test_path=[source], severity=severity)],
            )
        ],
        iterations=iterations if iterations > 0 else None,
        timeout=max_duration if max_duration > 0 else None,
        warmup={"iterations": warmup if warmup > 0 else None, "enabled": warmup > 0},
    )
