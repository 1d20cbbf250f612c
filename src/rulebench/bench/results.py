"""Benchmark data structures and result aggregation.

Hierarchy::

    TestSpecResult (one rule under test, one sampling policy)
      → cases: list[TestCaseResult]
        → samples: list[SampleResult]
          → metrics: BenchmarkMetrics

A run of the orchestrator produces a flat ``BenchmarkRun`` of processed
tasks, sample failures, and per-case states.  ``aggregate_results``
regroups those into the hierarchy above in declaration order, keeping
an explicit row for every declared case and sample even when nothing
could be measured for it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from rulebench.bench.config import DEFAULT_SEVERITY, BenchmarkConfig
from rulebench.bench.stats import BenchmarkMetrics

log = logging.getLogger("rulebench")

NO_SAMPLES_ERROR = "No samples"

# Test case lifecycle inside one orchestrator pass.
STATUS_PENDING = "pending"
STATUS_BUILDING = "building"
STATUS_READY = "ready"
STATUS_SAMPLING = "sampling"
STATUS_COMPLETED = "completed"
STATUS_SAMPLE_ABORTED = "sample_aborted"
STATUS_EVALUATOR_FAILED = "evaluator_failed"
STATUS_SKIPPED = "skipped"

_FAILED_STATUSES = (STATUS_EVALUATOR_FAILED, STATUS_SKIPPED)


# ---------------------------------------------------------------------------
# Test cases
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CodeSample:
    """A named piece of source text to evaluate the rule against."""

    filename: str
    code: str
    language: str = "python"


@dataclass
class RuleConfig:
    """Which rule to load and how to configure it."""

    rule_id: str
    path: str | None = None
    severity: int = DEFAULT_SEVERITY  # 0 off, 1 warn, 2 error
    options: list[Any] = field(default_factory=list)
    parser: str | None = None


@dataclass
class TestCase:
    """One rule configuration evaluated over a list of code samples."""

    __test__ = False  # not a unittest/pytest test class

    id: str
    name: str
    rule: RuleConfig
    samples: list[CodeSample] = field(default_factory=list)
    description: str = ""

    @property
    def languages(self) -> list[str]:
        """Distinct sample languages, in first-seen order."""
        seen: list[str] = []
        for sample in self.samples:
            if sample.language not in seen:
                seen.append(sample.language)
        return seen


def task_name(case_name: str, sample_name: str) -> str:
    """Name of the task measuring *sample_name* under *case_name*."""
    return f"{case_name} on {sample_name}"


# ---------------------------------------------------------------------------
# Orchestrator output
# ---------------------------------------------------------------------------


@dataclass
class ProcessedBenchmarkTask:
    """Statistics for one (test case, code sample) pair."""

    name: str
    metrics: BenchmarkMetrics
    test_case_id: str
    sample_name: str
    outliers_removed: int = 0
    raw_sample_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "name": self.name,
            "test_case_id": self.test_case_id,
            "sample_name": self.sample_name,
            "outliers_removed": self.outliers_removed,
            "raw_sample_count": self.raw_sample_count,
            "metrics": self.metrics.to_dict(),
        }


@dataclass
class TaskFailure:
    """A sample whose measurement aborted."""

    test_case_id: str
    sample_name: str
    error: str


@dataclass
class CaseState:
    """Lifecycle status of one test case during a run."""

    test_case_id: str
    status: str = STATUS_PENDING
    error: str | None = None


@dataclass
class BenchmarkRun:
    """Everything one orchestrator pass produced."""

    tasks: list[ProcessedBenchmarkTask] = field(default_factory=list)
    failures: list[TaskFailure] = field(default_factory=list)
    states: dict[str, CaseState] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Declared structure (what the configuration asked for)
# ---------------------------------------------------------------------------


@dataclass
class DeclaredCase:
    """A configured case, whether or not its samples could be loaded."""

    id: str
    name: str
    description: str = ""
    sample_names: list[str] = field(default_factory=list)
    error: str | None = None  # set when the case never reached the orchestrator

    @classmethod
    def from_test_case(cls, test_case: TestCase) -> DeclaredCase:
        return cls(
            id=test_case.id,
            name=test_case.name,
            description=test_case.description,
            sample_names=[s.filename for s in test_case.samples],
        )


@dataclass
class DeclaredSpec:
    """A configured test specification in declaration order."""

    name: str
    rule_id: str
    config: BenchmarkConfig
    rule_path: str | None = None
    cases: list[DeclaredCase] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Aggregated results
# ---------------------------------------------------------------------------


@dataclass
class SampleResult:
    """Outcome for one code sample of a case."""

    name: str
    metrics: BenchmarkMetrics | None = None
    outliers_removed: int = 0
    raw_sample_count: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.metrics is not None and self.error is None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name}
        if self.metrics is not None:
            d["metrics"] = self.metrics.to_dict()
            d["outliers_removed"] = self.outliers_removed
            d["raw_sample_count"] = self.raw_sample_count
        if self.error is not None:
            d["error"] = self.error
        return d


@dataclass
class TestCaseResult:
    """All sample outcomes for one test case."""

    __test__ = False  # not a unittest/pytest test class

    id: str
    name: str
    description: str = ""
    samples: list[SampleResult] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "samples": [s.to_dict() for s in self.samples],
        }
        if self.error is not None:
            d["error"] = self.error
        return d


@dataclass
class TestSpecResult:
    """All case results for one rule under one sampling policy."""

    __test__ = False  # not a unittest/pytest test class

    name: str
    rule_id: str
    config: BenchmarkConfig
    rule_path: str | None = None
    cases: list[TestCaseResult] = field(default_factory=list)

    @property
    def measured_samples(self) -> list[SampleResult]:
        """Every sample across all cases that produced metrics."""
        return [s for c in self.cases for s in c.samples if s.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "rule_id": self.rule_id,
            "rule_path": self.rule_path,
            "config": self.config.to_dict(),
            "cases": [c.to_dict() for c in self.cases],
        }


def aggregate_results(
    declared_specs: Iterable[DeclaredSpec],
    runs: Iterable[BenchmarkRun],
) -> list[TestSpecResult]:
    """Regroup flat orchestrator output into per-spec, per-case results.

    Tasks and failures are matched to cases by ``test_case_id`` and to
    samples by sample name, so the order in which tasks completed does
    not matter: the output follows the declaration order of specs,
    cases, and samples.

    A case that never produced anything (its samples failed to load, its
    evaluator could not be built, or it had no samples) is kept with an
    ``error`` and no sample rows.  A declared sample with neither a task
    nor a failure is kept with an ``error`` as well.
    """
    tasks: dict[tuple[str, str], ProcessedBenchmarkTask] = {}
    failures: dict[tuple[str, str], TaskFailure] = {}
    states: dict[str, CaseState] = {}
    for run in runs:
        for task in run.tasks:
            tasks[(task.test_case_id, task.sample_name)] = task
        for failure in run.failures:
            failures[(failure.test_case_id, failure.sample_name)] = failure
        states.update(run.states)

    results: list[TestSpecResult] = []
    for spec in declared_specs:
        spec_result = TestSpecResult(
            name=spec.name,
            rule_id=spec.rule_id,
            config=spec.config,
            rule_path=spec.rule_path,
        )
        for case in spec.cases:
            spec_result.cases.append(_aggregate_case(case, tasks, failures, states))
        results.append(spec_result)

    return results


def _aggregate_case(
    case: DeclaredCase,
    tasks: dict[tuple[str, str], ProcessedBenchmarkTask],
    failures: dict[tuple[str, str], TaskFailure],
    states: dict[str, CaseState],
) -> TestCaseResult:
    result = TestCaseResult(id=case.id, name=case.name, description=case.description)

    if case.error is not None:
        result.error = case.error
        return result

    state = states.get(case.id)
    if state is not None and state.status in _FAILED_STATUSES:
        result.error = state.error or NO_SAMPLES_ERROR
        return result

    if not case.sample_names:
        result.error = NO_SAMPLES_ERROR
        return result

    for sample_name in case.sample_names:
        key = (case.id, sample_name)
        task = tasks.get(key)
        if task is not None:
            result.samples.append(
                SampleResult(
                    name=sample_name,
                    metrics=task.metrics,
                    outliers_removed=task.outliers_removed,
                    raw_sample_count=task.raw_sample_count,
                )
            )
        elif key in failures:
            result.samples.append(SampleResult(name=sample_name, error=failures[key].error))
        else:
            result.samples.append(SampleResult(name=sample_name, error="Not measured"))

    return result
