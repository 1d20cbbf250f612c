"""Benchmark configuration loading and validation.

Handles:
- Discovering a configuration file (YAML or JSON) near the project.
- Parsing the file into UserConfig / TestSpecConfig / CaseConfig.
- Validating the parsed configuration before any rule is loaded.
- Resolving the per-spec BenchmarkConfig (spec > global > default).

Configuration format::

    iterations: 50            # optional global settings
    timeout: 300              # milliseconds
    warmup:
      iterations: 10
      enabled: true

    tests:
      - name: "no-print: large modules"
        rule_id: "style/no-print"
        rule_path: "./rules/no_print.py"
        iterations: 100       # optional per-spec override
        cases:
          - test_path: "./samples/large"
            severity: 2
            options: [{"allow_stderr": true}]
          - test_path: ["./samples/a.py", "./samples/b.pyi"]
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rulebench.errors import ConfigError

log = logging.getLogger("rulebench")

DEFAULT_ITERATIONS = 50
DEFAULT_TIMEOUT_MS = 300
DEFAULT_WARMUP_ITERATIONS = 10
DEFAULT_WARMUP_ENABLED = True
DEFAULT_SEVERITY = 2
DEFAULT_REPORTER_FORMAT = "console"

CONFIG_SEARCH_PLACES = (
    "benchmark/config.yaml",
    "benchmark/config.yml",
    "benchmark/config.json",
    "rulebench.yaml",
    "rulebench.yml",
    "rulebench.json",
)

# Accepted camelCase spellings of snake_case keys.
_KEY_ALIASES = {
    "ruleId": "rule_id",
    "rulePath": "rule_path",
    "testPath": "test_path",
}


# ---------------------------------------------------------------------------
# BenchmarkConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WarmupConfig:
    """Warm-up policy for the sample executor."""

    iterations: int = DEFAULT_WARMUP_ITERATIONS
    enabled: bool = DEFAULT_WARMUP_ENABLED

    def to_dict(self) -> dict[str, Any]:
        return {"iterations": self.iterations, "enabled": self.enabled}


@dataclass(frozen=True)
class BenchmarkConfig:
    """Resolved sampling policy for one test specification."""

    name: str = ""
    iterations: int = DEFAULT_ITERATIONS
    timeout: int = DEFAULT_TIMEOUT_MS  # milliseconds
    warmup: WarmupConfig = field(default_factory=WarmupConfig)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the sampling policy (without the name)."""
        return {
            "iterations": self.iterations,
            "timeout": self.timeout,
            "warmup": self.warmup.to_dict(),
        }


@dataclass
class ReporterOptions:
    """One requested report: its format and optional output file."""

    format: str = DEFAULT_REPORTER_FORMAT
    output_path: Path | None = None


# ---------------------------------------------------------------------------
# User configuration
# ---------------------------------------------------------------------------


@dataclass
class CaseConfig:
    """One case of a test specification, as written by the user."""

    test_path: list[str] = field(default_factory=list)
    name: str = ""
    description: str = ""
    options: Any = None
    severity: Any = None


@dataclass
class TestSpecConfig:
    """One rule under test with its cases and optional overrides."""

    __test__ = False  # not a unittest/pytest test class

    name: str = ""
    rule_id: str = ""
    rule_path: str = ""
    parser: str | None = None
    iterations: Any = None
    timeout: Any = None
    warmup: Any = None
    cases: list[CaseConfig] = field(default_factory=list)


@dataclass
class UserConfig:
    """The parsed configuration file."""

    tests: list[TestSpecConfig] = field(default_factory=list)
    iterations: Any = None
    timeout: Any = None
    warmup: Any = None


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_KEY_ALIASES.get(k, k): v for k, v in data.items()}


def config_from_data(data: dict[str, Any]) -> UserConfig:
    """Build a UserConfig from a parsed YAML/JSON mapping.

    Values are carried over without type checking; ``validate_config``
    reports anything malformed.

    Raises:
        ConfigError: If ``tests`` or one of its entries has the wrong shape.
    """
    tests_data = data.get("tests") or []
    if not isinstance(tests_data, list):
        raise ConfigError("'tests' must be a list of test specifications")

    config = UserConfig(
        iterations=data.get("iterations"),
        timeout=data.get("timeout"),
        warmup=data.get("warmup"),
    )

    for index, raw_spec in enumerate(tests_data):
        if not isinstance(raw_spec, dict):
            raise ConfigError(
                f"Test at index {index} must be a mapping, got {type(raw_spec).__name__}"
            )
        spec_data = _normalize_keys(raw_spec)
        spec = TestSpecConfig(
            name=spec_data.get("name") or "",
            rule_id=spec_data.get("rule_id") or "",
            rule_path=spec_data.get("rule_path") or "",
            parser=spec_data.get("parser"),
            iterations=spec_data.get("iterations"),
            timeout=spec_data.get("timeout"),
            warmup=spec_data.get("warmup"),
        )

        cases_data = spec_data.get("cases") or []
        if not isinstance(cases_data, list):
            cases_data = []
        for raw_case in cases_data:
            if not isinstance(raw_case, dict):
                raw_case = {}
            case_data = _normalize_keys(raw_case)
            test_path = case_data.get("test_path")
            if test_path is None:
                paths: list[str] = []
            elif isinstance(test_path, list):
                paths = list(test_path)
            else:
                paths = [test_path]
            spec.cases.append(
                CaseConfig(
                    test_path=paths,
                    name=case_data.get("name") or "",
                    description=case_data.get("description") or "",
                    options=case_data.get("options"),
                    severity=case_data.get("severity"),
                )
            )

        config.tests.append(spec)

    return config


# ---------------------------------------------------------------------------
# File discovery and loading
# ---------------------------------------------------------------------------


def find_config(start: Path | None = None) -> Path:
    """Locate the configuration file.

    If *start* is a file it is returned as-is.  Otherwise each of
    ``CONFIG_SEARCH_PLACES`` is tried relative to *start* (default: the
    current directory).

    Raises:
        ConfigError: If no configuration file exists.
    """
    base = start or Path.cwd()
    if base.is_file():
        return base
    for place in CONFIG_SEARCH_PLACES:
        candidate = base / place
        if candidate.is_file():
            return candidate
    raise ConfigError(f"No config found in: {base}")


def load_config(config_path: Path) -> tuple[UserConfig, Path]:
    """Load and parse a configuration file.

    Returns:
        Tuple of (UserConfig, directory containing the file).  Relative
        paths inside the configuration are resolved against that
        directory.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    import yaml

    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config {config_path}: {exc}") from exc

    try:
        if config_path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(
            f"Config must be a mapping, got {type(data).__name__}: {config_path}"
        )

    log.debug("Loaded config from %s", config_path)
    return config_from_data(data), config_path.parent.resolve()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"

    def __str__(self) -> str:
        return self.message


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_count(value: Any) -> bool:
    """A whole number; ``5.0`` is accepted, ``0.5`` is not."""
    return _is_number(value) and float(value).is_integer()


def _validate_settings(
    prefix: str,
    field_prefix: str,
    iterations: Any,
    timeout: Any,
    warmup: Any,
) -> list[ValidationError]:
    """Validate the iterations/timeout/warmup trio shared by both levels."""
    errors: list[ValidationError] = []

    if iterations is not None and (not _is_count(iterations) or iterations <= 0):
        errors.append(
            ValidationError(
                field=f"{field_prefix}iterations",
                message=f'{prefix}"iterations" must be a positive integer',
            )
        )

    if timeout is not None and (not _is_count(timeout) or timeout <= 0):
        errors.append(
            ValidationError(
                field=f"{field_prefix}timeout",
                message=f'{prefix}"timeout" must be a positive integer',
            )
        )

    if warmup is not None:
        if not isinstance(warmup, dict):
            errors.append(
                ValidationError(
                    field=f"{field_prefix}warmup",
                    message=f'{prefix}"warmup" must be a mapping',
                )
            )
        else:
            wi = warmup.get("iterations")
            if wi is not None and (not _is_count(wi) or wi < 0):
                errors.append(
                    ValidationError(
                        field=f"{field_prefix}warmup.iterations",
                        message=f'{prefix}"warmup.iterations" must be a non-negative integer',
                    )
                )
            we = warmup.get("enabled")
            if we is not None and not isinstance(we, bool):
                errors.append(
                    ValidationError(
                        field=f"{field_prefix}warmup.enabled",
                        message=f'{prefix}"warmup.enabled" must be a boolean',
                    )
                )

    return errors


def _looks_like_file(rule_path: str) -> bool:
    return rule_path.endswith(".py") or "/" in rule_path or "\\" in rule_path


def validate_config(config: UserConfig, config_dir: Path) -> list[ValidationError]:
    """Validate a user configuration.

    Checks global and per-spec settings, required spec fields, the
    existence of rule files and test paths, and case severity/options.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    if not config.tests:
        errors.append(
            ValidationError(
                field="tests",
                message='Configuration must include at least one test in the "tests" array.',
            )
        )
        return errors

    errors.extend(
        _validate_settings("", "", config.iterations, config.timeout, config.warmup)
    )

    for index, spec in enumerate(config.tests):
        prefix = f'Test "{spec.name or f"at index {index}"}"'
        field_prefix = f"tests.{index}."

        if not spec.name:
            errors.append(
                ValidationError(
                    field=f"{field_prefix}name",
                    message=f'Test at index {index}: "name" is required.',
                )
            )

        if not spec.rule_id:
            errors.append(
                ValidationError(
                    field=f"{field_prefix}rule_id",
                    message=f'{prefix}: "rule_id" is required.',
                )
            )

        if not spec.rule_path:
            errors.append(
                ValidationError(
                    field=f"{field_prefix}rule_path",
                    message=f'{prefix}: "rule_path" is required.',
                )
            )
        elif _looks_like_file(spec.rule_path) and not (config_dir / spec.rule_path).exists():
            errors.append(
                ValidationError(
                    field=f"{field_prefix}rule_path",
                    message=f'{prefix}: Rule file not found at "{spec.rule_path}".',
                )
            )

        errors.extend(
            _validate_settings(
                f"{prefix}: ", field_prefix, spec.iterations, spec.timeout, spec.warmup
            )
        )

        if not spec.cases:
            errors.append(
                ValidationError(
                    field=f"{field_prefix}cases",
                    message=f'{prefix}: must include at least one case in the "cases" array.',
                )
            )
            continue

        for case_index, case in enumerate(spec.cases):
            errors.extend(
                _validate_case(case, f"{prefix}, Case {case_index + 1}", config_dir)
            )

    return errors


def _validate_case(case: CaseConfig, prefix: str, config_dir: Path) -> list[ValidationError]:
    errors: list[ValidationError] = []

    if not case.test_path:
        errors.append(
            ValidationError(field="test_path", message=f'{prefix}: "test_path" is required.')
        )
    for test_path in case.test_path:
        if not isinstance(test_path, str):
            errors.append(
                ValidationError(
                    field="test_path",
                    message=f'{prefix}: each item in "test_path" must be a string.',
                )
            )
        elif not (config_dir / test_path).exists():
            errors.append(
                ValidationError(
                    field="test_path",
                    message=f'{prefix}: Test file/directory not found at "{test_path}".',
                )
            )

    if case.severity is not None and (
        not isinstance(case.severity, int)
        or isinstance(case.severity, bool)
        or case.severity not in (0, 1, 2)
    ):
        errors.append(
            ValidationError(field="severity", message=f'{prefix}: "severity" must be 0, 1, or 2.')
        )

    if case.options is not None and not isinstance(case.options, list):
        errors.append(
            ValidationError(field="options", message=f'{prefix}: "options" must be a list.')
        )

    return errors


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve_benchmark_config(spec: TestSpecConfig, config: UserConfig) -> BenchmarkConfig:
    """Merge spec-level, global, and default sampling settings.

    Resolution order (first set value wins): the test specification, the global
    configuration, the built-in default.
    """
    spec_warmup = spec.warmup if isinstance(spec.warmup, dict) else {}
    global_warmup = config.warmup if isinstance(config.warmup, dict) else {}

    def pick(*values: Any, default: Any) -> Any:
        for value in values:
            if value is not None:
                return value
        return default

    return BenchmarkConfig(
        name=spec.name,
        iterations=int(pick(spec.iterations, config.iterations, default=DEFAULT_ITERATIONS)),
        timeout=int(pick(spec.timeout, config.timeout, default=DEFAULT_TIMEOUT_MS)),
        warmup=WarmupConfig(
            iterations=int(
                pick(
                    spec_warmup.get("iterations"),
                    global_warmup.get("iterations"),
                    default=DEFAULT_WARMUP_ITERATIONS,
                )
            ),
            enabled=bool(
                pick(
                    spec_warmup.get("enabled"),
                    global_warmup.get("enabled"),
                    default=DEFAULT_WARMUP_ENABLED,
                )
            ),
        ),
    )
