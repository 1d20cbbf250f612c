"""Isolated single-rule evaluators.

An evaluator parses a code sample, walks its syntax tree, and dispatches
each node to the handlers the rule registered in ``create(context)``.
Handler keys are AST node class names (``"Call"``, ``"FunctionDef"``);
a ``":exit"`` suffix runs the handler after the node's children.

Every rule is registered under ``rulebench/<local name>`` so it cannot
collide with anything else, diagnostics from any other rule id are
dropped, suppression comments such as ``# noqa`` have no effect, and
nothing is ever fixed.  Severity 0 switches the rule off entirely.
"""

from __future__ import annotations

import ast
import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Sequence

from rulebench.bench.results import CodeSample, RuleConfig
from rulebench.errors import EvaluatorConstructionError, RuleLoadError
from rulebench.lint.loader import ModuleCache, RuleFound, RuleLoader, local_rule_name
from rulebench.lint.parsers import Parser, load_language_parser

log = logging.getLogger("rulebench")

NAMESPACE = "rulebench"
EXIT_SUFFIX = ":exit"

_SEVERITY_NAMES = {0: "off", 1: "warn", 2: "error"}


def to_severity(level: int) -> str:
    """Map a numeric severity (0, 1, 2) to ``off`` / ``warn`` / ``error``.

    Raises:
        ValueError: For any other value.
    """
    try:
        return _SEVERITY_NAMES[level]
    except KeyError:
        raise ValueError(f"Invalid severity: {level!r} (expected 0, 1, or 2)") from None


def namespaced_rule_id(rule_id: str) -> str:
    """Collision-proof id under which a rule is registered."""
    return f"{NAMESPACE}/{local_rule_name(rule_id)}"


# ---------------------------------------------------------------------------
# Diagnostics and rule context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Diagnostic:
    """A problem reported by a rule."""

    rule_id: str
    message: str
    line: int = 0
    column: int = 0
    severity: str = "error"


class RuleContext:
    """What a rule's ``create`` receives.

    Attributes:
        id: The namespaced rule id.
        options: The configured rule options.
        filename: Name of the sample being checked.
        source: Full source text of the sample.
    """

    def __init__(
        self,
        rule_id: str,
        options: Sequence[Any],
        filename: str,
        source: str,
        severity: str,
    ) -> None:
        self.id = rule_id
        self.options = list(options)
        self.filename = filename
        self.source = source
        self.severity = severity
        self.diagnostics: list[Diagnostic] = []

    def report(self, node: Any, message: str, *, rule_id: str | None = None) -> None:
        """Record a problem at *node* (an AST node or ``None``)."""
        self.diagnostics.append(
            Diagnostic(
                rule_id=rule_id or self.id,
                message=message,
                line=getattr(node, "lineno", 0) or 0,
                column=getattr(node, "col_offset", 0) or 0,
                severity=self.severity,
            )
        )


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


# ---------------------------------------------------------------------------
# RuleEvaluator
# ---------------------------------------------------------------------------


@dataclass
class RuleEvaluator:
    """Runs a set of registered rules over code samples."""

    rules: dict[str, Any]
    parsers: dict[str, Parser]
    severity: int = 2
    options: list[Any] = field(default_factory=list)
    rule_filter: Callable[[Diagnostic], bool] | None = None

    def parse(self, sample: CodeSample) -> ast.AST:
        try:
            parser = self.parsers[sample.language]
        except KeyError:
            raise ValueError(f"No parser registered for language {sample.language}") from None
        return parser(sample.code, sample.filename)

    def evaluate(self, sample: CodeSample) -> list[Diagnostic]:
        """Parse *sample* and run every enabled rule over it.

        Parse errors and exceptions raised by rule handlers propagate.
        """
        tree = self.parse(sample)
        if self.severity == 0:
            return []

        severity_name = to_severity(self.severity)
        diagnostics: list[Diagnostic] = []
        for rule_id, rule in self.rules.items():
            context = RuleContext(
                rule_id, self.options, sample.filename, sample.code, severity_name
            )
            handlers = _get(rule, "create")(context) or {}
            _walk(tree, handlers)
            diagnostics.extend(context.diagnostics)

        if self.rule_filter is not None:
            diagnostics = [d for d in diagnostics if self.rule_filter(d)]
        return diagnostics


def _walk(tree: ast.AST, handlers: dict[str, Callable[[Any], Any]]) -> None:
    """Depth-first walk calling enter handlers before children, exit after."""
    if not handlers:
        return
    stack: list[tuple[ast.AST, bool]] = [(tree, False)]
    while stack:
        node, exiting = stack.pop()
        name = type(node).__name__
        if exiting:
            handler = handlers.get(name + EXIT_SUFFIX)
            if handler is not None:
                handler(node)
            continue
        handler = handlers.get(name)
        if handler is not None:
            handler(node)
        stack.append((node, True))
        children = list(ast.iter_child_nodes(node))
        for child in reversed(children):
            stack.append((child, False))


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class EvaluatorFactory:
    """Assembles an isolated evaluator for one rule handle."""

    def __init__(
        self,
        rule_handle: Any,
        severity: int,
        options: Sequence[Any],
        parsers: dict[str, Parser],
    ) -> None:
        self.rule_handle = rule_handle
        self.severity = severity
        self.options = list(options)
        self.parsers = parsers

    def build(self, rule_id: str) -> RuleEvaluator:
        to_severity(self.severity)  # reject invalid levels early
        registered = namespaced_rule_id(rule_id)
        return RuleEvaluator(
            rules={registered: self.rule_handle},
            parsers=dict(self.parsers),
            severity=self.severity,
            options=self.options,
            rule_filter=lambda diag: diag.rule_id == registered,
        )


class EvaluatorProvider:
    """Builds one evaluator per test case.

    Usage::

        provider = EvaluatorProvider(config_dir, ModuleCache())
        evaluator = await provider.create(rule_config, ["python"])
    """

    def __init__(self, config_dir: Path, cache: ModuleCache | None = None) -> None:
        self.config_dir = config_dir
        self.cache = cache if cache is not None else ModuleCache()
        self.loader = RuleLoader(config_dir, self.cache)

    async def create(
        self,
        rule: RuleConfig,
        languages: Sequence[str],
        parser: str | None = None,
    ) -> RuleEvaluator:
        """Build the evaluator off the event loop.

        Raises:
            EvaluatorConstructionError: If the rule or a parser cannot be
                loaded, or the rule configuration is invalid.
        """
        return await asyncio.to_thread(self.build, rule, languages, parser or rule.parser)

    def build(
        self,
        rule: RuleConfig,
        languages: Sequence[str],
        parser: str | None = None,
    ) -> RuleEvaluator:
        if not rule.path:
            raise RuleLoadError(f'No rule path configured for "{rule.rule_id}"')

        lookup = self.loader.load(rule.rule_id, rule.path)
        if not isinstance(lookup, RuleFound):
            raise RuleLoadError(f'Failed to load rule "{rule.rule_id}": {lookup.reason}')

        parsers = {
            language: load_language_parser(language, parser, cache=self.cache)
            for language in languages
        }

        try:
            factory = EvaluatorFactory(lookup.handle, rule.severity, rule.options, parsers)
            evaluator = factory.build(rule.rule_id)
        except ValueError as exc:
            raise EvaluatorConstructionError(str(exc)) from exc

        log.debug(
            "Built evaluator for %s (%s)", rule.rule_id, ", ".join(languages) or "no languages"
        )
        return evaluator
