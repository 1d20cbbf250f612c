"""Exception hierarchy for rulebench.

Only construction-time and configuration problems are raised as
exceptions.  Failures while measuring a sample are captured as text on
the sample run and never propagate out of the benchmark engine.
"""

from __future__ import annotations


class RuleBenchError(Exception):
    """Base class for all rulebench errors."""


class ConfigError(RuleBenchError):
    """A configuration file could not be found, read, or parsed."""


class EvaluatorConstructionError(RuleBenchError):
    """The isolated rule evaluator for a test case could not be built."""


class RuleLoadError(EvaluatorConstructionError):
    """The rule module could not be imported or did not contain the rule."""


class ParserLoadError(EvaluatorConstructionError):
    """The parser for one of the sample languages could not be loaded."""


class SampleLoadError(RuleBenchError):
    """No usable code samples could be loaded for a test case."""


class NoRunnableWorkError(RuleBenchError):
    """A whole benchmark run produced no processed tasks."""
