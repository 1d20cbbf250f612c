"""Benchmarking subsystem for rulebench.

Provides the timed sampling loop, outlier rejection, descriptive
statistics, and the per-test-case orchestration that turns a set of
rule/sample combinations into comparable metrics.
"""
