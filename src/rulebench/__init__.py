"""rulebench: statistical performance benchmarks for Python lint rules."""

__version__ = "0.3.0"
