"""Language parsers for code samples.

A parser is a callable ``parse(source, filename) -> ast.AST``.  The
built-in languages both use the standard ``ast`` module; stub files are
parsed with type comments enabled since they are common in ``.pyi``
sources.  A test specification may name a custom parser module (dotted
name), which must expose ``parse(source, filename)`` directly or on a
``default`` / ``parser`` object.
"""

from __future__ import annotations

import ast
import importlib
import logging
from typing import Any, Callable

from rulebench.errors import ParserLoadError
from rulebench.lint.loader import ModuleCache

log = logging.getLogger("rulebench")

Parser = Callable[[str, str], ast.AST]


def parse_python(source: str, filename: str) -> ast.AST:
    """Parse a regular Python module."""
    return ast.parse(source, filename=filename)


def parse_python_stub(source: str, filename: str) -> ast.AST:
    """Parse a type stub, keeping ``# type:`` comments."""
    return ast.parse(source, filename=filename, type_comments=True)


LANGUAGE_PARSERS: dict[str, Parser] = {
    "python": parse_python,
    "python-stub": parse_python_stub,
}


def _extract_parser(module: Any) -> Parser | None:
    candidates = [module]
    for name in ("default", "parser"):
        exported = getattr(module, name, None)
        if exported is not None:
            candidates.append(exported)
    for candidate in candidates:
        parse = getattr(candidate, "parse", None)
        if callable(parse):
            return parse
    return None


def load_language_parser(
    language: str,
    parser: str | None = None,
    *,
    cache: ModuleCache | None = None,
) -> Parser:
    """Return the parser to use for *language*.

    Args:
        language: Sample language, e.g. ``"python"``.
        parser: Optional dotted module name of a custom parser.  When
            given it is used for every language.
        cache: Module cache for the current run.

    Raises:
        ParserLoadError: If the custom parser cannot be imported or has
            no ``parse``, or no parser is known for *language*.
    """
    if parser:
        cache = cache if cache is not None else ModuleCache()
        try:
            module = cache.get_or_load(
                f"parser:{parser}", lambda: importlib.import_module(parser)
            )
        except Exception as exc:  # noqa: BLE001
            raise ParserLoadError(f"Failed to load parser {parser}: {exc}") from exc
        found = _extract_parser(module)
        if found is None:
            raise ParserLoadError(f"Parser not found in module: {parser}")
        return found

    try:
        return LANGUAGE_PARSERS[language]
    except KeyError:
        raise ParserLoadError(f"No parser available for language: {language}") from None
