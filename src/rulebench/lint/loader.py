"""Rule module loading.

A rule is any object with ``meta`` and ``create`` (as attributes or as
mapping keys).  Rule modules are found either as a ``.py`` file, resolved
against the configuration directory, or as a dotted module name on
``sys.path``.  Once imported, the rule is extracted by trying each
strategy in ``RuleLoader.strategies`` in order:

1. The module itself is a rule.
2. The module's ``rules`` mapping holds the rule id.
3. The module's ``default`` or ``plugin`` object is a rule, or holds a
   ``rules`` mapping with the rule id.

Rule ids are looked up both in full (``style/no-print``) and by their
local part after the last ``/`` (``no-print``).

Imported modules are memoized in a ``ModuleCache`` that lives for one
benchmark run and is passed in explicitly.
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.util
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Callable

from rulebench.errors import RuleLoadError

log = logging.getLogger("rulebench")


# ---------------------------------------------------------------------------
# Lookup results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleFound:
    """The rule was located; ``handle`` is the rule object itself."""

    handle: Any


@dataclass(frozen=True)
class RuleNotFound:
    """The rule could not be located."""

    reason: str


RuleLookup = RuleFound | RuleNotFound


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def is_rule(obj: Any) -> bool:
    """Whether *obj* looks like a rule (has ``meta`` and a callable ``create``)."""
    if obj is None:
        return False
    return _get(obj, "meta") is not None and callable(_get(obj, "create"))


def local_rule_name(rule_id: str) -> str:
    """The part of a rule id after its last ``/``."""
    return rule_id.rsplit("/", 1)[-1]


def _lookup_in_rules(container: Any, rule_id: str) -> Any:
    rules = _get(container, "rules")
    if not isinstance(rules, dict):
        return None
    for key in (rule_id, local_rule_name(rule_id)):
        candidate = rules.get(key)
        if candidate is not None:
            return candidate
    return None


# ---------------------------------------------------------------------------
# Module cache
# ---------------------------------------------------------------------------


class ModuleCache:
    """Imported rule and parser modules, keyed by resolved location."""

    def __init__(self) -> None:
        self._modules: dict[str, ModuleType] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def get_or_load(self, key: str, loader: Callable[[], ModuleType]) -> ModuleType:
        """Return the cached module for *key*, importing it on first use."""
        module = self._modules.get(key)
        if module is None:
            module = loader()
            self._modules[key] = module
            log.debug("Loaded module %s", key)
        return module


def _import_file(path: Path) -> ModuleType:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    module_name = f"rulebench_rule_{path.stem}_{digest}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    # Registered before execution so dataclasses and pickling can find it.
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


def _is_file_reference(rule_path: str) -> bool:
    return rule_path.endswith(".py") or "/" in rule_path or "\\" in rule_path


def import_rule_module(rule_path: str, config_dir: Path, cache: ModuleCache) -> ModuleType:
    """Import the module named by *rule_path*, going through *cache*.

    Raises:
        RuleLoadError: If the file does not exist or the import fails.
    """
    if _is_file_reference(rule_path):
        path = Path(rule_path)
        if not path.is_absolute():
            path = config_dir / path
        path = path.resolve()
        if not path.is_file():
            raise RuleLoadError(f"Rule file not found: {path}")
        key = str(path)

        def loader() -> ModuleType:
            return _import_file(path)

    else:
        key = rule_path

        def loader() -> ModuleType:
            return importlib.import_module(rule_path)

    try:
        return cache.get_or_load(key, loader)
    except RuleLoadError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise RuleLoadError(f"Failed to import rule module {rule_path}: {exc}") from exc


# ---------------------------------------------------------------------------
# RuleLoader
# ---------------------------------------------------------------------------


def _module_is_rule(module: Any, rule_id: str) -> Any:
    return module if is_rule(module) else None


def _module_rules_mapping(module: Any, rule_id: str) -> Any:
    return _lookup_in_rules(module, rule_id)


def _exported_plugin(module: Any, rule_id: str) -> Any:
    for name in ("default", "plugin"):
        exported = _get(module, name)
        if exported is None:
            continue
        if is_rule(exported):
            return exported
        found = _lookup_in_rules(exported, rule_id)
        if found is not None:
            return found
    return None


class RuleLoader:
    """Locates a rule inside its module.

    Usage::

        loader = RuleLoader(config_dir, ModuleCache())
        lookup = loader.load("style/no-print", "rules/no_print.py")
        if isinstance(lookup, RuleFound):
            rule = lookup.handle
    """

    strategies: tuple[Callable[[Any, str], Any], ...] = (
        _module_is_rule,
        _module_rules_mapping,
        _exported_plugin,
    )

    def __init__(self, config_dir: Path, cache: ModuleCache) -> None:
        self.config_dir = config_dir
        self.cache = cache

    def extract(self, module: Any, rule_id: str) -> RuleLookup:
        """Apply the extraction strategies to an already-imported module."""
        for strategy in self.strategies:
            candidate = strategy(module, rule_id)
            if candidate is None:
                continue
            if is_rule(candidate):
                return RuleFound(candidate)
            return RuleNotFound(f'Export for rule "{rule_id}" is not a valid rule')
        return RuleNotFound(f'Rule "{rule_id}" not found in module')

    def load(self, rule_id: str, rule_path: str) -> RuleLookup:
        """Import *rule_path* and extract *rule_id* from it.

        Import failures are reported as ``RuleNotFound`` with the error
        message as the reason.
        """
        try:
            module = import_rule_module(rule_path, self.config_dir, self.cache)
        except RuleLoadError as exc:
            return RuleNotFound(str(exc))
        lookup = self.extract(module, rule_id)
        if isinstance(lookup, RuleNotFound):
            return RuleNotFound(f"{lookup.reason} ({rule_path})")
        return lookup
