"""Tests for rulebench.lint.loader: rule module resolution."""

from __future__ import annotations

import sys
import tempfile
import types
import unittest
from pathlib import Path

from bench_test_helpers import (
    DEFAULT_EXPORT_RULES,
    NO_PRINT_RULE,
    PLUGIN_RULES,
    write_file,
)

from rulebench.errors import RuleLoadError
from rulebench.lint.loader import (
    ModuleCache,
    RuleFound,
    RuleLoader,
    RuleNotFound,
    import_rule_module,
    is_rule,
    local_rule_name,
)


class TestHelpers(unittest.TestCase):
    def test_local_rule_name(self) -> None:
        self.assertEqual(local_rule_name("style/no-print"), "no-print")
        self.assertEqual(local_rule_name("scope/sub/no-print"), "no-print")
        self.assertEqual(local_rule_name("no-print"), "no-print")

    def test_is_rule(self) -> None:
        self.assertTrue(is_rule({"meta": {}, "create": lambda ctx: {}}))
        self.assertFalse(is_rule({"meta": {}}))
        self.assertFalse(is_rule({"meta": {}, "create": "not callable"}))
        self.assertFalse(is_rule(None))

        class Rule:
            meta = {"type": "problem"}

            def create(self, context: object) -> dict[str, object]:
                return {}

        self.assertTrue(is_rule(Rule()))


class TestRuleLoader(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.cache = ModuleCache()
        self.loader = RuleLoader(self.root, self.cache)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_module_is_rule(self) -> None:
        write_file(self.root, "rules/no_print.py", NO_PRINT_RULE)
        lookup = self.loader.load("style/no-print", "rules/no_print.py")
        self.assertIsInstance(lookup, RuleFound)
        assert isinstance(lookup, RuleFound)
        self.assertTrue(callable(lookup.handle.create))

    def test_rules_mapping_by_local_name(self) -> None:
        write_file(self.root, "plugin.py", PLUGIN_RULES)
        lookup = self.loader.load("myplugin/no-eval", "plugin.py")
        self.assertIsInstance(lookup, RuleFound)

    def test_rules_mapping_by_full_id(self) -> None:
        write_file(
            self.root,
            "plugin.py",
            'rules = {"style/no-x": {"meta": {}, "create": lambda ctx: {}}}\n',
        )
        self.assertIsInstance(self.loader.load("style/no-x", "plugin.py"), RuleFound)

    def test_default_export(self) -> None:
        write_file(self.root, "plugin.py", DEFAULT_EXPORT_RULES)
        self.assertIsInstance(self.loader.load("no-lambda", "plugin.py"), RuleFound)

    def test_plugin_export_is_rule(self) -> None:
        write_file(
            self.root,
            "plugin.py",
            'plugin = {"meta": {"type": "problem"}, "create": lambda ctx: {}}\n',
        )
        self.assertIsInstance(self.loader.load("anything", "plugin.py"), RuleFound)

    def test_rule_missing_from_module(self) -> None:
        write_file(self.root, "plugin.py", PLUGIN_RULES)
        lookup = self.loader.load("myplugin/no-such-rule", "plugin.py")
        self.assertIsInstance(lookup, RuleNotFound)
        assert isinstance(lookup, RuleNotFound)
        self.assertIn("no-such-rule", lookup.reason)

    def test_invalid_rule_export(self) -> None:
        write_file(self.root, "plugin.py", 'rules = {"bad": {"meta": {}}}\n')
        lookup = self.loader.load("bad", "plugin.py")
        self.assertIsInstance(lookup, RuleNotFound)
        assert isinstance(lookup, RuleNotFound)
        self.assertIn("not a valid rule", lookup.reason)

    def test_missing_file(self) -> None:
        lookup = self.loader.load("x", "rules/missing.py")
        self.assertIsInstance(lookup, RuleNotFound)
        assert isinstance(lookup, RuleNotFound)
        self.assertIn("not found", lookup.reason)

    def test_import_error_is_reported(self) -> None:
        write_file(self.root, "broken.py", "raise ImportError('nope')\n")
        lookup = self.loader.load("x", "broken.py")
        self.assertIsInstance(lookup, RuleNotFound)
        assert isinstance(lookup, RuleNotFound)
        self.assertIn("nope", lookup.reason)

    def test_dotted_module_name(self) -> None:
        module = types.ModuleType("rulebench_test_dotted_rule")
        module.meta = {"type": "problem"}  # type: ignore[attr-defined]
        module.create = lambda ctx: {}  # type: ignore[attr-defined]
        sys.modules["rulebench_test_dotted_rule"] = module
        self.addCleanup(sys.modules.pop, "rulebench_test_dotted_rule", None)
        lookup = self.loader.load("x", "rulebench_test_dotted_rule")
        self.assertIsInstance(lookup, RuleFound)


class TestModuleCache(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_module_imported_once_per_cache(self) -> None:
        write_file(
            self.root,
            "counting.py",
            "import builtins\n"
            "builtins.rulebench_import_count = getattr(builtins, 'rulebench_import_count', 0) + 1\n"
            "meta = {}\n"
            "def create(context):\n"
            "    return {}\n",
        )
        import builtins

        self.addCleanup(lambda: builtins.__dict__.pop("rulebench_import_count", None))
        cache = ModuleCache()
        first = import_rule_module("counting.py", self.root, cache)
        second = import_rule_module("counting.py", self.root, cache)
        self.assertIs(first, second)
        self.assertEqual(len(cache), 1)
        self.assertEqual(builtins.rulebench_import_count, 1)  # type: ignore[attr-defined]

        import_rule_module("counting.py", self.root, ModuleCache())
        self.assertEqual(builtins.rulebench_import_count, 2)  # type: ignore[attr-defined]

    def test_missing_file_raises(self) -> None:
        with self.assertRaises(RuleLoadError):
            import_rule_module("nope.py", self.root, ModuleCache())


if __name__ == "__main__":
    unittest.main()
