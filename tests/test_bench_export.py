"""Tests for rulebench.bench.export: JSON and Markdown export, reporters."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from bench_test_helpers import make_metrics, make_spec_result

from rulebench.bench.config import ReporterOptions
from rulebench.bench.display import NO_RESULTS
from rulebench.bench.export import (
    MARKDOWN_TITLE,
    export_json,
    export_markdown,
    render_report,
    run_reporters,
)
from rulebench.bench.results import SampleResult
from rulebench.bench.system import SystemProfile

_SYSTEM = SystemProfile(hostname="bench-host", cpu_model="Test CPU")


def _results() -> list:
    return [
        make_spec_result(
            "No print",
            cases={
                "Case 1": [
                    SampleResult(name="a.py", metrics=make_metrics(), outliers_removed=1),
                    SampleResult(name="b.py", error="rule exploded"),
                ],
                "Case 2": [],
            },
        )
    ]


class TestExportJSON(unittest.TestCase):
    def test_structure(self) -> None:
        data = json.loads(export_json(_results(), _SYSTEM))
        spec = data["testSpecifications"][0]
        self.assertEqual(spec["name"], "No print")
        self.assertEqual(spec["ruleId"], "style/no-print")
        self.assertEqual(spec["rulePath"], "rules/no_print.py")
        self.assertEqual(
            spec["benchmarkConfig"],
            {"iterations": 5, "timeout": 10000, "warmup": {"iterations": 0, "enabled": False}},
        )
        self.assertEqual(data["systemInfo"]["hostname"], "bench-host")

    def test_sample_metrics(self) -> None:
        data = json.loads(export_json(_results()))
        sample = data["testSpecifications"][0]["testCases"][0]["samples"][0]
        self.assertEqual(sample["sampleName"], "a.py")
        self.assertEqual(sample["outliersRemoved"], 1)
        metrics = sample["metrics"]
        self.assertEqual(metrics["operationsPerSecond"], 500)
        self.assertEqual(metrics["averageTime"], "2.000 ms")
        self.assertEqual(metrics["minimumTime"], "1.000 ms")
        self.assertEqual(metrics["maximumTime"], "3.000 ms")
        self.assertEqual(metrics["standardDeviation"], "±0.816 ms")
        self.assertEqual(metrics["totalSamples"], 3)

    def test_errors_are_kept(self) -> None:
        data = json.loads(export_json(_results()))
        cases = data["testSpecifications"][0]["testCases"]
        failed = cases[0]["samples"][1]
        self.assertEqual(failed, {"sampleName": "b.py", "error": "rule exploded"})
        self.assertEqual(cases[1]["error"], "No samples")
        self.assertEqual(cases[1]["samples"], [])
        self.assertEqual(cases[1]["ruleId"], "style/no-print")

    def test_without_system(self) -> None:
        data = json.loads(export_json([]))
        self.assertEqual(data, {"testSpecifications": [], "systemInfo": {}})


class TestExportMarkdown(unittest.TestCase):
    def test_table(self) -> None:
        output = export_markdown(_results())
        lines = output.splitlines()
        self.assertEqual(lines[0], MARKDOWN_TITLE)
        self.assertIn("## No print", lines)
        self.assertIn(
            "| Sample | Ops/sec | Avg Time | Median | Min | Max | StdDev | Samples |", lines
        )
        self.assertIn(
            "| a.py | 500 ops/sec | 2.000 ms | 2.000 ms | 1.000 ms | 3.000 ms | 0.816 ms | 3 |",
            lines,
        )
        self.assertIn("| b.py | failed | N/A | N/A | N/A | N/A | N/A | N/A |", lines)
        self.assertIn("| No samples | N/A | N/A | N/A | N/A | N/A | N/A | N/A |", lines)

    def test_empty(self) -> None:
        self.assertEqual(export_markdown([]), NO_RESULTS)


class TestRenderReport(unittest.TestCase):
    def test_formats(self) -> None:
        results = _results()
        self.assertIn("No print", render_report(results, "console"))
        self.assertIn("testSpecifications", render_report(results, "json"))
        self.assertTrue(render_report(results, "markdown").startswith(MARKDOWN_TITLE))

    def test_unknown_format(self) -> None:
        with self.assertRaises(ValueError):
            render_report(_results(), "xml")


@patch("rulebench.bench.export.capture_system_profile", return_value=_SYSTEM)
class TestRunReporters(unittest.TestCase):
    def test_echoes_report(self, _mock_system: MagicMock) -> None:
        printed: list[str] = []
        run_reporters(
            _results(), [ReporterOptions(format="markdown")], echo=printed.append, env={}
        )
        self.assertEqual(len(printed), 1)
        self.assertTrue(printed[0].startswith(MARKDOWN_TITLE))

    def test_writes_file(self, _mock_system: MagicMock) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "report.json"
            run_reporters(
                _results(),
                [ReporterOptions(format="json", output_path=path)],
                echo=lambda text: None,
                env={},
            )
            data = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(data["systemInfo"]["cpu_model"], "Test CPU")

    def test_failing_reporter_does_not_stop_others(self, _mock_system: MagicMock) -> None:
        printed: list[str] = []
        with self.assertLogs("rulebench", level="ERROR") as cm:
            run_reporters(
                _results(),
                [ReporterOptions(format="xml"), ReporterOptions(format="console")],
                echo=printed.append,
                env={},
            )
        self.assertIn("xml", cm.output[0])
        self.assertEqual(len(printed), 1)

    def test_no_reporters(self, _mock_system: MagicMock) -> None:
        with self.assertLogs("rulebench", level="WARNING"):
            run_reporters(_results(), [], echo=lambda text: None, env={})

    @patch("rulebench.bench.export.publish_github_comment", return_value=True)
    def test_publishes_on_pull_request(
        self, mock_publish: MagicMock, _mock_system: MagicMock
    ) -> None:
        env = {
            "GITHUB_ACTIONS": "true",
            "GITHUB_EVENT_NAME": "pull_request",
            "GITHUB_TOKEN": "t",
            "GITHUB_REPOSITORY": "o/r",
            "GITHUB_EVENT_PATH": "/nonexistent",
        }
        run_reporters(
            _results(), [ReporterOptions(format="console")], echo=lambda text: None, env=env
        )
        mock_publish.assert_called_once()
        markdown = mock_publish.call_args.args[0]
        self.assertTrue(markdown.startswith(MARKDOWN_TITLE))
        self.assertEqual(mock_publish.call_args.kwargs["env"], env)

    @patch("rulebench.bench.export.publish_github_comment")
    def test_no_publish_outside_pull_request(
        self, mock_publish: MagicMock, _mock_system: MagicMock
    ) -> None:
        run_reporters(
            _results(), [ReporterOptions(format="console")], echo=lambda text: None, env={}
        )
        mock_publish.assert_not_called()


if __name__ == "__main__":
    unittest.main()
