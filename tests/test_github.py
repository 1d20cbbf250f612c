"""Tests for rulebench.integrations.github: PR comment publishing."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import requests

from rulebench.integrations.github import (
    COMMENT_MARKER,
    GRAPHQL_URL,
    GraphQLError,
    PullRequestContext,
    find_report_comment,
    graphql_request,
    is_github_pull_request,
    publish_github_comment,
    read_pull_request_context,
)


def _response(body: Any, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body
    return resp


def _comments_page(
    nodes: list[dict[str, Any]], has_next: bool = False, cursor: str | None = None
) -> MagicMock:
    return _response(
        {
            "data": {
                "repository": {
                    "pullRequest": {
                        "id": "PR_1",
                        "comments": {
                            "pageInfo": {"endCursor": cursor, "hasNextPage": has_next},
                            "nodes": nodes,
                        },
                    }
                }
            }
        }
    )


class GitHubEnvMixin:
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        event = Path(self._tmp.name) / "event.json"
        event.write_text(json.dumps({"pull_request": {"number": 42}}), encoding="utf-8")
        self.env = {
            "GITHUB_ACTIONS": "true",
            "GITHUB_EVENT_NAME": "pull_request",
            "GITHUB_TOKEN": "secret",
            "GITHUB_REPOSITORY": "octo/widgets",
            "GITHUB_EVENT_PATH": str(event),
        }

    def tearDown(self) -> None:
        self._tmp.cleanup()


class TestEnvironment(GitHubEnvMixin, unittest.TestCase):
    def test_pull_request_detected(self) -> None:
        self.assertTrue(is_github_pull_request(self.env))

    def test_push_event_ignored(self) -> None:
        self.env["GITHUB_EVENT_NAME"] = "push"
        self.assertFalse(is_github_pull_request(self.env))

    def test_missing_token(self) -> None:
        del self.env["GITHUB_TOKEN"]
        self.assertFalse(is_github_pull_request(self.env))

    def test_not_actions(self) -> None:
        self.assertFalse(is_github_pull_request({}))

    def test_read_context(self) -> None:
        self.assertEqual(
            read_pull_request_context(self.env),
            PullRequestContext(owner="octo", repository="widgets", number=42),
        )

    def test_read_context_bad_payload(self) -> None:
        self.env["GITHUB_EVENT_PATH"] = str(Path(self._tmp.name) / "missing.json")
        with self.assertLogs("rulebench", level="ERROR"):
            self.assertIsNone(read_pull_request_context(self.env))

    def test_read_context_without_number(self) -> None:
        Path(self.env["GITHUB_EVENT_PATH"]).write_text("{}", encoding="utf-8")
        with self.assertLogs("rulebench", level="WARNING"):
            self.assertIsNone(read_pull_request_context(self.env))


@patch("rulebench.integrations.github.requests.post")
class TestGraphQLRequest(unittest.TestCase):
    def test_returns_data(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response({"data": {"viewer": {"login": "bot"}}})
        data = graphql_request("query", {"a": 1}, token="secret")
        self.assertEqual(data, {"viewer": {"login": "bot"}})
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], GRAPHQL_URL)
        self.assertEqual(kwargs["json"], {"query": "query", "variables": {"a": 1}})
        self.assertEqual(kwargs["headers"]["Authorization"], "token secret")

    def test_http_error(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response({}, status_code=502)
        with self.assertRaises(GraphQLError) as cm:
            graphql_request("query", {}, token="t")
        self.assertIn("502", str(cm.exception))

    def test_graphql_errors(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response({"errors": [{"message": "Bad credentials"}]})
        with self.assertRaises(GraphQLError) as cm:
            graphql_request("query", {}, token="t")
        self.assertEqual(str(cm.exception), "Bad credentials")

    def test_invalid_json(self, mock_post: MagicMock) -> None:
        resp = _response(None)
        resp.json.side_effect = ValueError("not json")
        mock_post.return_value = resp
        with self.assertRaises(GraphQLError):
            graphql_request("query", {}, token="t")

    def test_transport_error(self, mock_post: MagicMock) -> None:
        mock_post.side_effect = requests.ConnectionError("down")
        with self.assertRaises(GraphQLError):
            graphql_request("query", {}, token="t")


@patch("rulebench.integrations.github.requests.post")
class TestFindReportComment(unittest.TestCase):
    context = PullRequestContext(owner="octo", repository="widgets", number=42)

    def test_pages_until_marker(self, mock_post: MagicMock) -> None:
        mock_post.side_effect = [
            _comments_page([{"id": "C1", "body": "hello"}], has_next=True, cursor="abc"),
            _comments_page([{"id": "C2", "body": f"{COMMENT_MARKER}\nold report"}]),
        ]
        self.assertEqual(find_report_comment(self.context, "t"), ("PR_1", "C2"))
        second_variables = mock_post.call_args_list[1].kwargs["json"]["variables"]
        self.assertEqual(second_variables["cursor"], "abc")

    def test_no_existing_comment(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _comments_page([{"id": "C1", "body": None}])
        self.assertEqual(find_report_comment(self.context, "t"), ("PR_1", None))


@patch("rulebench.integrations.github.requests.post")
class TestPublishGitHubComment(GitHubEnvMixin, unittest.TestCase):
    def test_creates_comment(self, mock_post: MagicMock) -> None:
        mock_post.side_effect = [_comments_page([]), _response({"data": {}})]
        self.assertTrue(publish_github_comment("# Report", env=self.env))
        variables = mock_post.call_args_list[1].kwargs["json"]["variables"]
        self.assertEqual(variables["subjectId"], "PR_1")
        self.assertTrue(variables["body"].startswith(COMMENT_MARKER))
        self.assertIn("# Report", variables["body"])

    def test_updates_existing_comment(self, mock_post: MagicMock) -> None:
        mock_post.side_effect = [
            _comments_page([{"id": "C9", "body": COMMENT_MARKER}]),
            _response({"data": {}}),
        ]
        self.assertTrue(publish_github_comment("# Report", env=self.env))
        variables = mock_post.call_args_list[1].kwargs["json"]["variables"]
        self.assertEqual(variables["commentId"], "C9")

    def test_fetch_failure_is_logged(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response({}, status_code=401)
        with self.assertLogs("rulebench", level="ERROR") as cm:
            self.assertFalse(publish_github_comment("# Report", env=self.env))
        self.assertIn("Failed to fetch comments", cm.output[0])

    def test_create_failure_is_logged(self, mock_post: MagicMock) -> None:
        mock_post.side_effect = [
            _comments_page([]),
            _response({"errors": [{"message": "forbidden"}]}),
        ]
        with self.assertLogs("rulebench", level="ERROR") as cm:
            self.assertFalse(publish_github_comment("# Report", env=self.env))
        self.assertIn("Failed to create comment", cm.output[0])

    def test_outside_pull_request(self, mock_post: MagicMock) -> None:
        self.assertFalse(publish_github_comment("# Report", env={}))
        mock_post.assert_not_called()


if __name__ == "__main__":
    unittest.main()
