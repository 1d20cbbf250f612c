"""Publishing benchmark reports as GitHub pull request comments.

When running inside a GitHub Actions pull-request workflow, the Markdown
report is posted as a PR comment through the GraphQL API.  The comment
carries a hidden marker so later runs update it instead of adding a new
one.  Every failure is logged; nothing here raises.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import requests

from rulebench import __version__
from rulebench.logging import get_logger

log = get_logger("github")

GRAPHQL_URL = "https://api.github.com/graphql"
COMMENT_MARKER = "<!-- rulebench-report -->"

_USER_AGENT = f"rulebench/{__version__}"
_PULL_REQUEST_EVENTS = ("pull_request", "pull_request_target")

_FIND_COMMENTS_QUERY = """
query ($owner: String!, $repo: String!, $prNumber: Int!, $cursor: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $prNumber) {
      id
      comments(first: 100, after: $cursor) {
        pageInfo { endCursor hasNextPage }
        nodes { id databaseId body author { login } }
      }
    }
  }
}
"""

_ADD_COMMENT_MUTATION = """
mutation ($subjectId: ID!, $body: String!) {
  addComment(input: {subjectId: $subjectId, body: $body}) {
    commentEdge { node { id } }
  }
}
"""

_UPDATE_COMMENT_MUTATION = """
mutation ($commentId: ID!, $body: String!) {
  updateIssueComment(input: {id: $commentId, body: $body}) {
    issueComment { id }
  }
}
"""


class GraphQLError(Exception):
    """The GraphQL endpoint returned an error or an unusable response."""


@dataclass
class PullRequestContext:
    """Where to post: repository owner and name plus PR number."""

    owner: str
    repository: str
    number: int


def is_github_pull_request(env: Mapping[str, str]) -> bool:
    """Whether *env* describes a GitHub Actions pull-request run with a token."""
    return (
        env.get("GITHUB_ACTIONS") == "true"
        and env.get("GITHUB_EVENT_NAME") in _PULL_REQUEST_EVENTS
        and "GITHUB_TOKEN" in env
        and "GITHUB_REPOSITORY" in env
        and "GITHUB_EVENT_PATH" in env
    )


def read_pull_request_context(env: Mapping[str, str]) -> PullRequestContext | None:
    """Read the PR number from the event payload and split the repository name.

    Returns None (after logging) when any piece is missing.
    """
    try:
        payload = json.loads(Path(env["GITHUB_EVENT_PATH"]).read_text(encoding="utf-8"))
    except (KeyError, OSError, ValueError) as exc:
        log.error("Failed to read GitHub event payload: %s", exc)
        return None

    number = (payload.get("pull_request") or {}).get("number")
    owner, _, repository = env.get("GITHUB_REPOSITORY", "").partition("/")
    if not number or not owner or not repository:
        log.warning("Could not determine PR number, owner, or repo.")
        return None
    return PullRequestContext(owner=owner, repository=repository, number=int(number))


def graphql_request(
    query: str,
    variables: dict[str, Any],
    *,
    token: str,
    timeout: float = 10.0,
) -> dict[str, Any]:
    """POST one GraphQL query and return its ``data``.

    Raises:
        GraphQLError: On transport errors, non-200 responses, or a
            response carrying ``errors``.
    """
    headers = {
        "Authorization": f"token {token}",
        "User-Agent": _USER_AGENT,
        "Accept": "application/json",
    }
    try:
        resp = requests.post(
            GRAPHQL_URL,
            json={"query": query, "variables": variables},
            headers=headers,
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise GraphQLError(f"Request error: {exc}") from exc

    if resp.status_code != 200:
        raise GraphQLError(f"GitHub returned HTTP {resp.status_code}")
    try:
        body = resp.json()
    except ValueError as exc:
        raise GraphQLError("Invalid JSON response") from exc
    if body.get("errors"):
        messages = "; ".join(str(e.get("message", e)) for e in body["errors"])
        raise GraphQLError(messages)
    return body.get("data") or {}


def find_report_comment(
    context: PullRequestContext, token: str
) -> tuple[str | None, str | None]:
    """Page through the PR's comments looking for the report marker.

    Returns:
        Tuple of (pull request node id, id of the existing report
        comment or None).
    """
    pull_request_id: str | None = None
    cursor: str | None = None
    while True:
        data = graphql_request(
            _FIND_COMMENTS_QUERY,
            {
                "owner": context.owner,
                "repo": context.repository,
                "prNumber": context.number,
                "cursor": cursor,
            },
            token=token,
        )
        pull_request = data["repository"]["pullRequest"]
        pull_request_id = pull_request_id or pull_request["id"]
        comments = pull_request["comments"]
        for node in comments["nodes"]:
            if COMMENT_MARKER in (node.get("body") or ""):
                return pull_request_id, node["id"]
        page_info = comments["pageInfo"]
        if not page_info["hasNextPage"]:
            return pull_request_id, None
        cursor = page_info["endCursor"]


def publish_github_comment(markdown: str, *, env: Mapping[str, str]) -> bool:
    """Create or update the benchmark report comment on the current PR.

    Returns:
        True if the comment was created or updated.
    """
    if not is_github_pull_request(env):
        return False

    context = read_pull_request_context(env)
    if context is None:
        return False

    token = env["GITHUB_TOKEN"]
    body = f"{COMMENT_MARKER}\n\n{markdown}"
    try:
        pull_request_id, comment_id = find_report_comment(context, token)
    except (GraphQLError, KeyError, TypeError) as exc:
        log.error("Failed to fetch comments via GraphQL: %s", exc)
        return False

    try:
        if comment_id is not None:
            graphql_request(
                _UPDATE_COMMENT_MUTATION, {"commentId": comment_id, "body": body}, token=token
            )
        elif pull_request_id:
            graphql_request(
                _ADD_COMMENT_MUTATION, {"subjectId": pull_request_id, "body": body}, token=token
            )
        else:
            log.error("Cannot create comment, pull request node id not found.")
            return False
    except GraphQLError as exc:
        action = "update" if comment_id is not None else "create"
        log.error("Failed to %s comment via GraphQL: %s", action, exc)
        return False

    return True
