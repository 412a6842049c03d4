"""Synthetic GitHub GraphQL responses for testing.

Payload builders mirror the shapes GitHub returns for the dual
organization/user queries; ``FakeGitHub`` serves them page by page from an
in-memory owner so engine tests exercise real cursors and real parsing.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import json

from git_yearbook.queries import (
    ACTIVITY_QUERY,
    COMMITS_QUERY,
    REPOSITORIES_QUERY,
    USER_ID_QUERY,
    GraphQLQuery,
)
from git_yearbook.transport import LookupHint, TransportResponse

OTHER_SECTION = {"organization": "user", "user": "organization"}


def not_found_error(section: str, login: str, *path: str) -> dict[str, Any]:
    """A GraphQL NOT_FOUND error for ``section`` (optionally nested)."""
    kind = "Organization" if section == "organization" else "User"
    return {
        "type": "NOT_FOUND",
        "path": [section, *path],
        "locations": [{"line": 2, "column": 3}],
        "message": f"Could not resolve to an {kind} with the login of '{login}'.",
    }


def make_commit_nodes(
    count: int,
    prefix: str = "c",
    author_name: str | None = "Bob",
    start: datetime = datetime(2025, 1, 1, tzinfo=UTC),
) -> list[dict[str, Any]]:
    """Create ``count`` commit nodes with distinct oids and increasing dates."""
    return [
        {
            "oid": f"{prefix}{i:04d}",
            "message": f"feat: change {i}",
            "committedDate": (start + timedelta(hours=i)).isoformat().replace("+00:00", "Z"),
            "author": {"name": author_name},
        }
        for i in range(count)
    ]


def repositories_payload(
    repositories: list[tuple[str, bool]],
    has_next_page: bool = False,
    end_cursor: str | None = None,
    section: str = "organization",
    login: str = "acme",
    sibling_error: bool = True,
) -> dict[str, Any]:
    """Repository listing page with ``section`` populated and its sibling null."""
    payload: dict[str, Any] = {
        "data": {
            section: {
                "repositories": {
                    "pageInfo": {"hasNextPage": has_next_page, "endCursor": end_cursor},
                    "nodes": [
                        {
                            "name": name,
                            "defaultBranchRef": {"name": "main"} if has_branch else None,
                        }
                        for name, has_branch in repositories
                    ],
                }
            },
            OTHER_SECTION[section]: None,
        }
    }
    if sibling_error:
        payload["errors"] = [not_found_error(OTHER_SECTION[section], login)]
    return payload


def commits_payload(
    nodes: list[dict[str, Any]],
    has_next_page: bool = False,
    end_cursor: str | None = None,
    section: str = "organization",
    login: str = "acme",
    sibling_error: bool = True,
    default_branch: bool = True,
) -> dict[str, Any]:
    """Commit history page for one repository."""
    repository: dict[str, Any] = {"defaultBranchRef": None}
    if default_branch:
        repository["defaultBranchRef"] = {
            "target": {
                "history": {
                    "pageInfo": {"hasNextPage": has_next_page, "endCursor": end_cursor},
                    "nodes": nodes,
                }
            }
        }
    payload: dict[str, Any] = {
        "data": {section: {"repository": repository}, OTHER_SECTION[section]: None}
    }
    if sibling_error:
        payload["errors"] = [not_found_error(OTHER_SECTION[section], login)]
    return payload


def activity_payload(
    repositories: list[tuple[str, int | None, int, int]],
    has_next_page: bool = False,
    end_cursor: str | None = None,
    section: str = "organization",
    login: str = "acme",
    sibling_error: bool = True,
) -> dict[str, Any]:
    """Activity page; each repository is (name, commits or None, pull requests, issues).

    A None commit count stands for a repository without a default branch.
    """
    nodes = [
        {
            "name": name,
            "defaultBranchRef": (
                None
                if commits is None
                else {"target": {"history": {"totalCount": commits}}}
            ),
            "pullRequests": {"totalCount": pull_requests},
            "issues": {"totalCount": issues},
        }
        for name, commits, pull_requests, issues in repositories
    ]
    payload: dict[str, Any] = {
        "data": {
            section: {
                "repositories": {
                    "pageInfo": {"hasNextPage": has_next_page, "endCursor": end_cursor},
                    "nodes": nodes,
                }
            },
            OTHER_SECTION[section]: None,
        }
    }
    if sibling_error:
        payload["errors"] = [not_found_error(OTHER_SECTION[section], login)]
    return payload


def user_id_payload(user_id: str | None, login: str = "bob") -> dict[str, Any]:
    if user_id is None:
        return {"data": {"user": None}, "errors": [not_found_error("user", login)]}
    return {"data": {"user": {"id": user_id}}}


def rate_limited_payload() -> dict[str, Any]:
    return {
        "errors": [
            {"type": "RATE_LIMITED", "message": "API rate limit exceeded for user ID 1."}
        ]
    }


def as_response(payload: dict[str, Any], ok: bool = True) -> TransportResponse:
    return TransportResponse(text=json.dumps(payload), ok=ok, status_code=200 if ok else None)


@dataclass
class FakeRepository:
    """A repository served by FakeGitHub. Commit nodes may carry ``authorId``."""

    name: str
    commits: list[dict[str, Any]] = field(default_factory=list)
    has_default_branch: bool = True
    reachable: bool = True
    pull_requests: int = 0
    issues: int = 0


def _offset(cursor: str | None) -> int:
    return int(cursor.split("-")[1]) if cursor else 0


class FakeGitHub:
    """In-memory GitHub owner answering repository, commit, activity and user-id queries.

    Args:
        login: Owner login served by this fake
        repositories: Repositories owned by the login
        owner_kind: "organization" or "user"; the other section answers NOT_FOUND
        users: Login to node id mapping for author resolution
        signal_failure: Mark dual-lookup responses as failed (as ``gh`` does)
    """

    def __init__(
        self,
        login: str = "acme",
        repositories: list[FakeRepository] | None = None,
        owner_kind: str = "organization",
        users: dict[str, str] | None = None,
        signal_failure: bool = False,
    ) -> None:
        self.login = login
        self.repositories = repositories or []
        self.owner_kind = owner_kind
        self.users = users or {}
        self.signal_failure = signal_failure
        self.calls: list[tuple[str, dict[str, Any], LookupHint]] = []
        self.failures: list[Exception] = []
        self.closed = False

    def count(self, kind: str) -> int:
        return sum(1 for call_kind, _, _ in self.calls if call_kind == kind)

    def commit_calls_for(self, repository: str) -> list[dict[str, Any]]:
        return [
            variables
            for kind, variables, _ in self.calls
            if kind == "commits" and variables["name"] == repository
        ]

    async def execute(
        self, query: GraphQLQuery, hint: LookupHint = LookupHint.OWNER_AMBIGUOUS
    ) -> TransportResponse:
        kind = {
            REPOSITORIES_QUERY: "repositories",
            COMMITS_QUERY: "commits",
            USER_ID_QUERY: "user_id",
            ACTIVITY_QUERY: "activity",
        }[query.query]
        self.calls.append((kind, dict(query.variables), hint))

        if self.failures:
            raise self.failures.pop(0)

        if kind == "user_id":
            login = query.variables["login"]
            return as_response(user_id_payload(self.users.get(login), login))

        if query.variables["login"] != self.login:
            login = query.variables["login"]
            payload = {
                "data": {"organization": None, "user": None},
                "errors": [not_found_error("organization", login), not_found_error("user", login)],
            }
            return as_response(payload, ok=not self.signal_failure)

        if kind == "repositories":
            return as_response(self._repositories_page(query.variables), ok=not self.signal_failure)
        if kind == "activity":
            return as_response(self._activity_page(query.variables), ok=not self.signal_failure)
        return as_response(self._commits_page(query.variables), ok=not self.signal_failure)

    def _repositories_page(self, variables: dict[str, Any]) -> dict[str, Any]:
        start = _offset(variables["after"])
        end = start + variables["first"]
        page = self.repositories[start:end]
        has_next = end < len(self.repositories)
        return repositories_payload(
            [(repo.name, repo.has_default_branch) for repo in page],
            has_next_page=has_next,
            end_cursor=f"repo-{end}" if page else None,
            section=self.owner_kind,
            login=self.login,
        )

    def _activity_page(self, variables: dict[str, Any]) -> dict[str, Any]:
        start = _offset(variables["after"])
        end = start + variables["first"]
        page = self.repositories[start:end]
        author = variables["author"]
        rows = []
        for repo in page:
            commits = None
            if repo.has_default_branch:
                commits = sum(
                    1
                    for c in repo.commits
                    if author is None or c.get("authorId") == author["id"]
                )
            rows.append((repo.name, commits, repo.pull_requests, repo.issues))
        return activity_payload(
            rows,
            has_next_page=end < len(self.repositories),
            end_cursor=f"repo-{end}" if page else None,
            section=self.owner_kind,
            login=self.login,
        )

    def _commits_page(self, variables: dict[str, Any]) -> dict[str, Any]:
        repo = next(
            (r for r in self.repositories if r.name == variables["name"] and r.reachable),
            None,
        )
        if repo is None:
            payload = {
                "data": {self.owner_kind: {"repository": None}, OTHER_SECTION[self.owner_kind]: None},
                "errors": [
                    not_found_error(OTHER_SECTION[self.owner_kind], self.login),
                    not_found_error(self.owner_kind, self.login, "repository"),
                ],
            }
            return payload

        author = variables["author"]
        matching = [
            c for c in repo.commits if author is None or c.get("authorId") == author["id"]
        ]
        start = _offset(variables["after"])
        end = start + variables["first"]
        nodes = [
            {k: v for k, v in c.items() if k != "authorId"} for c in matching[start:end]
        ]
        return commits_payload(
            nodes,
            has_next_page=end < len(matching),
            end_cursor=f"commit-{min(end, len(matching))}" if nodes else None,
            section=self.owner_kind,
            login=self.login,
            default_branch=repo.has_default_branch,
        )

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> "FakeGitHub":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def authored_commits(count: int, author_id: str, prefix: str, author_name: str = "Bob") -> list[dict[str, Any]]:
    """Commit nodes tagged with the author id FakeGitHub filters on."""
    return [
        {**node, "authorId": author_id}
        for node in make_commit_nodes(count, prefix=prefix, author_name=author_name)
    ]
