"""Parsing of raw GraphQL responses into typed pages and activity counts.

Repository and commit queries ask for the same login both as an
organization and as a user, because the caller does not know which one it
is. GitHub answers the wrong half with ``null`` plus a ``NOT_FOUND`` error
(and the ``gh`` CLI exits non-zero), while the other half carries valid data.
That shape is accepted; any other error shape is rejected.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from git_yearbook.exceptions import (
    MalformedResponseError,
    NotFoundError,
    TransientRateLimitError,
)
from git_yearbook.models import (
    ActivityPage,
    CommitPage,
    CommitRecord,
    GitHubActivity,
    OwnerKind,
    PageInfo,
    RepositoryPage,
    RepositorySummary,
)
from git_yearbook.transport import TransportResponse

logger = logging.getLogger(__name__)

SECTIONS = (OwnerKind.ORGANIZATION.value, OwnerKind.USER.value)

UNKNOWN_AUTHOR = "Unknown"


class GraphQLErrorItem(BaseModel):
    """One entry of a GraphQL ``errors`` array."""

    message: str = ""
    type: str | None = None
    path: list[str | int] | None = None

    @property
    def section(self) -> str | None:
        """Top-level field the error refers to, if any."""
        if self.path and isinstance(self.path[0], str):
            return self.path[0]
        return None

    def is_not_found(self) -> bool:
        return self.type == "NOT_FOUND" and self.section in SECTIONS

    def is_rate_limit(self) -> bool:
        return self.type == "RATE_LIMITED" or "rate limit" in self.message.lower()


class GraphQLEnvelope(BaseModel):
    """Top-level GraphQL response document."""

    data: dict[str, Any] | None = None
    errors: list[GraphQLErrorItem] = Field(default_factory=list)


class _RepositoryNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    default_branch_ref: dict[str, Any] | None = Field(
        default=None, alias="defaultBranchRef"
    )


class _RepositoryConnection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_info: PageInfo = Field(alias="pageInfo")
    nodes: list[_RepositoryNode | None]


class _CommitAuthor(BaseModel):
    name: str | None = None


class _CommitNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    oid: str
    message: str
    committed_date: datetime = Field(alias="committedDate")
    author: _CommitAuthor | None = None


class _CommitHistory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_info: PageInfo = Field(alias="pageInfo")
    nodes: list[_CommitNode]


class _TotalCount(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_count: int = Field(alias="totalCount", ge=0)


class _ActivityNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    default_branch_ref: dict[str, Any] | None = Field(
        default=None, alias="defaultBranchRef"
    )
    pull_requests: _TotalCount = Field(alias="pullRequests")
    issues: _TotalCount

    def commit_count(self) -> int:
        if self.default_branch_ref is None:
            return 0
        try:
            history = self.default_branch_ref["target"]["history"]
        except (KeyError, TypeError) as e:
            raise MalformedResponseError(
                f"Commit history missing for repository '{self.name}'"
            ) from e
        try:
            return _TotalCount.model_validate(history).total_count
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid commit history count: {e}") from e


class _ActivityConnection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_info: PageInfo = Field(alias="pageInfo")
    nodes: list[_ActivityNode | None]


def _raw_text(response: TransportResponse | str) -> tuple[str, bool]:
    if isinstance(response, TransportResponse):
        return response.text, response.ok
    return response, True


def _summarize(errors: list[GraphQLErrorItem]) -> str:
    return "; ".join(e.message or (e.type or "unknown error") for e in errors)


class ResponseParser:
    """Convert raw GraphQL responses into repository and commit pages."""

    def decode(self, response: TransportResponse | str) -> GraphQLEnvelope:
        """Decode a raw response into a GraphQL envelope.

        Raises:
            MalformedResponseError: If the text is not a GraphQL JSON document
            TransientRateLimitError: If the payload reports rate limiting
        """
        text, _ = _raw_text(response)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Response is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise MalformedResponseError("Response is not a JSON object")

        try:
            envelope = GraphQLEnvelope.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(f"Unrecognized GraphQL envelope: {e}") from e

        rate_limited = [e for e in envelope.errors if e.is_rate_limit()]
        if rate_limited:
            raise TransientRateLimitError(
                f"GraphQL rate limit: {_summarize(rate_limited)}"
            )

        return envelope

    def _select_owner_section(
        self, response: TransportResponse | str, login: str | None
    ) -> tuple[OwnerKind, dict[str, Any]]:
        """Pick the organization or user half of a dual-lookup payload."""
        _, ok = _raw_text(response)
        envelope = self.decode(response)

        unrecognized = [e for e in envelope.errors if not e.is_not_found()]
        if unrecognized:
            raise MalformedResponseError(
                f"GraphQL response carried errors: {_summarize(unrecognized)}"
            )

        if envelope.data is None:
            raise MalformedResponseError("No data in GraphQL response")

        not_found = {
            e.section for e in envelope.errors if e.path is not None and len(e.path) == 1
        }

        organization = envelope.data.get(OwnerKind.ORGANIZATION.value)
        user = envelope.data.get(OwnerKind.USER.value)

        if organization is None and user is None:
            if not_found >= set(SECTIONS):
                raise NotFoundError(
                    f"Neither an organization nor a user named '{login}' exists",
                    login=login,
                )
            raise MalformedResponseError(
                "Neither organization nor user section present in response"
            )

        if organization is not None:
            kind, section, absent = OwnerKind.ORGANIZATION, organization, OwnerKind.USER
        else:
            kind, section, absent = OwnerKind.USER, user, OwnerKind.ORGANIZATION

        if not isinstance(section, dict):
            raise MalformedResponseError(f"{kind.value} section is not an object")

        if not ok and absent.value not in not_found:
            # A failed status is only acceptable with the sibling NOT_FOUND marker
            raise MalformedResponseError(
                f"Request failed but the {absent.value} section was not reported missing"
            )

        if absent.value in not_found:
            logger.debug(
                f"No {absent.value} named '{login}', using {kind.value} data instead"
            )

        return kind, section

    def parse_repositories(
        self, response: TransportResponse | str, login: str | None = None
    ) -> RepositoryPage:
        """Parse one page of a repository listing.

        Args:
            response: Raw transport response or response text
            login: Login that was queried (used in error messages)

        Returns:
            RepositoryPage with repositories in upstream order

        Raises:
            MalformedResponseError: If the payload shape is not recognized
            NotFoundError: If the login is neither an organization nor a user
            TransientRateLimitError: If the payload reports rate limiting
        """
        kind, section = self._select_owner_section(response, login)

        try:
            connection = _RepositoryConnection.model_validate(section.get("repositories"))
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid repository connection: {e}") from e

        repositories = [
            RepositorySummary(
                name=node.name, has_default_branch=node.default_branch_ref is not None
            )
            for node in connection.nodes
            if node is not None
        ]
        return RepositoryPage(
            repositories=repositories, page_info=connection.page_info, owner_kind=kind
        )

    def parse_commits(
        self,
        response: TransportResponse | str,
        repository: str,
        login: str | None = None,
    ) -> CommitPage:
        """Parse one page of a repository's default-branch history.

        Args:
            response: Raw transport response or response text
            repository: Name of the repository the page belongs to
            login: Login that was queried (used in error messages)

        Returns:
            CommitPage with commits in upstream order; a repository without
            a default branch yields an empty, final page

        Raises:
            MalformedResponseError: If the payload shape is not recognized
            NotFoundError: If the owner or the repository cannot be found
            TransientRateLimitError: If the payload reports rate limiting
        """
        kind, section = self._select_owner_section(response, login)

        if "repository" not in section:
            raise MalformedResponseError(f"{kind.value} section has no repository field")

        repo_data = section["repository"]
        if repo_data is None:
            raise NotFoundError(
                f"Repository '{repository}' not found for '{login}'", login=login
            )

        branch_ref = repo_data.get("defaultBranchRef") if isinstance(repo_data, dict) else None
        if branch_ref is None:
            return CommitPage(
                commits=[],
                page_info=PageInfo(has_next_page=False, end_cursor=None),
                owner_kind=kind,
            )

        try:
            history = _CommitHistory.model_validate(branch_ref["target"]["history"])
        except (KeyError, TypeError) as e:
            raise MalformedResponseError(
                f"Commit history missing for repository '{repository}'"
            ) from e
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid commit history: {e}") from e

        commits = [
            CommitRecord(
                id=node.oid,
                message=node.message,
                author_name=(node.author.name if node.author else None) or UNKNOWN_AUTHOR,
                committed_at=node.committed_date,
                repository=repository,
            )
            for node in history.nodes
        ]
        return CommitPage(commits=commits, page_info=history.page_info, owner_kind=kind)

    def parse_activity(
        self, response: TransportResponse | str, login: str | None = None
    ) -> ActivityPage:
        """Parse activity counts over one page of repositories.

        Repositories without a default branch contribute no commits but still
        count their pull requests and issues.

        Raises:
            MalformedResponseError: If the payload shape is not recognized
            NotFoundError: If the login is neither an organization nor a user
            TransientRateLimitError: If the payload reports rate limiting
        """
        kind, section = self._select_owner_section(response, login)

        try:
            connection = _ActivityConnection.model_validate(section.get("repositories"))
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid repository connection: {e}") from e

        nodes = [node for node in connection.nodes if node is not None]
        activity = GitHubActivity(
            commits=sum(node.commit_count() for node in nodes),
            pull_requests=sum(node.pull_requests.total_count for node in nodes),
            issues=sum(node.issues.total_count for node in nodes),
        )
        return ActivityPage(
            activity=activity,
            repository_count=len(nodes),
            page_info=connection.page_info,
            owner_kind=kind,
        )

    def parse_user_id(self, response: TransportResponse | str, login: str) -> str:
        """Extract a user's node id.

        Raises:
            NotFoundError: If the login does not exist
            MalformedResponseError: If the payload shape is not recognized
            TransientRateLimitError: If the payload reports rate limiting
        """
        envelope = self.decode(response)

        unrecognized = [e for e in envelope.errors if not e.is_not_found()]
        if unrecognized:
            raise MalformedResponseError(
                f"GraphQL response carried errors: {_summarize(unrecognized)}"
            )
        if envelope.data is None:
            raise MalformedResponseError("No data in GraphQL response")

        user = envelope.data.get(OwnerKind.USER.value)
        if user is None:
            if envelope.errors:
                raise NotFoundError(f"User '{login}' not found", login=login)
            raise MalformedResponseError("Response has no user section")

        user_id = user.get("id") if isinstance(user, dict) else None
        if not isinstance(user_id, str) or not user_id:
            raise MalformedResponseError(f"No id returned for user '{login}'")
        return user_id
