"""Pydantic models for commit retrieval data structures."""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import UTC, date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from git_yearbook.exceptions import MalformedResponseError


class OwnerKind(Enum):
    """Which section of an organization-or-user payload supplied the data."""

    ORGANIZATION = "organization"
    USER = "user"


class CommitRecord(BaseModel):
    """A single commit on a repository's default branch."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    message: str
    author_name: str = Field(alias="author")
    committed_at: datetime = Field(alias="committedAt")
    repository: str

    @field_validator("committed_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class PageInfo(BaseModel):
    """Cursor state returned with every connection page."""

    model_config = ConfigDict(populate_by_name=True)

    has_next_page: bool = Field(alias="hasNextPage")
    end_cursor: str | None = Field(default=None, alias="endCursor")

    def next_cursor(self) -> str | None:
        """Return the cursor for the following page, or None when exhausted.

        Raises:
            MalformedResponseError: If a next page is announced without a cursor
        """
        if not self.has_next_page:
            return None
        if not self.end_cursor:
            raise MalformedResponseError(
                "Response announced another page but carried no endCursor"
            )
        return self.end_cursor


class RepositorySummary(BaseModel):
    """Repository entry from a repository listing page."""

    model_config = ConfigDict(frozen=True)

    name: str
    has_default_branch: bool


class RepositoryPage(BaseModel):
    """One page of repositories owned by an organization or user."""

    repositories: list[RepositorySummary]
    page_info: PageInfo
    owner_kind: OwnerKind


class CommitPage(BaseModel):
    """One page of commits from a single repository."""

    commits: list[CommitRecord]
    page_info: PageInfo
    owner_kind: OwnerKind


class FetchScope(BaseModel):
    """One unit of aggregation: owner, inclusive date range and optional author."""

    model_config = ConfigDict(frozen=True)

    org_or_user: str
    from_date: date
    to_date: date
    author_filter: str | None = None

    @field_validator("org_or_user")
    @classmethod
    def validate_login(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("org_or_user cannot be empty")
        return v

    @field_validator("author_filter")
    @classmethod
    def normalize_author(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def validate_range(self) -> FetchScope:
        if self.from_date > self.to_date:
            raise ValueError(
                f"from_date {self.from_date} is after to_date {self.to_date}"
            )
        return self

    @property
    def scope_id(self) -> str:
        """Human-readable identifier used in progress events and logs."""
        scope_id = f"{self.org_or_user}:{self.from_date}..{self.to_date}"
        if self.author_filter is not None:
            scope_id += f"@{self.author_filter}"
        return scope_id

    @classmethod
    def for_fiscal_year(
        cls,
        org_or_user: str,
        year: int,
        start_month: int = 1,
        author_filter: str | None = None,
    ) -> FetchScope:
        """Build a scope covering the fiscal year that starts in ``start_month``.

        A fiscal year starting in April 2024 runs from 2024-04-01 to
        2025-03-31; one starting in January is the calendar year.

        Args:
            org_or_user: Organization or user login
            year: Calendar year in which the fiscal year starts
            start_month: First month of the fiscal year (1-12)
            author_filter: Optional author login

        Raises:
            ValueError: If start_month is out of range
        """
        if not 1 <= start_month <= 12:
            raise ValueError(
                f"start_month must be between 1 and 12, got {start_month}"
            )

        from_date = date(year, start_month, 1)
        if start_month == 1:
            to_date = date(year, 12, 31)
        else:
            end_month = start_month - 1
            last_day = calendar.monthrange(year + 1, end_month)[1]
            to_date = date(year + 1, end_month, last_day)

        return cls(
            org_or_user=org_or_user,
            from_date=from_date,
            to_date=to_date,
            author_filter=author_filter,
        )


class GitHubActivity(BaseModel):
    """Activity counts of an organization or user over a period.

    ``commits`` counts default-branch commits inside the period (restricted
    to the author when one is given). ``pull_requests`` and ``issues`` are
    the repositories' total counts as GitHub reports them.
    """

    model_config = ConfigDict(frozen=True)

    commits: int = Field(default=0, ge=0)
    pull_requests: int = Field(default=0, ge=0)
    issues: int = Field(default=0, ge=0)
    reviews: int = Field(default=0, ge=0)

    def __add__(self, other: GitHubActivity) -> GitHubActivity:
        if not isinstance(other, GitHubActivity):
            return NotImplemented
        return GitHubActivity(
            commits=self.commits + other.commits,
            pull_requests=self.pull_requests + other.pull_requests,
            issues=self.issues + other.issues,
            reviews=self.reviews + other.reviews,
        )

    @classmethod
    def total(cls, activities: Iterable[GitHubActivity]) -> GitHubActivity:
        """Sum activities, e.g. across the organizations of a department."""
        result = cls()
        for activity in activities:
            result = result + activity
        return result


class ActivityPage(BaseModel):
    """Activity counted over one page of repositories."""

    activity: GitHubActivity
    repository_count: int
    page_info: PageInfo
    owner_kind: OwnerKind
