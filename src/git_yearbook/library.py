"""Synchronous library API for git-yearbook.

This module provides the entry points for projects that want a commit list
or activity counts without managing an event loop, a transport or a cache
themselves.
"""

from __future__ import annotations

import asyncio
from datetime import date
from pathlib import Path

from git_yearbook.cache import CommitCache, FileCommitCache, NoOpCache
from git_yearbook.engine import CommitRetrievalEngine
from git_yearbook.exceptions import ConfigurationError
from git_yearbook.models import CommitRecord, FetchScope, GitHubActivity
from git_yearbook.progress import ProgressCallback
from git_yearbook.retry import RetryConfig
from git_yearbook.transport import HttpGraphQLTransport


def _build_scope(
    token: str | None,
    org_or_user: str,
    from_date: date,
    to_date: date,
    author: str | None,
) -> FetchScope:
    if not token or not token.strip():
        raise ConfigurationError("GitHub token cannot be empty")

    try:
        return FetchScope(
            org_or_user=org_or_user,
            from_date=from_date,
            to_date=to_date,
            author_filter=author,
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid scope: {e}") from e


def collect_commits(
    org_or_user: str,
    from_date: date,
    to_date: date,
    author: str | None = None,
    token: str | None = None,
    cache_dir: Path | None = None,
    use_cache: bool = True,
    progress_callback: ProgressCallback | None = None,
    retry_config: RetryConfig | None = None,
) -> list[CommitRecord]:
    """Fetch the commits of an organization or user for a date range.

    Args:
        org_or_user: Organization or user login
        from_date: First day of the range (inclusive)
        to_date: Last day of the range (inclusive)
        author: Optional author login to filter on
        token: GitHub Personal Access Token
        cache_dir: Cache directory (default ~/.cache/git-yearbook)
        use_cache: Read and write the on-disk cache
        progress_callback: Receives progress events
        retry_config: Backoff settings for rate-limited requests

    Returns:
        Ordered list of commits

    Raises:
        ConfigurationError: If no token is given or the scope is invalid
        YearbookError: If retrieval fails
    """
    scope = _build_scope(token, org_or_user, from_date, to_date, author)
    cache: CommitCache = FileCommitCache(cache_dir) if use_cache else NoOpCache()

    async def _run() -> list[CommitRecord]:
        async with HttpGraphQLTransport(token) as transport:
            engine = CommitRetrievalEngine(
                transport,
                cache=cache,
                progress_callback=progress_callback,
                retry_config=retry_config,
            )
            return await engine.fetch_all(scope)

    return asyncio.run(_run())


def collect_activity(
    org_or_user: str,
    from_date: date,
    to_date: date,
    author: str | None = None,
    token: str | None = None,
    progress_callback: ProgressCallback | None = None,
    retry_config: RetryConfig | None = None,
) -> GitHubActivity:
    """Count commits, pull requests and issues of an organization or user.

    Raises:
        ConfigurationError: If no token is given or the scope is invalid
        YearbookError: If retrieval fails
    """
    scope = _build_scope(token, org_or_user, from_date, to_date, author)

    async def _run() -> GitHubActivity:
        async with HttpGraphQLTransport(token) as transport:
            engine = CommitRetrievalEngine(
                transport,
                progress_callback=progress_callback,
                retry_config=retry_config,
            )
            return await engine.fetch_activity(scope)

    return asyncio.run(_run())
