"""Run several fetch scopes, isolating failures per scope."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from git_yearbook.engine import CommitRetrievalEngine
from git_yearbook.exceptions import YearbookError
from git_yearbook.models import CommitRecord, FetchScope

logger = logging.getLogger(__name__)


@dataclass
class ScopeResult:
    """Outcome of one scope: either its full commit list or its error."""

    scope: FetchScope
    commits: list[CommitRecord] | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def fetch_scopes(
    engine: CommitRetrievalEngine,
    scopes: Sequence[FetchScope],
    max_concurrency: int = 1,
    deadline: float | None = None,
) -> list[ScopeResult]:
    """Fetch every scope, continuing past scopes that fail.

    Args:
        engine: Engine used for every scope
        scopes: Scopes to fetch, e.g. one per organization of a department
        max_concurrency: Number of scopes traversed at the same time
        deadline: Optional deadline applied to every scope

    Returns:
        One ScopeResult per scope, in the order given
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")

    semaphore = asyncio.Semaphore(max_concurrency)

    async def run(scope: FetchScope) -> ScopeResult:
        async with semaphore:
            try:
                commits = await engine.fetch_all(scope, deadline=deadline)
            except YearbookError as e:
                logger.error(f"Scope {scope.scope_id} failed: {type(e).__name__}: {e}")
                engine.notifier.scope_failed(scope.scope_id, e)
                return ScopeResult(scope=scope, error=e)
            except Exception as e:
                logger.exception(f"Scope {scope.scope_id} failed unexpectedly: {e}")
                engine.notifier.scope_failed(scope.scope_id, e)
                return ScopeResult(scope=scope, error=e)
            return ScopeResult(scope=scope, commits=commits)

    return list(await asyncio.gather(*(run(scope) for scope in scopes)))


def merge_results(results: Sequence[ScopeResult]) -> list[CommitRecord]:
    """Concatenate the commits of successful scopes, in scope order."""
    merged: list[CommitRecord] = []
    for result in results:
        if result.commits is not None:
            merged.extend(result.commits)
    return merged
