"""Two-level paginated commit retrieval: repositories, then commits per repository."""

import logging
import time
from collections.abc import Callable

from git_yearbook.cache import CacheKey, CommitCache, NoOpCache
from git_yearbook.exceptions import (
    DeadlineExceededError,
    MalformedResponseError,
    NotFoundError,
)
from git_yearbook.models import (
    ActivityPage,
    CommitPage,
    CommitRecord,
    FetchScope,
    GitHubActivity,
    PageInfo,
    RepositoryPage,
)
from git_yearbook.parser import ResponseParser
from git_yearbook.progress import ProgressCallback, ProgressNotifier
from git_yearbook.queries import (
    DEFAULT_PAGE_SIZE,
    activity_query,
    commits_query,
    repositories_query,
)
from git_yearbook.resolver import UserIdResolver
from git_yearbook.retry import RetryConfig, RetryPolicy, SleepFunction
from git_yearbook.transport import LookupHint, Transport

logger = logging.getLogger(__name__)


def _advance(cursor: str | None, page_info: PageInfo) -> str | None:
    """Return the next cursor, refusing any cursor that would not move forward."""
    next_cursor = page_info.next_cursor()
    if next_cursor is not None and next_cursor == cursor:
        raise MalformedResponseError(f"Pagination cursor did not advance: {cursor}")
    return next_cursor


class CommitRetrievalEngine:
    """Fetch every default-branch commit in a scope, page by page.

    One network fetch is in flight at a time. Every individual fetch is
    wrapped by the retry policy; a scope either completes and is cached, or
    fails as a whole.
    """

    def __init__(
        self,
        transport: Transport,
        cache: CommitCache | None = None,
        progress_callback: ProgressCallback | None = None,
        retry_config: RetryConfig | None = None,
        resolver: UserIdResolver | None = None,
        parser: ResponseParser | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        sleep: SleepFunction | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the engine.

        Args:
            transport: Executes built queries
            cache: Store for completed scopes (defaults to no caching)
            progress_callback: Receives progress events
            retry_config: Backoff settings for rate-limited fetches
            resolver: Author login resolver (built from the transport if omitted)
            parser: Response parser
            page_size: Repositories and commits requested per page
            sleep: Awaitable sleep used between retries
            clock: Monotonic clock used for deadline checks
        """
        self.transport = transport
        self.cache = cache if cache is not None else NoOpCache()
        self.notifier = ProgressNotifier(progress_callback)
        self.retry_policy = RetryPolicy(retry_config, sleep=sleep)
        self.parser = parser if parser is not None else ResponseParser()
        self.resolver = (
            resolver
            if resolver is not None
            else UserIdResolver(transport, self.retry_policy, self.parser)
        )
        self.page_size = page_size
        self._clock = clock

    def _check_deadline(self, deadline: float | None) -> None:
        if deadline is not None and self._clock() >= deadline:
            raise DeadlineExceededError("Deadline passed before the next page fetch")

    async def fetch_all(
        self, scope: FetchScope, deadline: float | None = None
    ) -> list[CommitRecord]:
        """Fetch all commits in ``scope``, in upstream order.

        Args:
            scope: Owner, date range and optional author filter
            deadline: Optional ``clock()`` value after which no new page is requested

        Returns:
            Commits grouped by repository, each repository in upstream order

        Raises:
            NotFoundError: If the owner or the author login does not exist
            MalformedResponseError: If a payload cannot be understood
            TransientRateLimitError: If rate limiting outlasts the retry policy
            TransportError: If a query cannot be executed
            DeadlineExceededError: If the deadline passes mid-traversal
        """
        key = CacheKey.from_scope(scope)
        self.notifier.scope_started(scope.scope_id)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Using cached commits for {scope.scope_id} ({len(cached)} commits)")
            self.notifier.scope_finished(scope.scope_id, len(cached), cached=True)
            return cached

        author_id = None
        if scope.author_filter is not None:
            self._check_deadline(deadline)
            author_id = await self.resolver.resolve(scope.author_filter)

        commits, complete = await self._traverse(scope, author_id, deadline)

        if complete:
            self.cache.set(key, commits)
        else:
            logger.warning(
                f"Not caching {scope.scope_id}: some repositories were unreachable"
            )

        self.notifier.scope_finished(
            scope.scope_id, len(commits), cached=False, complete=complete
        )
        return commits

    async def _traverse(
        self, scope: FetchScope, author_id: str | None, deadline: float | None
    ) -> tuple[list[CommitRecord], bool]:
        accumulated: list[CommitRecord] = []
        complete = True
        repo_cursor: str | None = None

        while True:
            self._check_deadline(deadline)
            repo_page = await self._fetch_repositories(scope.org_or_user, repo_cursor)

            for repo in repo_page.repositories:
                if not repo.has_default_branch:
                    logger.info(f"Skipping {repo.name}: no default branch")
                    self.notifier.repo_skipped(
                        scope.scope_id, repo.name, "no default branch"
                    )
                    continue

                try:
                    repo_commits = await self._collect_repository(
                        scope, repo.name, author_id, len(accumulated), deadline
                    )
                except NotFoundError as e:
                    logger.warning(f"Skipping unreachable repository {repo.name}: {e}")
                    self.notifier.repo_skipped(
                        scope.scope_id, repo.name, "repository unreachable"
                    )
                    complete = False
                    continue

                accumulated.extend(repo_commits)

            repo_cursor = _advance(repo_cursor, repo_page.page_info)
            if repo_cursor is None:
                return accumulated, complete

    async def _collect_repository(
        self,
        scope: FetchScope,
        repository: str,
        author_id: str | None,
        already_fetched: int,
        deadline: float | None,
    ) -> list[CommitRecord]:
        """Drain the commit history of one repository."""
        repo_commits: list[CommitRecord] = []
        commit_cursor: str | None = None

        while True:
            self._check_deadline(deadline)
            page = await self._fetch_commits(scope, repository, author_id, commit_cursor)
            repo_commits.extend(page.commits)
            self.notifier.repo_progress(
                scope.scope_id,
                repository,
                already_fetched + len(repo_commits),
                repository_count=len(repo_commits),
            )

            commit_cursor = _advance(commit_cursor, page.page_info)
            if commit_cursor is None:
                return repo_commits

    async def _fetch_repositories(
        self, login: str, cursor: str | None
    ) -> RepositoryPage:
        query = repositories_query(login, cursor=cursor, page_size=self.page_size)

        async def fetch() -> RepositoryPage:
            response = await self.transport.execute(query, LookupHint.OWNER_AMBIGUOUS)
            return self.parser.parse_repositories(response, login)

        return await self.retry_policy.execute(fetch)

    async def _fetch_commits(
        self,
        scope: FetchScope,
        repository: str,
        author_id: str | None,
        cursor: str | None,
    ) -> CommitPage:
        query = commits_query(
            scope.org_or_user,
            repository,
            scope.from_date,
            scope.to_date,
            author_id=author_id,
            cursor=cursor,
            page_size=self.page_size,
        )

        async def fetch() -> CommitPage:
            response = await self.transport.execute(query, LookupHint.OWNER_AMBIGUOUS)
            return self.parser.parse_commits(response, repository, scope.org_or_user)

        return await self.retry_policy.execute(fetch)

    async def fetch_activity(
        self, scope: FetchScope, deadline: float | None = None
    ) -> GitHubActivity:
        """Count commits, pull requests and issues for ``scope``.

        Activity is counted one page of repositories at a time and is never
        cached. An author filter restricts the commit count only.

        Raises:
            NotFoundError: If the owner or the author login does not exist
            MalformedResponseError: If a payload cannot be understood
            TransientRateLimitError: If rate limiting outlasts the retry policy
            TransportError: If a query cannot be executed
            DeadlineExceededError: If the deadline passes mid-traversal
        """
        author_id = None
        if scope.author_filter is not None:
            self._check_deadline(deadline)
            author_id = await self.resolver.resolve(scope.author_filter)

        activity = GitHubActivity()
        repository_count = 0
        cursor: str | None = None

        while True:
            self._check_deadline(deadline)
            page = await self._fetch_activity_page(scope, author_id, cursor)
            activity = activity + page.activity
            repository_count += page.repository_count
            self.notifier.info(
                f"Counted activity in {repository_count} repositories of {scope.org_or_user}",
                scope_id=scope.scope_id,
                repository_count=repository_count,
            )

            cursor = _advance(cursor, page.page_info)
            if cursor is None:
                break

        logger.info(
            f"Activity for {scope.scope_id}: {activity.commits} commits, "
            f"{activity.pull_requests} pull requests, {activity.issues} issues"
        )
        return activity

    async def _fetch_activity_page(
        self, scope: FetchScope, author_id: str | None, cursor: str | None
    ) -> ActivityPage:
        query = activity_query(
            scope.org_or_user,
            scope.from_date,
            scope.to_date,
            author_id=author_id,
            cursor=cursor,
            page_size=self.page_size,
        )

        async def fetch() -> ActivityPage:
            response = await self.transport.execute(query, LookupHint.OWNER_AMBIGUOUS)
            return self.parser.parse_activity(response, scope.org_or_user)

        return await self.retry_policy.execute(fetch)


def deadline_in(seconds: float, clock: Callable[[], float] = time.monotonic) -> float:
    """Convenience for building a ``deadline`` argument ``seconds`` from now."""
    return clock() + seconds
