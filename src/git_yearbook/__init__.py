"""git-yearbook - collect an organization's or user's GitHub commit history.

Library API for external projects:

    from datetime import date
    from git_yearbook import collect_commits

    commits = collect_commits("acme", date(2025, 1, 1), date(2025, 12, 31), token="ghp_...")

    # Async, with explicit collaborators
    from git_yearbook import CommitRetrievalEngine, FetchScope, HttpGraphQLTransport

    async with HttpGraphQLTransport("ghp_...") as transport:
        engine = CommitRetrievalEngine(transport)
        scope = FetchScope.for_fiscal_year("acme", 2025, start_month=4, author_filter="alice")
        commits = await engine.fetch_all(scope)
        activity = await engine.fetch_activity(scope)
"""

__version__ = "0.1.0"

from git_yearbook.cache import (
    CacheKey,
    CommitCache,
    FileCommitCache,
    MemoryCommitCache,
    NoOpCache,
)
from git_yearbook.config import Config
from git_yearbook.engine import CommitRetrievalEngine
from git_yearbook.exceptions import (
    CacheError,
    ConfigurationError,
    DeadlineExceededError,
    MalformedResponseError,
    NotFoundError,
    TransientRateLimitError,
    TransportError,
    YearbookError,
)
from git_yearbook.library import collect_activity, collect_commits
from git_yearbook.models import CommitRecord, FetchScope, GitHubActivity
from git_yearbook.progress import ProgressCallback, ProgressEvent, ProgressEventType
from git_yearbook.retry import RetryConfig, RetryPolicy
from git_yearbook.runner import ScopeResult, fetch_scopes, merge_results
from git_yearbook.transport import GhCliTransport, HttpGraphQLTransport, Transport

__all__ = [
    # Core API
    "CommitRetrievalEngine",
    "FetchScope",
    "CommitRecord",
    "GitHubActivity",
    "collect_commits",
    "collect_activity",
    "fetch_scopes",
    "merge_results",
    "ScopeResult",
    # Collaborators
    "Transport",
    "HttpGraphQLTransport",
    "GhCliTransport",
    "CommitCache",
    "CacheKey",
    "FileCommitCache",
    "MemoryCommitCache",
    "NoOpCache",
    "RetryConfig",
    "RetryPolicy",
    "ProgressCallback",
    "ProgressEvent",
    "ProgressEventType",
    # Exceptions
    "YearbookError",
    "TransientRateLimitError",
    "NotFoundError",
    "MalformedResponseError",
    "TransportError",
    "DeadlineExceededError",
    "CacheError",
    "ConfigurationError",
    # Configuration
    "Config",
    # Metadata
    "__version__",
]
