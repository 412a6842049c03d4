"""Progress callback system for commit retrieval.

This module provides a clean interface for progress updates that allows
callers to render progress according to their own UI frameworks. Delivery
is fire-and-forget: a failing callback is logged and never interrupts a
traversal.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ProgressEventType(Enum):
    """Types of progress events that can be emitted."""

    STARTED = "started"
    PROGRESS = "progress"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    ERROR = "error"
    INFO = "info"


@dataclass
class ProgressEvent:
    """A progress event containing update information.

    Attributes:
        event_type: The type of progress event
        message: Human-readable description of the current progress
        scope_id: Scope the event belongs to, if any
        repository: Repository the event refers to, if any
        current: Running commit count (optional)
        metadata: Additional context data (optional)
    """

    event_type: ProgressEventType
    message: str
    scope_id: str | None = None
    repository: str | None = None
    current: int | None = None
    metadata: dict[str, Any] | None = None


# Type alias for progress callback functions
ProgressCallback = Callable[[ProgressEvent], None]


class ProgressNotifier:
    """Helper class for emitting progress events."""

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        """Initialize with optional progress callback.

        Args:
            callback: Function to call when progress events occur
        """
        self.callback = callback

    def notify(self, event: ProgressEvent) -> None:
        """Emit a progress event if callback is available."""
        if not self.callback:
            return
        try:
            self.callback(event)
        except Exception as callback_error:
            logger.warning(
                f"Progress callback failed on {event.event_type.value} event: {callback_error}"
            )

    def scope_started(self, scope_id: str, **kwargs: Any) -> None:
        self.notify(
            ProgressEvent(
                event_type=ProgressEventType.STARTED,
                message=f"Fetching commits for {scope_id}",
                scope_id=scope_id,
                metadata=kwargs or None,
            )
        )

    def repo_progress(
        self, scope_id: str, repository: str, commit_count: int, **kwargs: Any
    ) -> None:
        """Emit a PROGRESS event after a page of ``repository`` was fetched.

        Args:
            scope_id: Scope being traversed
            repository: Repository the page came from
            commit_count: Commits accumulated for the scope so far
            **kwargs: Additional metadata
        """
        self.notify(
            ProgressEvent(
                event_type=ProgressEventType.PROGRESS,
                message=f"{commit_count} commits fetched ({repository})",
                scope_id=scope_id,
                repository=repository,
                current=commit_count,
                metadata=kwargs or None,
            )
        )

    def repo_skipped(self, scope_id: str, repository: str, reason: str) -> None:
        self.notify(
            ProgressEvent(
                event_type=ProgressEventType.SKIPPED,
                message=f"Skipping {repository}: {reason}",
                scope_id=scope_id,
                repository=repository,
                metadata={"reason": reason},
            )
        )

    def scope_finished(self, scope_id: str, total_count: int, **kwargs: Any) -> None:
        self.notify(
            ProgressEvent(
                event_type=ProgressEventType.COMPLETED,
                message=f"Finished fetching {total_count} commits for {scope_id}",
                scope_id=scope_id,
                current=total_count,
                metadata=kwargs or None,
            )
        )

    def scope_failed(self, scope_id: str, error: Exception) -> None:
        self.notify(
            ProgressEvent(
                event_type=ProgressEventType.ERROR,
                message=f"Failed to fetch commits for {scope_id}: {error}",
                scope_id=scope_id,
                metadata={"error_type": type(error).__name__},
            )
        )

    def info(self, message: str, scope_id: str | None = None, **kwargs: Any) -> None:
        self.notify(
            ProgressEvent(
                event_type=ProgressEventType.INFO,
                message=message,
                scope_id=scope_id,
                metadata=kwargs or None,
            )
        )
