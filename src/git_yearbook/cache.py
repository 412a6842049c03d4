"""Scope-keyed persistent cache of fully retrieved commit lists.

Every key component takes part in the file name: owner, both ends of the
date range and the author filter. "No author filter" and "author filter X"
are distinct keys, so commits fetched for one author are never served for
another author or for everyone.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from git_yearbook.exceptions import CacheError
from git_yearbook.models import CommitRecord, FetchScope

logger = logging.getLogger(__name__)

CACHE_SUFFIX = ".commits.json"
NO_AUTHOR = "all"
AUTHOR_PREFIX = "by-"
_DATE_FORMAT = "%Y%m%d"


def _encode(text: str) -> str:
    # "_" separates components, so it must never survive inside one
    return quote(text, safe="").replace("_", "%5F")


@dataclass(frozen=True)
class CacheKey:
    """Identity of one cached commit list."""

    org_or_user: str
    from_date: date
    to_date: date
    author_filter: str | None = None

    @classmethod
    def from_scope(cls, scope: FetchScope) -> CacheKey:
        return cls(
            org_or_user=scope.org_or_user,
            from_date=scope.from_date,
            to_date=scope.to_date,
            author_filter=scope.author_filter,
        )

    def to_scope(self) -> FetchScope:
        return FetchScope(
            org_or_user=self.org_or_user,
            from_date=self.from_date,
            to_date=self.to_date,
            author_filter=self.author_filter,
        )

    def filename(self) -> str:
        """Encode the key as a file name, e.g. ``acme_20250101_20251231_by-alice.commits.json``."""
        author = (
            NO_AUTHOR
            if self.author_filter is None
            else AUTHOR_PREFIX + _encode(self.author_filter)
        )
        return (
            f"{_encode(self.org_or_user)}_"
            f"{self.from_date.strftime(_DATE_FORMAT)}_"
            f"{self.to_date.strftime(_DATE_FORMAT)}_"
            f"{author}{CACHE_SUFFIX}"
        )

    @classmethod
    def from_filename(cls, name: str) -> CacheKey:
        """Decode a file name produced by :meth:`filename`.

        Raises:
            ValueError: If the name is not a cache file name
        """
        if not name.endswith(CACHE_SUFFIX):
            raise ValueError(f"Not a cache file name: {name}")

        parts = name[: -len(CACHE_SUFFIX)].split("_")
        if len(parts) != 4:
            raise ValueError(f"Not a cache file name: {name}")
        owner, from_part, to_part, author_part = parts

        if author_part == NO_AUTHOR:
            author_filter = None
        elif author_part.startswith(AUTHOR_PREFIX):
            author_filter = unquote(author_part[len(AUTHOR_PREFIX) :])
        else:
            raise ValueError(f"Invalid author component in cache file name: {name}")

        return cls(
            org_or_user=unquote(owner),
            from_date=datetime.strptime(from_part, _DATE_FORMAT).date(),
            to_date=datetime.strptime(to_part, _DATE_FORMAT).date(),
            author_filter=author_filter,
        )


class CacheEntry(BaseModel):
    """On-disk document holding one scope's commits."""

    model_config = ConfigDict(populate_by_name=True)

    scope: str
    from_date: date = Field(alias="from")
    to_date: date = Field(alias="to")
    author_filter: str | None = Field(alias="authorFilter")
    commits: list[CommitRecord]

    @classmethod
    def build(cls, key: CacheKey, commits: list[CommitRecord]) -> CacheEntry:
        return cls(
            scope=key.org_or_user,
            from_date=key.from_date,
            to_date=key.to_date,
            author_filter=key.author_filter,
            commits=commits,
        )

    def key(self) -> CacheKey:
        return CacheKey(
            org_or_user=self.scope,
            from_date=self.from_date,
            to_date=self.to_date,
            author_filter=self.author_filter,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class CommitCache(Protocol):
    """Capability for storing complete commit lists per scope."""

    def get(self, key: CacheKey) -> list[CommitRecord] | None:
        """Return the cached commits for ``key``, or None on a miss."""
        ...

    def set(self, key: CacheKey, commits: list[CommitRecord]) -> None:
        """Store the full commit list for ``key``."""
        ...

    def clear(self) -> int:
        """Remove every entry and return how many were removed."""
        ...


class NoOpCache:
    """Cache that never stores anything."""

    def get(self, key: CacheKey) -> list[CommitRecord] | None:
        return None

    def set(self, key: CacheKey, commits: list[CommitRecord]) -> None:
        return None

    def clear(self) -> int:
        return 0


class MemoryCommitCache:
    """In-process cache, useful for a single report run and for tests."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, tuple[CommitRecord, ...]] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> list[CommitRecord] | None:
        with self._lock:
            commits = self._entries.get(key)
        return list(commits) if commits is not None else None

    def set(self, key: CacheKey, commits: list[CommitRecord]) -> None:
        with self._lock:
            self._entries[key] = tuple(commits)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)


class FileCommitCache:
    """One JSON document per key under a cache directory. No expiry."""

    def __init__(self, cache_dir: Path | None = None) -> None:
        """Initialize the cache, creating the directory if needed.

        Args:
            cache_dir: Directory for cache documents (default ~/.cache/git-yearbook)

        Raises:
            CacheError: If the directory cannot be created
        """
        if cache_dir is None:
            cache_dir = Path.home() / ".cache" / "git-yearbook"
        self.cache_dir = cache_dir
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Failed to create cache directory {self.cache_dir}: {e}") from e

    def path_for(self, key: CacheKey) -> Path:
        return self.cache_dir / key.filename()

    def get(self, key: CacheKey) -> list[CommitRecord] | None:
        path = self.path_for(key)
        if not path.exists():
            return None

        try:
            with path.open(encoding="utf-8") as f:
                entry = CacheEntry.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable cache file {path}: {e}")
            return None

        if entry.key() != key:
            logger.warning(f"Ignoring cache file {path}: stored scope does not match key")
            return None

        logger.info(f"Cache hit for {path.name} ({len(entry.commits)} commits)")
        return list(entry.commits)

    def set(self, key: CacheKey, commits: list[CommitRecord]) -> None:
        path = self.path_for(key)
        content = CacheEntry.build(key, commits).to_json()

        # Write to a temp file in the same directory, then swap it in atomically
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.cache_dir,
                prefix=".tmp-",
                suffix=".json",
                delete=False,
            ) as tmp:
                tmp.write(content)
                tmp_path = Path(tmp.name)
            os.replace(tmp_path, path)
        except OSError as e:
            raise CacheError(f"Failed to write cache file {path}: {e}") from e

        logger.debug(f"Cached {len(commits)} commits in {path.name}")

    def clear(self) -> int:
        removed = 0
        try:
            for path in self.cache_dir.glob(f"*{CACHE_SUFFIX}"):
                if path.is_file():
                    path.unlink()
                    removed += 1
        except OSError as e:
            raise CacheError(f"Failed to clear cache directory {self.cache_dir}: {e}") from e

        logger.info(f"Removed {removed} cache files from {self.cache_dir}")
        return removed
