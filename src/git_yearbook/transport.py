"""Transports executing GraphQL queries against GitHub."""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

import httpx

from git_yearbook.exceptions import TransientRateLimitError, TransportError
from git_yearbook.queries import GraphQLQuery

logger = logging.getLogger(__name__)


class LookupHint(Enum):
    """Tells a transport how to treat a failed status that still carries a body."""

    OWNER_AMBIGUOUS = "owner_ambiguous"  # organization-or-user lookup
    DIRECT = "direct"


@dataclass(frozen=True)
class TransportResponse:
    """Raw response text plus whether the transport signaled success."""

    text: str
    ok: bool = True
    status_code: int | None = None


class Transport(Protocol):
    """Capability for executing a built query."""

    async def execute(
        self, query: GraphQLQuery, hint: LookupHint = LookupHint.OWNER_AMBIGUOUS
    ) -> TransportResponse:
        """Execute ``query`` and return the raw response.

        Raises:
            TransientRateLimitError: If the request was rejected by rate limiting
            TransportError: If the request could not be executed
        """
        ...


def _mentions_rate_limit(text: str) -> bool:
    return "rate limit" in text.lower()


class HttpGraphQLTransport:
    """Transport posting queries to the GitHub GraphQL endpoint with httpx."""

    def __init__(
        self,
        token: str,
        endpoint: str = "https://api.github.com/graphql",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            token: GitHub Personal Access Token
            endpoint: GraphQL endpoint URL
            timeout: Request timeout in seconds
            http_client: Optional preconfigured client (owned by the caller)
        """
        self.token = token
        self.endpoint = endpoint
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

        # Rate limiting tracking
        self.rate_limit_remaining: int | None = None
        self.rate_limit_limit: int | None = None
        self.rate_limit_reset: datetime | None = None

        self._http_client = http_client
        self._owns_client = http_client is None

    def _update_rate_limit_info(self, response: httpx.Response) -> None:
        """Update rate limit information from GitHub API response headers."""
        if "x-ratelimit-remaining" in response.headers:
            self.rate_limit_remaining = int(response.headers["x-ratelimit-remaining"])
        if "x-ratelimit-limit" in response.headers:
            self.rate_limit_limit = int(response.headers["x-ratelimit-limit"])
        if "x-ratelimit-reset" in response.headers:
            reset_timestamp = int(response.headers["x-ratelimit-reset"])
            self.rate_limit_reset = datetime.fromtimestamp(reset_timestamp, tz=UTC)

    def _is_rate_limited(self, response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        if response.status_code != 403:
            return False
        # 403 is also used for missing scopes; only an exhausted quota counts
        return response.headers.get(
            "x-ratelimit-remaining"
        ) == "0" or _mentions_rate_limit(response.text)

    @staticmethod
    def _retry_after(response: httpx.Response) -> float | None:
        value = response.headers.get("retry-after")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            )
        return self._http_client

    async def execute(
        self, query: GraphQLQuery, hint: LookupHint = LookupHint.OWNER_AMBIGUOUS
    ) -> TransportResponse:
        client = self._get_client()
        try:
            response = await client.post(
                self.endpoint, headers=self.headers, json=query.to_payload()
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"GraphQL request failed: {type(e).__name__}: {e}"
            ) from e

        self._update_rate_limit_info(response)

        if self._is_rate_limited(response):
            raise TransientRateLimitError(
                f"GitHub API rate limit exceeded (status {response.status_code})",
                retry_after=self._retry_after(response),
                reset_time=self.rate_limit_reset,
            )

        if response.is_success:
            return TransportResponse(
                text=response.text, ok=True, status_code=response.status_code
            )

        if hint is LookupHint.OWNER_AMBIGUOUS and response.text.strip():
            logger.info(
                f"GraphQL request returned status {response.status_code} with a body, "
                "deferring to the response parser"
            )
            return TransportResponse(
                text=response.text, ok=False, status_code=response.status_code
            )

        raise TransportError(
            f"GraphQL request failed with status {response.status_code}: "
            f"{response.text[:200]}",
            status_code=response.status_code,
        )

    def get_rate_limit_status(self) -> dict[str, Any]:
        """Return current rate limit status.

        Returns:
            Dictionary containing rate limit information
        """
        return {
            "remaining": self.rate_limit_remaining,
            "limit": self.rate_limit_limit,
            "reset_time": self.rate_limit_reset,
            "reset_in_seconds": (
                int((self.rate_limit_reset - datetime.now(tz=UTC)).total_seconds())
                if self.rate_limit_reset
                else None
            ),
        }

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "HttpGraphQLTransport":
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async context manager exit with cleanup."""
        await self.close()


class GhCliTransport:
    """Transport delegating to the GitHub CLI (``gh api graphql``).

    Authentication is whatever ``gh auth`` has configured. ``gh`` exits
    non-zero whenever the payload carries GraphQL errors, even when stdout
    still holds usable data, so the exit status alone is not a verdict.
    """

    def __init__(self, executable: str = "gh") -> None:
        self.executable = executable

    async def execute(
        self, query: GraphQLQuery, hint: LookupHint = LookupHint.OWNER_AMBIGUOUS
    ) -> TransportResponse:
        body = json.dumps(query.to_payload()).encode("utf-8")

        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                "api",
                "graphql",
                "--input",
                "-",
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise TransportError(f"'{self.executable}' executable not found") from e
        except OSError as e:
            raise TransportError(f"Failed to start '{self.executable}': {e}") from e

        stdout_bytes, stderr_bytes = await process.communicate(body)
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

        if process.returncode == 0:
            return TransportResponse(text=stdout, ok=True)

        if _mentions_rate_limit(stderr):
            raise TransientRateLimitError(f"gh reported a rate limit: {stderr}")

        if hint is LookupHint.OWNER_AMBIGUOUS and stdout.strip():
            logger.info(
                f"gh exited with {process.returncode} but produced output, "
                "deferring to the response parser"
            )
            return TransportResponse(text=stdout, ok=False)

        raise TransportError(
            f"gh command failed with exit code {process.returncode}: {stderr}"
        )
