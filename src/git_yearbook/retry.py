"""Bounded exponential backoff for rate-limited operations."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from git_yearbook.exceptions import TransientRateLimitError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunction = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    """Retry behavior shared by every fetch of an engine.

    Attributes:
        max_retries: Retries after the first attempt (total calls <= 1 + max_retries)
        initial_delay: Seconds to wait before the first retry
        backoff_multiplier: Factor applied to the delay after every retry
        max_delay: Upper bound for a single wait
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 60.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.initial_delay < 0:
            raise ValueError("initial_delay cannot be negative")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be at least 1.0")


@dataclass
class RetryState:
    """Per-call retry bookkeeping; never shared between calls."""

    attempt: int
    current_delay: float
    max_retries: int
    backoff_multiplier: float

    @property
    def exhausted(self) -> bool:
        return self.attempt > self.max_retries

    def advance(self) -> None:
        self.attempt += 1
        self.current_delay *= self.backoff_multiplier


def is_rate_limited(error: Exception) -> bool:
    """Determine if an error is a rate-limit failure worth retrying."""
    if isinstance(error, TransientRateLimitError):
        return True
    if isinstance(error, TransportError):
        return error.status_code == 429 or "rate limit" in str(error).lower()
    return False


class RetryPolicy:
    """Run an async operation, retrying only rate-limit failures."""

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: SleepFunction | None = None,
    ) -> None:
        """Initialize the policy.

        Args:
            config: Retry limits and delays (defaults: 3 retries, 1s, x2)
            sleep: Awaitable sleep function, asyncio.sleep by default
        """
        self.config = config if config is not None else RetryConfig()
        self._sleep = sleep or asyncio.sleep

    def _new_state(self) -> RetryState:
        return RetryState(
            attempt=1,
            current_delay=self.config.initial_delay,
            max_retries=self.config.max_retries,
            backoff_multiplier=self.config.backoff_multiplier,
        )

    def _delay_for(self, state: RetryState, error: Exception) -> float:
        delay = state.current_delay
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            delay = max(delay, retry_after)
        return min(delay, self.config.max_delay)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Invoke ``operation`` until it succeeds or retries run out.

        Args:
            operation: Zero-argument coroutine function performing one fetch

        Returns:
            The operation's result

        Raises:
            Exception: The last failure, once retries are exhausted, or any
                non-rate-limit failure immediately
        """
        state = self._new_state()

        while True:
            try:
                return await operation()
            except Exception as error:
                if not is_rate_limited(error):
                    logger.debug(f"Not retrying {type(error).__name__}: {error}")
                    raise

                if state.exhausted:
                    logger.error(
                        f"All {state.max_retries} retries exhausted. Final error: {error}"
                    )
                    raise

                delay = self._delay_for(state, error)
                logger.info(
                    f"Rate limited, retrying in {delay:.2f} seconds "
                    f"(retry {state.attempt}/{state.max_retries})"
                )
                await self._sleep(delay)
                state.advance()
