"""Bounded exponential-backoff retry for gateway calls.

Shared by the status broker (probes) and the command router (dispatch).
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from .base import GatewayError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


def is_retryable(error: BaseException) -> bool:
    """Decide whether a failure is worth another attempt.

    GatewayError subclasses carry their own flag (4xx-equivalents are not
    retryable). Raw httpx transport/timeout errors and 5xx status errors are
    transient. Anything else is a bug in the operation and is not retried.
    """
    if isinstance(error, GatewayError):
        return error.retryable
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
        return True
    return False


class RetryExecutor:
    """Run an async operation with bounded exponential backoff.

    Delay doubles (by ``backoff``) after each failed attempt. Non-retryable
    failures are raised immediately; otherwise the last error is raised once
    ``max_attempts`` is exhausted.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        backoff: float = 2.0,
        sleep: Optional[SleepFn] = None,
    ):
        """Initialize the executor.

        Args:
            max_attempts: Default attempt cap (including the first try)
            initial_delay: Default delay in seconds before the first retry
            backoff: Multiplier applied to the delay after each retry
            sleep: Async sleep primitive (injectable for tests)
        """
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.backoff = backoff
        self._sleep: SleepFn = sleep or asyncio.sleep

    def delay_for(self, retry_index: int, initial_delay: Optional[float] = None) -> float:
        """Delay before retry number ``retry_index`` (0-based)."""
        base = self.initial_delay if initial_delay is None else initial_delay
        return base * (self.backoff ** retry_index)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
        label: str = "operation",
    ) -> T:
        """Run ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Zero-arg coroutine factory; called once per attempt
            max_attempts: Override the attempt cap
            initial_delay: Override the first delay (seconds)
            label: Name used in log lines

        Returns:
            The operation's result

        Raises:
            The last error raised by ``operation``
        """
        attempts = max(1, max_attempts if max_attempts is not None else self.max_attempts)

        for attempt in range(attempts):
            try:
                return await operation()
            except Exception as e:
                if not is_retryable(e):
                    logger.debug(f"{label}: non-retryable {type(e).__name__}, giving up")
                    raise
                if attempt + 1 >= attempts:
                    logger.warning(
                        f"{label}: failed after {attempts} attempts: {type(e).__name__}: {e}"
                    )
                    raise
                delay = self.delay_for(attempt, initial_delay)
                logger.info(
                    f"{label}: attempt {attempt + 1}/{attempts} failed "
                    f"({type(e).__name__}), retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

        # Unreachable: the loop either returns or raises
        raise RuntimeError(f"{label}: retry loop exited without a result")
