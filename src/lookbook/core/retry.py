"""Retry with exponential backoff for generation calls.

Only failures classified as transient (internal/server-side faults) are
retried.  Everything else propagates on the first attempt.

Backoff
-------
After failed attempt *n* (1-indexed) the policy waits
``initial_delay * 2 ** (n - 1)`` seconds before the next attempt.  With the
defaults (3 attempts, 1s) an always-failing call takes attempts at t=0, 1s
and 3s and then raises the last error.

Usage
-----
::

    policy = RetryPolicy(max_attempts=3, initial_delay=1.0)
    image = await policy.execute(lambda: client.generate(source, prompt))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .errors import GenerationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Observer signature: (attempt, error or None on success,
# delay_before_next_attempt or None).
RetryObserver = Callable[[int, "BaseException | None", "float | None"], None]


def is_transient(error: BaseException) -> bool:
    """Return True if *error* is a generation failure worth retrying."""
    return isinstance(error, GenerationError) and error.is_transient


class RetryPolicy:
    """Runs an async operation, retrying transient failures with backoff.

    Attributes:
        max_attempts: Total number of attempts (initial call included).
        initial_delay: Delay in seconds after the first failed attempt.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        *,
        retry_if: Callable[[BaseException], bool] = is_transient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        observer: RetryObserver | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self._retry_if = retry_if
        self._sleep = sleep
        self._observer = observer

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after failed attempt number *attempt* (1-indexed)."""
        return self.initial_delay * 2 ** (attempt - 1)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run *operation* until it succeeds, fails permanently, or attempts run out.

        Args:
            operation: Zero-argument callable returning a fresh awaitable on
                every call.

        Returns:
            Whatever the first successful attempt returns.

        Raises:
            Exception: The non-retryable error, or the last transient error
                once all attempts are used.
        """
        for attempt in range(1, self.max_attempts + 1):
            logger.debug("Generation attempt %d/%d...", attempt, self.max_attempts)
            try:
                result = await operation()
            except Exception as e:
                retryable = self._retry_if(e)
                logger.warning(
                    "Generation attempt %d/%d failed: %s", attempt, self.max_attempts, e
                )
                if not retryable or attempt == self.max_attempts:
                    self._notify(attempt, e, None)
                    if retryable:
                        logger.error("Giving up after %d attempts.", attempt)
                    raise

                delay = self.delay_for(attempt)
                self._notify(attempt, e, delay)
                logger.info("Internal error detected. Retrying in %.0fms...", delay * 1000)
                await self._sleep(delay)
            else:
                logger.debug("Generation attempt %d/%d succeeded.", attempt, self.max_attempts)
                self._notify(attempt, None, None)
                return result

        # range() above always returns or raises.
        raise AssertionError("unreachable")

    def _notify(self, attempt: int, error: BaseException | None, delay: float | None) -> None:
        if self._observer is None:
            return
        try:
            self._observer(attempt, error, delay)
        except Exception:
            logger.exception("Retry observer raised; ignoring.")
