"""Bounded retry with exponential backoff.

``retry_call`` runs an operation up to ``max_attempts`` times and returns a
``RetryOutcome`` holding either the value or the final error.  The caller
chooses which exception types are retryable; anything else ends the loop
immediately.  Sleeping goes through the ``RunContext`` so the run deadline
is honoured between attempts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from copilot_mirror.errors import TimeoutExceeded

if TYPE_CHECKING:
    from copilot_mirror.sync.context import RunContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def backoff_delay(attempt: int) -> float:
    """Delay before retrying after *attempt* (1-based): ``2 ** attempt`` s."""
    return float(2**attempt)


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Result of a retried operation: a value or the last error."""

    value: T | None = None
    error: Exception | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or re-raise the final error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def retry_call(
    operation: Callable[[], T],
    ctx: RunContext,
    *,
    retry_on: tuple[type[Exception], ...],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff: Callable[[int], float] = backoff_delay,
    description: str = "operation",
) -> RetryOutcome[T]:
    """Run *operation* with bounded retries.

    Args:
        operation: Zero-argument callable to execute.
        ctx: Run context; checked before every attempt and used for sleeping.
        retry_on: Exception types that trigger another attempt.
        max_attempts: Total attempts including the first.
        backoff: Maps the failed attempt number to a delay in seconds.
        description: Used in log messages.

    Returns:
        ``RetryOutcome`` with the value, or with the error that ended the
        loop (a non-retryable error, or the last retryable one).

    Raises:
        TimeoutExceeded: If the run deadline passes while retrying.
    """
    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        ctx.check_deadline()
        try:
            return RetryOutcome(value=operation(), attempts=attempt)
        except retry_on as exc:
            last_error = exc
            if attempt == max_attempts:
                break
            delay = backoff(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.0fs",
                description,
                attempt,
                max_attempts,
                exc,
                delay,
            )
            ctx.sleep(delay)
        except TimeoutExceeded:
            raise
        except Exception as exc:
            return RetryOutcome(error=exc, attempts=attempt)

    logger.error(
        "%s failed after %d attempts: %s",
        description,
        max_attempts,
        last_error,
    )
    return RetryOutcome(error=last_error, attempts=max_attempts)
