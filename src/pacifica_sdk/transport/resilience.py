"""
Retry and reconnect decisions shared by the HTTP and WebSocket transports

RetryPolicy is pure: it looks at an error and the number of retries already
spent and answers SUCCESS, RETRYABLE (with a delay) or FATAL. Transports do
the sleeping.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..exceptions import APIError, ErrorKind, PacificaError, RateLimitError

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_RECONNECT_DELAY = 60.0


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class ResilienceOutcome:
    """
    Result of classifying one attempt

    Attributes:
        kind: SUCCESS, RETRYABLE or FATAL
        value: Result of a successful attempt
        delay: Seconds to wait before the next attempt (RETRYABLE only)
        error: Error that caused the failure
    """
    kind: OutcomeKind
    value: Any = None
    delay: float = 0.0
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: Any) -> "ResilienceOutcome":
        return cls(OutcomeKind.SUCCESS, value=value)

    @classmethod
    def retryable(cls, delay: float, error: BaseException) -> "ResilienceOutcome":
        return cls(OutcomeKind.RETRYABLE, delay=delay, error=error)

    @classmethod
    def fatal(cls, error: BaseException) -> "ResilienceOutcome":
        return cls(OutcomeKind.FATAL, error=error)

    @property
    def should_retry(self) -> bool:
        return self.kind == OutcomeKind.RETRYABLE


@dataclass
class RetryPolicy:
    """
    Bounded exponential backoff.

    The delay before retry ``k`` (0-indexed) is ``base_delay * 2**k``,
    capped at ``max_delay`` when set. ``jitter`` adds up to that fraction
    of the delay at random.
    """
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: Optional[float] = None
    jitter: float = 0.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValueError("max_delay must be non-negative")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0 and 1")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def _cap(self, delay: float) -> float:
        if self.max_delay is not None:
            return min(delay, self.max_delay)
        return delay

    def backoff_delay(self, retry_index: int) -> float:
        """Delay before the retry numbered ``retry_index`` (0-indexed)."""
        delay = self._cap(self.base_delay * (2 ** retry_index))
        if self.jitter:
            delay = self._cap(delay + delay * self.jitter * random.random())
        return delay

    def reconnect_delay(self, attempt: int) -> float:
        """Delay before reconnect attempt ``attempt`` (1-indexed)."""
        return self.backoff_delay(max(attempt - 1, 0))

    def is_retryable(self, error: BaseException) -> bool:
        if not isinstance(error, PacificaError):
            return False
        kind = error.kind
        if kind in (ErrorKind.NETWORK, ErrorKind.TIMEOUT, ErrorKind.RATE_LIMIT):
            return True
        if kind == ErrorKind.API:
            return isinstance(error, APIError) and error.status >= 500
        return False

    def classify(self, error: BaseException, retry_index: int) -> ResilienceOutcome:
        """
        Decide what to do after a failed attempt.

        Args:
            error: Error raised by the attempt
            retry_index: Number of retries already performed

        Returns:
            ResilienceOutcome: RETRYABLE with the delay to wait, or FATAL
                carrying the original error once it is not retryable or the
                retry budget is spent
        """
        if not self.is_retryable(error) or retry_index >= self.max_retries:
            return ResilienceOutcome.fatal(error)

        if isinstance(error, RateLimitError) and error.retry_after is not None:
            return ResilienceOutcome.retryable(self._cap(error.retry_after), error)
        return ResilienceOutcome.retryable(self.backoff_delay(retry_index), error)


def classify_status(status: int) -> OutcomeKind:
    """Classify an HTTP status code on its own."""
    if 200 <= status < 300:
        return OutcomeKind.SUCCESS
    if status == 429 or status >= 500:
        return OutcomeKind.RETRYABLE
    return OutcomeKind.FATAL
