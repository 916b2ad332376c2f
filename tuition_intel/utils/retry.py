"""
Exponential backoff for transient Gemini failures.

Only the network call is wrapped; parsing happens after the executor returns
so a malformed payload is never retried.

Usage:
    executor = BackoffExecutor(RetryPolicy(max_retries=3))
    stats = RetryStats()
    response = executor.run(lambda: client.search(prompt), "Extract Acme / MBA", stats)
    print(stats.retries)
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from ..exceptions import ParseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Provider status codes that indicate a transient condition
RETRYABLE_CODES = {"RESOURCE_EXHAUSTED", "UNAVAILABLE", "DEADLINE_EXCEEDED", "INTERNAL"}
RETRYABLE_MESSAGE_MARKERS = ("429", "quota", "503", "unavailable", "500", "internal", "timeout", "timed out")


@dataclass
class RetryPolicy:
    """Backoff parameters.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay_ms: Base delay, doubled per retry
        max_delay_ms: Upper bound on any single delay
        jitter_ms: Uniform random jitter added before capping
    """

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000
    jitter_ms: int = 1000

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0 or self.jitter_ms < 0:
            raise ValueError("delays must be non-negative")

    def delay_ms(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Delay before retry number `attempt` (0-based)."""
        raw = self.base_delay_ms * (2**attempt) + rng() * self.jitter_ms
        return min(self.max_delay_ms, raw)


@dataclass
class RetryStats:
    """Per-call counters. Owned by the caller so they survive a final failure."""

    attempts: int = 0
    retries: int = 0
    last_error: Optional[str] = None


def is_retryable_error(error: BaseException) -> bool:
    """
    Classify an error as transient.

    Matches rate-limit, overload, internal and timeout conditions in the
    message, plus provider status codes exposed as `code` or `status`.
    ParseError is never retryable.
    """
    if isinstance(error, ParseError):
        return False
    if isinstance(error, TimeoutError):
        return True

    message = str(error).lower()
    if any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS):
        return True

    upper_message = str(error).upper()
    if any(code in upper_message for code in RETRYABLE_CODES):
        return True

    for attr in ("code", "status"):
        value = getattr(error, attr, None)
        if value is None:
            continue
        if str(value).upper() in RETRYABLE_CODES:
            return True
        if str(value) in ("429", "500", "503", "504"):
            return True
    return False


class BackoffExecutor:
    """Runs an operation, retrying transient failures with exponential backoff."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        is_retryable: Callable[[BaseException], bool] = is_retryable_error,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self.policy = policy or RetryPolicy()
        self.is_retryable = is_retryable
        self._sleep = sleep
        self._rng = rng

    def run(self, operation: Callable[[], T], context_label: str, stats: Optional[RetryStats] = None) -> T:
        """
        Execute `operation` with retries.

        Args:
            operation: Zero-argument callable performing the network call
            context_label: Short description used in retry log lines
            stats: Optional counter updated with attempts and retries

        Returns:
            The operation's result

        Raises:
            The first non-retryable error, or the last error once retries run out
        """
        stats = stats if stats is not None else RetryStats()
        attempt = 0
        while True:
            stats.attempts += 1
            try:
                return operation()
            except Exception as e:
                stats.last_error = str(e)
                if not self.is_retryable(e) or attempt >= self.policy.max_retries:
                    raise

                delay = self.policy.delay_ms(attempt, self._rng)
                attempt += 1
                stats.retries += 1
                logger.warning(
                    f"Retry {attempt}/{self.policy.max_retries} for {context_label} "
                    f"after {round(delay)}ms: {e}"
                )
                self._sleep(delay / 1000)
