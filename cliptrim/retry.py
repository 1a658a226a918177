"""Bounded retry with capped exponential backoff."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0

    def backoff(self, attempt: int) -> float:
        """Delay in seconds after failed attempt number ``attempt`` (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


def retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds or ``policy.max_attempts`` is exhausted.

    The last exception is re-raised.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            if attempt == policy.max_attempts:
                raise
            delay = policy.backoff(attempt)
            logger.warning("Attempt %d failed: %s; retrying in %.1fs", attempt, exc, delay)
            sleep(delay)
    raise ValueError("RetryPolicy.max_attempts must be at least 1")
