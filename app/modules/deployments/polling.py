import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded, fixed-interval retry: at most max_attempts checks, interval seconds apart."""
    max_attempts: int
    interval: float

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")


def poll_until(
    check: Callable[[], Optional[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "condition",
) -> Optional[T]:
    """
    Call check() up to policy.max_attempts times until it returns a non-None value.

    Sleeps policy.interval between attempts (not after the last one).
    Returns the first non-None value, or None once attempts are exhausted;
    callers decide whether exhaustion is fatal.
    """
    for attempt in range(1, policy.max_attempts + 1):
        result = check()
        if result is not None:
            logger.debug(f"{description} satisfied on attempt {attempt}/{policy.max_attempts}")
            return result
        if attempt < policy.max_attempts:
            logger.debug(f"{description} not yet satisfied ({attempt}/{policy.max_attempts}), retrying in {policy.interval}s")
            sleep(policy.interval)
    logger.warning(f"{description} not satisfied after {policy.max_attempts} attempts")
    return None
