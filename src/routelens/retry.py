"""
Bounded retry with backoff for transient model-call failures.

Retries wrap the whole call: the wrapped function performs one attempt and
either returns or raises. Only exception types listed in ``retry_on`` are
retried; anything else propagates from the first attempt.

routelens/src/routelens/retry.py
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Tuple, Type, TypeVar

import requests

from routelens.exceptions import ModelResponseError

__all__ = ["RETRYABLE_ERRORS", "RetryConfig", "backoff_delays", "call_with_retry"]

logger = logging.getLogger(__name__)

R = TypeVar("R")

RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (
    requests.RequestException,
    ModelResponseError,
    TimeoutError,
)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    attempts: int = 3
    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 30.0
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS


def backoff_delays(config: RetryConfig) -> Iterator[float]:
    """Delays slept between attempts; never decreasing and capped at ``max_delay``."""
    for n in range(max(config.attempts - 1, 0)):
        yield min(config.max_delay, config.base_delay * config.factor**n)


def call_with_retry(
    func: Callable[[], R],
    config: Optional[RetryConfig] = None,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "call",
) -> R:
    """Run ``func`` until it succeeds or the attempts are used up.

    Each failed attempt is logged at warning level. When every attempt fails,
    the last error is raised unchanged.
    """
    config = config or RetryConfig()
    delays = backoff_delays(config)
    attempts = max(config.attempts, 1)

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except config.retry_on as e:
            if attempt >= attempts:
                logger.warning(f"{description} failed on final attempt {attempt}/{attempts}: {e}")
                raise
            delay = next(delays)
            logger.warning(
                f"{description} attempt {attempt}/{attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s"
            )
            sleep(delay)

    raise AssertionError("unreachable")
