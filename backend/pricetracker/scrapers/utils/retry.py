"""Retry policy for price update jobs."""

import logging
from typing import Optional

import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from pricetracker.core.exceptions import TransientNetworkError

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 5


def job_retrying(max_attempts: int = MAX_ATTEMPTS, wait: Optional[wait_base] = None) -> AsyncRetrying:
    """Retry controller for a single update job.

    Only transient network errors are retried: blocks, parse misses and
    missing products are terminal for the attempt. Waits grow 5s, 10s, 20s...

    Args:
        max_attempts: Total attempts including the first one
        wait: Override for the wait strategy (tests pass ``wait_none()``)
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait or wait_exponential(multiplier=BACKOFF_BASE_SECONDS, min=BACKOFF_BASE_SECONDS, max=300),
        retry=retry_if_exception_type(TransientNetworkError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
