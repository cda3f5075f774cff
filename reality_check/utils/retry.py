"""
Transport-level retry configuration for outbound search providers.

Only transient statuses (HTTP 429 / 5xx) are retried; every other failure
falls through to the provider's fail-open boundary on the first attempt.
"""

import logging
import os
from typing import Optional

import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from ..core import config
from .errors import RetryableProviderError

logger = structlog.get_logger(__name__)


class RetryConfig:
    """Retry knobs loaded from environment."""

    SEARCH_MAX_ATTEMPTS = config.SEARCH_MAX_ATTEMPTS
    SEARCH_RETRY_BASE_DELAY = float(os.getenv("SEARCH_RETRY_BASE_DELAY", "0.5"))
    SEARCH_RETRY_MAX_DELAY = float(os.getenv("SEARCH_RETRY_MAX_DELAY", "4"))


def search_retrying(max_attempts: Optional[int] = None) -> AsyncRetrying:
    """
    Build an ``AsyncRetrying`` controller for one provider request.

    Args:
        max_attempts: Total attempts including the first; defaults to
            ``SEARCH_MAX_ATTEMPTS``. Values below 1 are treated as 1.
    """
    attempts = max(1, max_attempts if max_attempts is not None else RetryConfig.SEARCH_MAX_ATTEMPTS)
    return AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_random_exponential(
            min=RetryConfig.SEARCH_RETRY_BASE_DELAY,
            max=RetryConfig.SEARCH_RETRY_MAX_DELAY,
        ),
        retry=retry_if_exception_type(RetryableProviderError),
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True,
    )
