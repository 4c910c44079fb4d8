"""Best-effort side effects.

Calls to collaborators whose failure must not fail the primary operation
(coupon usage counters, product sold counters). Each call is retried with
exponential backoff; if it still fails the error is logged and dropped.
"""

import logging
import os

import structlog
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = int(os.getenv("ORDERING_SIDE_EFFECT_ATTEMPTS", "3"))


def run_best_effort(action, *args, description, retry_on=(Exception,), **log_context) -> bool:
    """Run ``action(*args)``; return False instead of raising once retries are exhausted."""
    retrying = retry(
        retry=retry_if_exception_type(retry_on),
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.1, max=2.0),
        before_sleep=before_sleep_log(logging.getLogger(__name__), logging.WARNING),
        reraise=True,
    )

    try:
        retrying(action)(*args)
    except retry_on as exc:
        logger.error(f"{description} failed", error=str(exc), attempts=MAX_ATTEMPTS, **log_context)
        return False
    return True
