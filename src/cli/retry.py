"""Retry utilities with exponential backoff."""

import logging

import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.stdlib.get_logger(__name__)


def llm_retry(
    max_attempts: int = 3,
    min_wait: float = 2.0,
    max_wait: float = 30.0,
    exceptions: tuple = (Exception,),
):
    """Retry decorator for LLM API calls.

    Uses longer max_wait for rate limiting scenarios.

    Args:
        max_attempts: Max retry attempts
        min_wait: Min wait between retries (seconds)
        max_wait: Max wait between retries (seconds)
        exceptions: Exception types to retry on
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def retry_from_config(config, exceptions: tuple = (Exception,)):
    """Create an llm_retry decorator from a RetryConfig (or its dict form).

    Args:
        config: RetryConfig model or dict with max_attempts/min_wait/max_wait
        exceptions: Exception types to retry on

    Returns:
        Configured retry decorator
    """
    if hasattr(config, "model_dump"):
        config = config.model_dump()
    config = config or {}

    return llm_retry(
        max_attempts=config.get("max_attempts", 2),
        min_wait=config.get("min_wait", 1.0),
        max_wait=config.get("max_wait", 8.0),
        exceptions=exceptions,
    )
