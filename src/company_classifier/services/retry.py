"""Retry logic with fixed backoff and error classification.

Uses tenacity for retries. Classifies errors as retryable or non-retryable
based on exception type and, for bad responses, the status code carried by
FetchError.
"""

from __future__ import annotations

from typing import Callable, TypeVar

import httpx
import structlog
from pydantic import ValidationError
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from company_classifier.errors import (
    AnalysisError,
    ExtractionError,
    FetchError,
    FetchFailureReason,
    JobStateError,
    ScrapingJobError,
)

logger = structlog.get_logger()

T = TypeVar("T")

# HTTP status codes that are retryable (transient server errors and rate limiting)
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


def is_retryable_error(exc: BaseException) -> bool:
    """Determine if an exception is transient and worth retrying."""
    # Never retry validation errors
    if isinstance(exc, (ValidationError, ValueError, TypeError)):
        return False

    # Content that failed validation will not get better on a second request
    if isinstance(exc, FetchError):
        return exc.reason == FetchFailureReason.network or (
            exc.reason == FetchFailureReason.bad_status and exc.status in RETRYABLE_STATUS_CODES
        )

    # Transient network errors
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError, OSError)):
        return True

    return False


def _log_retry(retry_state: RetryCallState) -> None:
    """Log each retry attempt."""
    logger.warning(
        "retry_attempt",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()) if retry_state.outcome else "unknown",
    )


def with_retry(retries: int = 2, delay_seconds: float = 1.0) -> Callable:
    """Create a tenacity retry decorator with a fixed inter-attempt delay.

    ``retries`` counts additional attempts after the first one.
    Only retries on transient errors.
    """
    if retries <= 0:
        # No retries, call once
        def no_retry_decorator(func: Callable[..., T]) -> Callable[..., T]:
            return func
        return no_retry_decorator

    return retry(
        retry=retry_if_exception(is_retryable_error),
        stop=stop_after_attempt(retries + 1),
        wait=wait_fixed(delay_seconds),
        before_sleep=_log_retry,
        reraise=True,
    )


def classify_error(exc: BaseException) -> str:
    """Classify an error into a human-readable category."""
    if isinstance(exc, FetchError):
        if exc.reason == FetchFailureReason.bad_status:
            return "Rate Limiting" if exc.status == 429 else "HTTP Error"
        if exc.reason == FetchFailureReason.network:
            return "Transient Network"
        return "Content Validation"
    if isinstance(exc, ScrapingJobError):
        return classify_error(exc.cause) if exc.cause is not None else "Scraping Job"
    if isinstance(exc, ExtractionError):
        return "Extraction"
    if isinstance(exc, AnalysisError):
        return "AI Analysis"
    if isinstance(exc, JobStateError):
        return "Job State"
    if isinstance(exc, TimeoutError):
        return "Timeout"
    if isinstance(exc, (httpx.TransportError, ConnectionError, OSError)):
        return "Transient Network"
    if isinstance(exc, (ValidationError, ValueError)):
        return "Data Validation"
    return "Unknown"
