"""
Resilient error handling utilities.

Provides the scraper error taxonomy, the fetch retry wrapper and centralized
error categorization.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from brand_ingest.models.schemas import ApiErrorCode, ErrorCode
from brand_ingest.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================

class ScraperError(Exception):
    """Base scraper exception carrying an ``ErrorCode``."""

    code: ErrorCode = ErrorCode.EXTRACTION_FAILED

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.cause = cause

    def __str__(self) -> str:
        return f"{ErrorCode(self.code).value}: {self.message}"


class InvalidUrlError(ScraperError):
    code = ErrorCode.INVALID_URL


class BlockedUrlError(ScraperError):
    code = ErrorCode.BLOCKED_URL


class ScrapeTimeoutError(ScraperError):
    code = ErrorCode.TIMEOUT


class NavigationFailedError(ScraperError):
    code = ErrorCode.NAVIGATION_FAILED


class ParseFailedError(ScraperError):
    code = ErrorCode.PARSE_FAILED


class ExtractionFailedError(ScraperError):
    code = ErrorCode.EXTRACTION_FAILED


PERMANENT_ERRORS: tuple[type[ScraperError], ...] = (InvalidUrlError, BlockedUrlError)


# =============================================================================
# Retry Wrapper
# =============================================================================

def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Fetch attempt failed, retrying",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
        error=str(error),
    )


async def with_retries(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 2,
    backoff_seconds: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run ``fn`` with linear backoff between attempts.

    Waits ``backoff_seconds * attempt`` after each failed attempt. Invalid and
    blocked URL errors are permanent: they propagate on the first failure.
    The last error is re-raised once attempts are exhausted.

    Args:
        fn: Zero-argument coroutine factory to call on each attempt.
        attempts: Total number of attempts (at least 1).
        backoff_seconds: Base delay; the n-th retry waits n times this.
        sleep: Awaitable sleep, injectable for tests.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_incrementing(start=backoff_seconds, increment=backoff_seconds),
        retry=retry_if_not_exception_type(PERMANENT_ERRORS),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn()
    raise RuntimeError("unreachable")  # pragma: no cover


# =============================================================================
# Error Handler
# =============================================================================

class ErrorHandler:
    """Centralized error handling and categorization."""

    @staticmethod
    def categorize_error(error: BaseException) -> ErrorCode:
        """Map any exception onto the scraper error taxonomy."""
        if isinstance(error, ScraperError):
            return ErrorCode(error.code)
        if isinstance(error, (asyncio.TimeoutError, PlaywrightTimeoutError, httpx.TimeoutException)):
            return ErrorCode.TIMEOUT
        if isinstance(error, (httpx.HTTPError, ConnectionError)):
            return ErrorCode.NAVIGATION_FAILED
        if isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorCode.PARSE_FAILED

        err_str = str(error).lower()
        if "timeout" in err_str:
            return ErrorCode.TIMEOUT
        if "net::" in err_str or "navigation" in err_str:
            return ErrorCode.NAVIGATION_FAILED

        return ErrorCode.EXTRACTION_FAILED

    @staticmethod
    def to_scraper_error(error: BaseException) -> ScraperError:
        """Wrap a foreign exception, keeping ScraperErrors untouched."""
        if isinstance(error, ScraperError):
            return error
        code = ErrorHandler.categorize_error(error)
        return ScraperError(str(error) or type(error).__name__, code=code, cause=error)

    @staticmethod
    def to_api_code(error: BaseException) -> ApiErrorCode:
        """Map an internal error onto the API boundary codes."""
        if not isinstance(error, ScraperError):
            return ApiErrorCode.INTERNAL
        mapping = {
            ErrorCode.INVALID_URL: ApiErrorCode.INVALID_URL,
            ErrorCode.BLOCKED_URL: ApiErrorCode.BLOCKED_URL,
            ErrorCode.TIMEOUT: ApiErrorCode.SCRAPE_TIMEOUT,
            ErrorCode.NAVIGATION_FAILED: ApiErrorCode.SCRAPE_FAILED,
            ErrorCode.PARSE_FAILED: ApiErrorCode.SCRAPE_FAILED,
            ErrorCode.EXTRACTION_FAILED: ApiErrorCode.SCRAPE_FAILED,
        }
        return mapping.get(ErrorCode(error.code), ApiErrorCode.INTERNAL)
