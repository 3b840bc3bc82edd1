import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from brand_ingest.models.schemas import ApiErrorCode, ErrorCode
from brand_ingest.utils.retry import (
    BlockedUrlError,
    ErrorHandler,
    InvalidUrlError,
    NavigationFailedError,
    ScrapeTimeoutError,
    ScraperError,
    with_retries,
)

# =============================================================================
# with_retries
# =============================================================================

@pytest.mark.asyncio
async def test_with_retries_success(no_sleep):
    fn = AsyncMock(return_value="ok")

    result = await with_retries(fn, attempts=2, sleep=no_sleep)

    assert result == "ok"
    assert fn.call_count == 1
    no_sleep.assert_not_awaited()

@pytest.mark.asyncio
async def test_with_retries_fail_then_success(no_sleep):
    fn = AsyncMock(side_effect=[NavigationFailedError("HTTP 503"), "ok"])

    result = await with_retries(fn, attempts=2, backoff_seconds=1.0, sleep=no_sleep)

    assert result == "ok"
    assert fn.call_count == 2
    no_sleep.assert_awaited_once_with(1.0)

@pytest.mark.asyncio
async def test_with_retries_linear_backoff(no_sleep):
    fn = AsyncMock(side_effect=ScrapeTimeoutError("slow"))

    with pytest.raises(ScrapeTimeoutError):
        await with_retries(fn, attempts=3, backoff_seconds=0.5, sleep=no_sleep)

    assert fn.call_count == 3
    assert [c.args[0] for c in no_sleep.await_args_list] == [0.5, 1.0]

@pytest.mark.asyncio
async def test_with_retries_reraises_last_error(no_sleep):
    fn = AsyncMock(side_effect=[NavigationFailedError("first"), NavigationFailedError("second")])

    with pytest.raises(NavigationFailedError, match="second"):
        await with_retries(fn, attempts=2, sleep=no_sleep)

@pytest.mark.asyncio
@pytest.mark.parametrize("error", [InvalidUrlError("bad"), BlockedUrlError("private")])
async def test_with_retries_permanent_errors_not_retried(error, no_sleep):
    fn = AsyncMock(side_effect=error)

    with pytest.raises(type(error)):
        await with_retries(fn, attempts=3, sleep=no_sleep)

    assert fn.call_count == 1
    no_sleep.assert_not_awaited()

# =============================================================================
# ScraperError
# =============================================================================

def test_scraper_error_str_and_code():
    error = NavigationFailedError("HTTP 500 for https://a.com/")
    assert error.code == ErrorCode.NAVIGATION_FAILED
    assert str(error) == "NAVIGATION_FAILED: HTTP 500 for https://a.com/"

def test_scraper_error_code_override_and_cause():
    cause = ValueError("x")
    error = ScraperError("parse", code=ErrorCode.PARSE_FAILED, cause=cause)
    assert error.code == ErrorCode.PARSE_FAILED
    assert error.cause is cause

# =============================================================================
# ErrorHandler
# =============================================================================

@pytest.mark.parametrize("error, expected", [
    (asyncio.TimeoutError(), ErrorCode.TIMEOUT),
    (httpx.ReadTimeout("read"), ErrorCode.TIMEOUT),
    (httpx.ConnectError("refused"), ErrorCode.NAVIGATION_FAILED),
    (ConnectionError("reset"), ErrorCode.NAVIGATION_FAILED),
    (ValueError("bad json"), ErrorCode.PARSE_FAILED),
    (KeyError("homepage"), ErrorCode.PARSE_FAILED),
    (RuntimeError("operation Timeout exceeded"), ErrorCode.TIMEOUT),
    (RuntimeError("net::ERR_NAME_NOT_RESOLVED"), ErrorCode.NAVIGATION_FAILED),
    (RuntimeError("something odd"), ErrorCode.EXTRACTION_FAILED),
    (BlockedUrlError("private"), ErrorCode.BLOCKED_URL),
])
def test_categorize_error(error, expected):
    assert ErrorHandler.categorize_error(error) == expected

def test_to_scraper_error_wraps_foreign():
    original = RuntimeError("boom")
    wrapped = ErrorHandler.to_scraper_error(original)
    assert isinstance(wrapped, ScraperError)
    assert wrapped.cause is original
    assert wrapped.message == "boom"

def test_to_scraper_error_keeps_scraper_errors():
    error = InvalidUrlError("bad")
    assert ErrorHandler.to_scraper_error(error) is error

def test_to_scraper_error_empty_message_uses_type_name():
    assert ErrorHandler.to_scraper_error(RuntimeError()).message == "RuntimeError"

@pytest.mark.parametrize("error, expected", [
    (InvalidUrlError("x"), ApiErrorCode.INVALID_URL),
    (BlockedUrlError("x"), ApiErrorCode.BLOCKED_URL),
    (ScrapeTimeoutError("x"), ApiErrorCode.SCRAPE_TIMEOUT),
    (NavigationFailedError("x"), ApiErrorCode.SCRAPE_FAILED),
    (ScraperError("x", code=ErrorCode.PARSE_FAILED), ApiErrorCode.SCRAPE_FAILED),
    (ScraperError("x"), ApiErrorCode.SCRAPE_FAILED),
    (RuntimeError("x"), ApiErrorCode.INTERNAL),
])
def test_to_api_code(error, expected):
    assert ErrorHandler.to_api_code(error) == expected
