"""
API boundary for brand ingestion.

Framework-agnostic helpers a web adapter calls for ``POST /brand/ingest``:
request validation, the strict ingest entry point, scraper-to-API error
mapping, error body formatting, HTTP status codes and a per-client token
bucket.

Example:
    >>> url = validate_ingest_request({"url": "https://acme.com"})
    >>> try:
    ...     profile = await ingest_brand(url)
    ... except ApiError as e:
    ...     body, status = format_error_response(e), status_code_for(e.code)
"""

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ValidationError, field_validator

from brand_ingest.models.schemas import ApiErrorCode, BrandProfile, ErrorCode
from brand_ingest.utils.logger import get_logger
from brand_ingest.utils.retry import ErrorHandler, ScraperError

if TYPE_CHECKING:
    from brand_ingest.pipeline.orchestrator import IngestionPipeline

logger = get_logger(__name__)

# =============================================================================
# Errors
# =============================================================================

class ApiError(Exception):
    """Error surfaced to API clients."""

    def __init__(self, code: ApiErrorCode, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.code = ApiErrorCode(code)
        self.message = message
        self.cause = cause


API_MESSAGES: dict[ApiErrorCode, str] = {
    ApiErrorCode.INVALID_URL: "Invalid URL format",
    ApiErrorCode.BLOCKED_URL: "URL is blocked (private/localhost IP addresses not allowed)",
    ApiErrorCode.SCRAPE_TIMEOUT: "Scraping timed out. The website took too long to respond.",
    ApiErrorCode.SCRAPE_FAILED: "Failed to scrape the website. Please try again or use a different URL.",
    ApiErrorCode.RATE_LIMITED: "Too many requests. Please try again later.",
    ApiErrorCode.INTERNAL: "An unexpected error occurred",
}

STATUS_CODES: dict[ApiErrorCode, int] = {
    ApiErrorCode.INVALID_URL: 400,
    ApiErrorCode.BLOCKED_URL: 403,
    ApiErrorCode.SCRAPE_TIMEOUT: 504,
    ApiErrorCode.SCRAPE_FAILED: 502,
    ApiErrorCode.RATE_LIMITED: 429,
    ApiErrorCode.INTERNAL: 500,
}


# =============================================================================
# Request Validation
# =============================================================================

class IngestRequest(BaseModel):
    """Request body: ``{"url": "..."}``."""

    url: str

    @field_validator("url", mode="before")
    @classmethod
    def validate_url(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("URL is required")
        v = v.strip()
        parts = urlsplit(v)
        if not parts.scheme or not parts.netloc:
            raise ValueError("Invalid URL format")
        return v


def validate_ingest_request(payload: Any) -> str:
    """
    Validate a request body and return its URL.

    Raises:
        ApiError: ``INVALID_URL`` for a missing, empty or malformed URL, or a
            body that is not an object.
    """
    if not isinstance(payload, dict):
        raise ApiError(ApiErrorCode.INVALID_URL, "Invalid request body")
    try:
        return IngestRequest.model_validate(payload).url
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        message = str(first.get("msg", "Invalid URL")).removeprefix("Value error, ")
        raise ApiError(ApiErrorCode.INVALID_URL, message, cause=e) from e


# =============================================================================
# Error Mapping
# =============================================================================

def map_scraper_error(error: ScraperError) -> ApiError:
    """Translate a scraper failure into its client-facing error."""
    code = ErrorHandler.to_api_code(error)
    if code is ApiErrorCode.INTERNAL:
        code = ApiErrorCode.SCRAPE_FAILED
    return ApiError(code, API_MESSAGES[code], cause=error)


def format_error_response(error: BaseException) -> dict[str, dict[str, str]]:
    """
    Error body for any exception. Unknown errors become ``INTERNAL`` with a
    generic message; the original text is only logged.
    """
    if isinstance(error, ApiError):
        return {"error": {"code": error.code.value, "message": error.message}}
    logger.error("Unexpected error formatted as INTERNAL", error_type=type(error).__name__, error=str(error))
    return {"error": {"code": ApiErrorCode.INTERNAL.value, "message": API_MESSAGES[ApiErrorCode.INTERNAL]}}


def status_code_for(code: Any) -> int:
    """HTTP status for an API error code; unknown codes map to 500."""
    try:
        return STATUS_CODES[ApiErrorCode(code)]
    except ValueError:
        return 500


# =============================================================================
# Rate Limiting
# =============================================================================

@dataclass
class _Bucket:
    tokens: float
    last_refill: float


class RateLimiter:
    """
    In-memory token bucket keyed by client (e.g. IP address).

    Example:
        >>> limiter = RateLimiter(max_tokens=10, refill_rate=10 / 60)
        >>> limiter.check("203.0.113.7")
        True
    """

    def __init__(
        self,
        max_tokens: int = 10,
        refill_rate: float = 10 / 60,
        stale_after_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_tokens = max_tokens
        self.refill_rate = refill_rate
        self.stale_after_seconds = stale_after_seconds
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}

    def check(self, key: str) -> bool:
        """Consume one token for ``key``; False when the bucket is empty."""
        now = self._clock()
        bucket = self._buckets.get(key)
        if bucket is None:
            self._buckets[key] = _Bucket(tokens=self.max_tokens - 1, last_refill=now)
            return True

        elapsed = now - bucket.last_refill
        bucket.tokens = min(self.max_tokens, bucket.tokens + elapsed * self.refill_rate)
        bucket.last_refill = now
        if bucket.tokens >= 1:
            bucket.tokens -= 1
            return True
        return False

    def enforce(self, key: str) -> None:
        """Like ``check`` but raises ``RATE_LIMITED``."""
        if not self.check(key):
            raise ApiError(ApiErrorCode.RATE_LIMITED, API_MESSAGES[ApiErrorCode.RATE_LIMITED])

    def cleanup(self) -> int:
        """Drop buckets untouched for longer than the stale window."""
        now = self._clock()
        stale = [k for k, b in self._buckets.items() if now - b.last_refill > self.stale_after_seconds]
        for key in stale:
            del self._buckets[key]
        return len(stale)

    def reset(self) -> None:
        self._buckets.clear()


# =============================================================================
# Strict Ingest Entry Point
# =============================================================================

async def ingest_brand(
    url: str,
    pipeline: Optional["IngestionPipeline"] = None,
    timeout_seconds: Optional[float] = None,
) -> BrandProfile:
    """
    Strict ingestion for the API boundary.

    Unlike ``ingest()``, scraper failures are raised as ``ApiError`` rather
    than degraded to a fallback profile. The request timeout defaults to the
    pipeline's ``request_timeout_seconds`` setting.

    Raises:
        ApiError: Mapped scraper failure, ``SCRAPE_TIMEOUT`` when the request
            exceeds ``timeout_seconds``, or ``INTERNAL`` for anything else.
    """
    owns_pipeline = pipeline is None
    if pipeline is None:
        from brand_ingest.pipeline.orchestrator import IngestionPipeline
        pipeline = IngestionPipeline()
    if timeout_seconds is None:
        timeout_seconds = pipeline.settings.request_timeout_seconds

    try:
        return await asyncio.wait_for(pipeline.run(url, strict=True), timeout=timeout_seconds)
    except asyncio.TimeoutError as e:
        raise ApiError(
            ApiErrorCode.SCRAPE_TIMEOUT, "Request timed out. Please try again.", cause=e
        ) from e
    except ScraperError as e:
        logger.warning("Ingest failed", url=url, code=ErrorCode(e.code).value, message=e.message)
        raise map_scraper_error(e) from e
    except ApiError:
        raise
    except Exception as e:
        logger.exception("Unexpected ingest error", url=url)
        raise ApiError(ApiErrorCode.INTERNAL, API_MESSAGES[ApiErrorCode.INTERNAL], cause=e) from e
    finally:
        if owns_pipeline:
            await pipeline.close()
