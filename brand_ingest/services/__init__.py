"""
Services package for the brand ingestion pipeline.

Services:
    - BrowserManager: Shared headless browser and scoped page handles
    - load_html: Guarded page navigation returning rendered markup
    - WebSearchService: Search-based image/price enhancement
    - normalize_brand_profile: Boundary normalizer for outgoing profiles
    - ingest_brand: Strict entry point and API error mapping
"""

from brand_ingest.services.browser_service import BrowserManager, launch_chromium, should_block_request
from brand_ingest.services.fetch_service import load_html
from brand_ingest.services.ingest_service import (
    ApiError,
    RateLimiter,
    format_error_response,
    ingest_brand,
    map_scraper_error,
    status_code_for,
    validate_ingest_request,
)
from brand_ingest.services.search_service import SearchResult, WebSearchService, parse_search_results
from brand_ingest.services.validation_service import ValidationError, normalize_brand_profile

__all__ = [
    # Browser
    "BrowserManager",
    "launch_chromium",
    "should_block_request",
    # Fetch
    "load_html",
    # Search
    "WebSearchService",
    "SearchResult",
    "parse_search_results",
    # Validation
    "normalize_brand_profile",
    "ValidationError",
    # API boundary
    "ApiError",
    "RateLimiter",
    "ingest_brand",
    "validate_ingest_request",
    "map_scraper_error",
    "format_error_response",
    "status_code_for",
]
