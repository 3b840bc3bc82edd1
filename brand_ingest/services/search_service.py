"""
Web-search enhancement service.

Fills missing product images and prices by querying a public search
engine's HTML results and passing each promising result page back through
the single-product DOM extractors. Everything here is best effort: failures
are logged and swallowed, and the original product data is kept.

Features:
    - httpx AsyncClient with connection limits and per-request SSRF guard
    - DuckDuckGo HTML result parsing (redirect link decoding)
    - Social-media result filtering, e-commerce preference for prices
    - Shared search budget across image and price lookups
    - Brand image fallback from the brand's own site

Example:
    >>> async with WebSearchService() as search:
    ...     products = await search.enhance_products(products, page, "Acme")
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs, quote_plus, urlsplit

import httpx
from bs4 import BeautifulSoup
from playwright.async_api import Page
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from brand_ingest.config.settings import Settings, get_settings
from brand_ingest.extractors.dom import attr, parse_html, select_all, select_first, text_of
from brand_ingest.extractors.hero_image import extract_hero_image
from brand_ingest.extractors.normalizer import is_valid_image_url
from brand_ingest.extractors.products import extract_best_product_image, extract_price
from brand_ingest.models.schemas import PRICE_UNKNOWN, HeroImage, ProductCandidate
from brand_ingest.services.fetch_service import load_html
from brand_ingest.utils.budget import TimeBudget
from brand_ingest.utils.logger import get_logger
from brand_ingest.utils.retry import ScraperError
from brand_ingest.utils.url_guard import assert_public_hostname, hostname_of

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

SOCIAL_DOMAINS = ("youtube.", "facebook.", "twitter.", "instagram.", "pinterest.", "tiktok.", "linkedin.")
ECOMMERCE_DOMAINS = ("amazon.", "ebay.", "walmart.", "target.", "shopify.", "etsy.", "bestbuy.")

RESULT_PAGES_PER_SEARCH = 3
RESULT_PAGE_TIMEOUT_MS = 3000
MIN_SECONDS_PER_LOOKUP = 1.0


# =============================================================================
# Data Models for Search Results
# =============================================================================

class SearchResult(BaseModel):
    """One organic search result."""
    title: str
    url: str
    snippet: str = ""

    @property
    def host(self) -> str:
        return hostname_of(self.url)


class EnhancementStats(BaseModel):
    """What one enhancement pass did."""
    searches_used: int = 0
    images_found: int = 0
    prices_found: int = 0
    errors: list[str] = Field(default_factory=list)


# =============================================================================
# Result Parsing
# =============================================================================

def decode_result_url(href: str) -> Optional[str]:
    """Unwrap DuckDuckGo ``/l/?uddg=`` redirect links."""
    if not href:
        return None
    if href.startswith("//"):
        href = f"https:{href}"
    parts = urlsplit(href)
    if "uddg" in (parts.query or ""):
        target = parse_qs(parts.query).get("uddg", [None])[0]
        return target or None
    if parts.scheme in ("http", "https"):
        return href
    return None


def is_social_url(url: str) -> bool:
    host = hostname_of(url)
    return host in ("x.com", "t.co") or host.endswith(".x.com") or any(d in host for d in SOCIAL_DOMAINS)


def looks_like_shop_result(result: SearchResult) -> bool:
    """E-commerce host, or a snippet that mentions a price."""
    snippet = result.snippet.lower()
    return any(d in result.host for d in ECOMMERCE_DOMAINS) or "price" in snippet or "$" in snippet


def parse_search_results(html: str, limit: int = 5) -> list[SearchResult]:
    """Organic results from DuckDuckGo HTML markup, social sites excluded."""
    soup = parse_html(html)
    results: list[SearchResult] = []
    for block in select_all(soup, ".result"):
        if "result--ad" in attr(block, "class"):
            continue
        link = select_first(block, ".result__a")
        url = decode_result_url(attr(link, "href"))
        if not url or is_social_url(url):
            continue
        results.append(SearchResult(
            title=text_of(link),
            url=url,
            snippet=text_of(select_first(block, ".result__snippet")),
        ))
        if len(results) >= limit:
            break
    return results


# =============================================================================
# Service
# =============================================================================

class WebSearchService:
    """Search engine client plus the product enhancement workflow."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> None:
        """Initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.search_timeout_seconds, connect=3.0),
                limits=httpx.Limits(max_keepalive_connections=2, max_connections=4),
                headers={"User-Agent": self.settings.user_agent},
                follow_redirects=True,
                event_hooks={"request": [self._guard_request]},
            )
            self._owns_client = True

    async def disconnect(self) -> None:
        """Close HTTP client."""
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "WebSearchService":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    @staticmethod
    async def _guard_request(request: httpx.Request) -> None:
        # Runs for redirects too
        assert_public_hostname(str(request.url))

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        reraise=True,
    )
    async def _fetch_results_page(self, query: str) -> str:
        await self.connect()
        url = f"{self.settings.search_endpoint}?q={quote_plus(query)}"
        response = await self._client.get(url)
        response.raise_for_status()
        return response.text

    async def search(self, query: str, limit: Optional[int] = None) -> list[SearchResult]:
        """Run one query; errors yield an empty list."""
        limit = limit or self.settings.max_search_results
        try:
            html = await self._fetch_results_page(query)
        except (httpx.HTTPError, ScraperError) as e:
            logger.warning("Search failed", query=query, error=str(e))
            return []
        results = parse_search_results(html, limit)
        logger.debug("Search completed", query=query, results=len(results))
        return results

    async def _load_result(self, page: Page, url: str, budget: Optional[TimeBudget]) -> Optional[BeautifulSoup]:
        timeout = budget.sub_timeout_ms(RESULT_PAGE_TIMEOUT_MS) if budget else RESULT_PAGE_TIMEOUT_MS
        try:
            assert_public_hostname(url)
            loaded = await load_html(page, url, timeout_ms=timeout)
            assert_public_hostname(loaded.final_url)
        except ScraperError as e:
            logger.debug("Result page skipped", url=url, error=str(e))
            return None
        return parse_html(loaded.html)

    # -------------------------------------------------------------------------
    # Enhancement
    # -------------------------------------------------------------------------

    async def _find_image(
        self, product: ProductCandidate, brand_name: str, page: Page, budget: Optional[TimeBudget]
    ) -> Optional[tuple[str, str]]:
        results = await self.search(f"{brand_name} {product.title} product image")
        for result in results[:RESULT_PAGES_PER_SEARCH]:
            if budget and not budget.has_at_least(MIN_SECONDS_PER_LOOKUP):
                break
            soup = await self._load_result(page, result.url, budget)
            if soup is None:
                continue
            image = extract_best_product_image(soup, result.url)
            if is_valid_image_url(image):
                return image, result.url
        return None

    async def _find_price(
        self, product: ProductCandidate, brand_name: str, page: Page, budget: Optional[TimeBudget]
    ) -> Optional[tuple[str, str]]:
        results = [r for r in await self.search(f"{brand_name} {product.title} price buy") if looks_like_shop_result(r)]
        for result in results[:RESULT_PAGES_PER_SEARCH]:
            if budget and not budget.has_at_least(MIN_SECONDS_PER_LOOKUP):
                break
            soup = await self._load_result(page, result.url, budget)
            if soup is None:
                continue
            price = extract_price(soup)
            if price and price != PRICE_UNKNOWN:
                return price, result.url
        return None

    async def enhance_products(
        self,
        products: list[ProductCandidate],
        page: Page,
        brand_name: str,
        max_searches: Optional[int] = None,
        budget: Optional[TimeBudget] = None,
        stats: Optional[EnhancementStats] = None,
    ) -> list[ProductCandidate]:
        """
        Fill missing images and prices, spending at most ``max_searches``
        searches in total (one per missing field per product).

        Only empty fields are filled; the input list is not modified.
        """
        limit = self.settings.max_searches if max_searches is None else max_searches
        stats = stats if stats is not None else EnhancementStats()
        enhanced: list[ProductCandidate] = []

        for product in products:
            updates: dict = {}
            try:
                if product.needs_image and stats.searches_used < limit and self._has_time(budget):
                    stats.searches_used += 1
                    found = await self._find_image(product, brand_name, page, budget)
                    if found:
                        updates.update(image=found[0], found_image=True, search_source=found[1])
                        stats.images_found += 1
                if product.needs_price and stats.searches_used < limit and self._has_time(budget):
                    stats.searches_used += 1
                    found = await self._find_price(product, brand_name, page, budget)
                    if found:
                        updates.update(price=found[0], found_price=True, search_source=found[1])
                        stats.prices_found += 1
            except (ScraperError, httpx.HTTPError) as e:
                stats.errors.append(str(e))
                logger.warning("Product enhancement failed", title=product.title, error=str(e))
            enhanced.append(product.model_copy(update=updates) if updates else product)

        logger.info(
            "Enhancement finished",
            searches_used=stats.searches_used,
            images_found=stats.images_found,
            prices_found=stats.prices_found,
        )
        return enhanced

    async def search_brand_image(
        self,
        brand_name: str,
        website: str,
        page: Page,
        budget: Optional[TimeBudget] = None,
    ) -> Optional[HeroImage]:
        """Hero-like image from the brand's own site, found through search."""
        site_host = hostname_of(website).removeprefix("www.")
        results = await self.search(f"{brand_name} store products lifestyle -logo", limit=8)
        own_site = [r for r in results if r.host.removeprefix("www.").endswith(site_host)] if site_host else []

        for result in own_site[:RESULT_PAGES_PER_SEARCH]:
            if not self._has_time(budget):
                break
            soup = await self._load_result(page, result.url, budget)
            if soup is None:
                continue
            hero = extract_hero_image(soup, result.url, brand_name)
            if hero is not None:
                return HeroImage(url=hero.url, alt_text=f"{brand_name} brand image")
        return None

    @staticmethod
    def _has_time(budget: Optional[TimeBudget]) -> bool:
        return budget is None or budget.has_at_least(MIN_SECONDS_PER_LOOKUP)
