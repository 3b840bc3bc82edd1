"""
Pipeline orchestrator using LangGraph.

Drives one ingestion run: homepage load, asset extraction, link discovery,
an optional collection page, up to four product pages and optional web-search
enhancement, each stage gated by the remaining wall-clock budget. Any stage
failure is caught once, reported through the observability port and routed
to the fallback node, so ``run()`` never raises in its default mode.

Features:
    - Stateful execution with LangGraph StateGraph
    - Conditional edges from every stage to the fallback node
    - Explicit time budget and page handle passed in the run config
    - Lazy, scoped page acquisition (closed on every exit path)
    - Strict mode for the API boundary (errors propagate)
    - Testing hooks for replacing individual stages
"""

import asyncio
import operator
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from functools import wraps
from typing import Annotated, Any, Awaitable, Callable, Literal, Optional, TypedDict
from uuid import uuid4

from bs4 import BeautifulSoup
from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph
from playwright.async_api import Page

from brand_ingest.config.settings import Settings, get_settings
from brand_ingest.extractors.brand_name import extract_brand_name
from brand_ingest.extractors.colors import extract_colors
from brand_ingest.extractors.discovery import discover_links, product_links, select_top_candidates
from brand_ingest.extractors.dom import parse_html
from brand_ingest.extractors.fonts import extract_fonts
from brand_ingest.extractors.hero_image import extract_hero_image
from brand_ingest.extractors.logo import extract_logo
from brand_ingest.extractors.normalizer import finalize_catalog, merge_and_dedupe_products
from brand_ingest.extractors.products import (
    extract_page_products,
    extract_products_from_grid,
    extract_products_from_json_ld,
)
from brand_ingest.extractors.voice import extract_voice
from brand_ingest.models.schemas import (
    BrandColors,
    BrandFonts,
    BrandProfile,
    BrandSnippets,
    ErrorCode,
    HeroImage,
    LoadResult,
    ProductCandidate,
)
from brand_ingest.pipeline.fallback import build_fallback_profile
from brand_ingest.services.browser_service import BrowserManager
from brand_ingest.services.fetch_service import load_html
from brand_ingest.services.search_service import WebSearchService
from brand_ingest.services.validation_service import normalize_brand_profile
from brand_ingest.utils.budget import TimeBudget
from brand_ingest.utils.logger import EventSink, LogContext, StructlogEventSink, get_logger
from brand_ingest.utils.retry import ErrorHandler, ScraperError, with_retries
from brand_ingest.utils.url_guard import assert_public_hostname, normalize_url

logger = get_logger(__name__)


# =============================================================================
# Constants and Configuration
# =============================================================================

COLLECTION_TIMEOUT_MS = 3000
PRODUCT_PAGE_TIMEOUT_MS = 2000
RETRY_BACKOFF_SECONDS = 1.0

STAGES = (
    "validate_url",
    "load_homepage",
    "extract_assets",
    "discover_links",
    "load_collection",
    "load_product_pages",
    "enhance_products",
    "finalize",
)


# =============================================================================
# Pipeline State Definition (TypedDict for LangGraph)
# =============================================================================

class IngestionState(TypedDict, total=False):
    """
    Graph state for one run. Models travel as plain dicts.

    ``candidates`` and ``errors`` accumulate across nodes via operator.add.
    """
    # Identifiers
    run_id: str

    # Input
    raw_url: str
    url: str

    # Homepage
    homepage_url: str

    # Assets
    brand_name: str
    logo_url: str
    hero_image: Optional[dict]
    colors: dict
    fonts: dict
    voice_hints: list[str]
    snippets: dict

    # Discovery
    product_urls: list[str]
    collection_urls: list[str]

    # Products
    candidates: Annotated[list[dict], operator.add]
    enhanced: Optional[list[dict]]

    # Output
    profile: Optional[dict]
    used_fallback: bool

    # Failure routing
    failed: bool
    failure_code: Optional[str]
    errors: Annotated[list[str], operator.add]

    # Metadata
    step_timings: dict


# =============================================================================
# Run Context (passed through the LangGraph run config)
# =============================================================================

@dataclass
class RunContext:
    """
    Per-run resources that do not belong in graph state.

    The page is acquired on first use and released by the exit stack that
    wraps the whole graph invocation.
    """
    budget: TimeBudget
    browser: BrowserManager
    stack: AsyncExitStack
    timeout_ms: int
    strict: bool = False
    documents: dict[str, BeautifulSoup] = field(default_factory=dict)
    _page: Optional[Page] = None

    async def page(self) -> Page:
        if self._page is None:
            self._page = await self.stack.enter_async_context(self.browser.page(self.timeout_ms))
        return self._page


def _run_context(config: Optional[RunnableConfig]) -> RunContext:
    return (config or {}).get("configurable", {})["run"]


# =============================================================================
# Decorators for Node Execution
# =============================================================================

def track_stage(func: Callable):
    """
    Emit stage events, record timing and absorb stage failures.

    A raised exception is caught here exactly once: it is reported as
    ``scrape_failed`` with its (code, message) and turned into a state update
    that routes to fallback. In strict runs it propagates instead.
    """
    @wraps(func)
    async def wrapper(self, state: IngestionState, config: RunnableConfig) -> dict[str, Any]:
        stage = func.__name__.strip("_").removesuffix("_node")
        run = _run_context(config)
        run_id = state.get("run_id")
        started = time.perf_counter()

        self.events.emit("stage_started", stage=stage, run_id=run_id)
        try:
            if stage in self._mock_nodes:
                result = await self._mock_nodes[stage](state)
            else:
                result = await func(self, state, config)
        except Exception as e:
            if run.strict:
                raise
            error = ErrorHandler.to_scraper_error(e)
            code = ErrorCode(error.code).value
            self.events.emit("scrape_failed", stage=stage, run_id=run_id, code=code, message=error.message)
            return {
                "failed": True,
                "failure_code": code,
                "errors": [f"{stage}: {error}"],
            }

        duration_ms = int((time.perf_counter() - started) * 1000)
        result = dict(result or {})
        step_timings = dict(state.get("step_timings", {}))
        step_timings[stage] = duration_ms
        result["step_timings"] = step_timings
        self.events.emit("stage_completed", stage=stage, run_id=run_id, duration_ms=duration_ms)
        return result

    return wrapper


# =============================================================================
# Main Pipeline Class
# =============================================================================

class IngestionPipeline:
    """
    LangGraph-based brand ingestion pipeline.

    Example:
        >>> async with IngestionPipeline() as pipeline:
        ...     profile = await pipeline.run("https://acme.com")
        ...     print(profile.name, len(profile.catalog))
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        browser: Optional[BrowserManager] = None,
        search_service: Optional[WebSearchService] = None,
        events: Optional[EventSink] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Application settings (uses defaults if not provided)
            browser: Shared browser manager (created and owned if not provided)
            search_service: Web-search enhancement client (created lazily)
            events: Observability sink (structlog by default)
            sleep: Retry backoff sleep, injectable for tests
            clock: Monotonic clock for the time budget
        """
        self.settings = settings or get_settings()
        self._owns_browser = browser is None
        self.browser = browser or BrowserManager(self.settings)
        self._owns_search = search_service is None
        self._search_service = search_service
        self.events: EventSink = events or StructlogEventSink()
        self._sleep = sleep
        self._clock = clock

        # Build graph
        self._graph = self._build_graph()

        # Testing hooks
        self._mock_nodes: dict[str, Callable] = {}

    async def __aenter__(self) -> "IngestionPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def search_service(self) -> WebSearchService:
        if self._search_service is None:
            self._search_service = WebSearchService(self.settings)
        return self._search_service

    def _build_graph(self):
        """
        Build the LangGraph state machine.

        Graph structure:
            validate_url -> load_homepage -> extract_assets -> discover_links
                -> load_collection -> load_product_pages -> enhance_products
                -> finalize -> END

            Every stage routes to ``fallback -> END`` once the state is failed.
        """
        graph = StateGraph(IngestionState)

        nodes = {
            "validate_url": self._validate_url_node,
            "load_homepage": self._load_homepage_node,
            "extract_assets": self._extract_assets_node,
            "discover_links": self._discover_links_node,
            "load_collection": self._load_collection_node,
            "load_product_pages": self._load_product_pages_node,
            "enhance_products": self._enhance_products_node,
            "finalize": self._finalize_node,
        }
        for name, node in nodes.items():
            graph.add_node(name, node)
        graph.add_node("fallback", self._fallback_node)

        graph.set_entry_point(STAGES[0])

        for current, following in zip(STAGES, STAGES[1:] + (END,)):
            graph.add_conditional_edges(
                current,
                self._route_on_failure,
                {"continue": following, "fallback": "fallback"},
            )
        graph.add_edge("fallback", END)

        return graph.compile()

    @staticmethod
    def _route_on_failure(state: IngestionState) -> Literal["continue", "fallback"]:
        return "fallback" if state.get("failed") else "continue"

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _load(self, run: RunContext, url: str, cap_ms: int, network_idle: bool = False) -> LoadResult:
        """Guarded navigation; the post-redirect URL is validated again."""
        assert_public_hostname(url)
        page = await run.page()
        loaded = await load_html(
            page,
            url,
            timeout_ms=run.budget.sub_timeout_ms(cap_ms),
            wait_for_network_idle=network_idle,
            network_idle_cap_ms=self.settings.network_idle_cap_ms,
        )
        assert_public_hostname(loaded.final_url)
        return loaded

    def _skip(self, state: IngestionState, stage: str, reason: str, **fields: Any) -> None:
        self.events.emit("stage_skipped", stage=stage, run_id=state.get("run_id"), reason=reason, **fields)

    @staticmethod
    def _merged_candidates(state: IngestionState) -> list[ProductCandidate]:
        return merge_and_dedupe_products(
            ProductCandidate.model_validate(c) for c in state.get("candidates", [])
        )

    # =========================================================================
    # Node Implementations
    # =========================================================================

    @track_stage
    async def _validate_url_node(self, state: IngestionState, config: RunnableConfig) -> dict[str, Any]:
        """Normalize the input and reject private hosts before any navigation."""
        url = normalize_url(state.get("raw_url", ""))
        assert_public_hostname(url)
        return {"url": url}

    @track_stage
    async def _load_homepage_node(self, state: IngestionState, config: RunnableConfig) -> dict[str, Any]:
        """Homepage load with retries; failure here is fatal for the run."""
        run = _run_context(config)
        url = state["url"]
        loaded = await with_retries(
            lambda: self._load(run, url, self.settings.navigation_timeout_ms, network_idle=True),
            attempts=self.settings.fetch_retry_attempts,
            backoff_seconds=RETRY_BACKOFF_SECONDS,
            sleep=self._sleep,
        )
        run.documents["homepage"] = parse_html(loaded.html)
        logger.info("Homepage loaded", url=url, final_url=loaded.final_url)
        return {"homepage_url": loaded.final_url}

    @track_stage
    async def _extract_assets_node(self, state: IngestionState, config: RunnableConfig) -> dict[str, Any]:
        """Brand tokens plus any products listed on the homepage itself."""
        run = _run_context(config)
        soup = run.documents["homepage"]
        base_url = state["homepage_url"]
        page = await run.page()

        brand_name = extract_brand_name(soup, base_url)
        hero = extract_hero_image(soup, base_url, brand_name)
        colors = await extract_colors(page, soup)
        fonts = await extract_fonts(page, soup)
        voice = extract_voice(soup)

        homepage_products = extract_products_from_json_ld(soup, base_url) + extract_products_from_grid(soup, base_url)

        return {
            "brand_name": brand_name,
            "logo_url": extract_logo(soup, base_url, brand_name),
            "hero_image": hero.model_dump() if hero else None,
            "colors": colors.model_dump(),
            "fonts": fonts.model_dump(),
            "voice_hints": voice.voice_hints,
            "snippets": voice.snippets.model_dump(),
            "candidates": [p.model_dump() for p in homepage_products],
        }

    @track_stage
    async def _discover_links_node(self, state: IngestionState, config: RunnableConfig) -> dict[str, Any]:
        run = _run_context(config)
        candidates = discover_links(run.documents["homepage"], state["homepage_url"])
        products, collections = select_top_candidates(
            candidates,
            max_products=self.settings.max_product_pages,
            max_collections=self.settings.max_collections,
        )
        logger.debug("Links discovered", products=len(products), collections=len(collections))
        return {
            "product_urls": [c.url for c in products],
            "collection_urls": [c.url for c in collections],
        }

    @track_stage
    async def _load_collection_node(self, state: IngestionState, config: RunnableConfig) -> dict[str, Any]:
        """Optional listing page: grid products and more product links."""
        run = _run_context(config)
        collections = state.get("collection_urls", [])
        if not collections:
            self._skip(state, "load_collection", "no_collection")
            return {}
        reserve = self.settings.collection_reserve_seconds
        if not run.budget.has_at_least(reserve):
            self._skip(state, "load_collection", "budget", remaining=round(run.budget.remaining(), 2))
            return {}

        url = collections[0]
        try:
            loaded = await self._load(run, url, COLLECTION_TIMEOUT_MS)
        except ScraperError as e:
            logger.warning("Collection page skipped", url=url, error=str(e))
            return {"errors": [f"load_collection: {e}"]}

        soup = parse_html(loaded.html)
        found = extract_products_from_json_ld(soup, loaded.final_url) + extract_products_from_grid(soup, loaded.final_url)
        more_links = product_links(soup, loaded.final_url, limit=self.settings.max_collection_links)
        return {
            "candidates": [p.model_dump() for p in found],
            "product_urls": state.get("product_urls", []) + more_links,
        }

    @track_stage
    async def _load_product_pages_node(self, state: IngestionState, config: RunnableConfig) -> dict[str, Any]:
        """Up to ``max_product_pages`` detail pages while the budget allows."""
        run = _run_context(config)
        urls = list(dict.fromkeys(state.get("product_urls", [])))[: self.settings.max_product_pages]
        reserve = self.settings.product_page_reserve_seconds

        found: list[ProductCandidate] = []
        errors: list[str] = []
        for index, url in enumerate(urls):
            if not run.budget.has_at_least(reserve):
                self._skip(state, "load_product_pages", "budget", loaded=index, remaining_urls=len(urls) - index)
                break
            try:
                loaded = await self._load(run, url, PRODUCT_PAGE_TIMEOUT_MS)
            except ScraperError as e:
                logger.debug("Product page skipped", url=url, error=str(e))
                errors.append(f"load_product_pages: {e}")
                continue
            found.extend(extract_page_products(parse_html(loaded.html), loaded.final_url))

        return {"candidates": [p.model_dump() for p in found], "errors": errors}

    @track_stage
    async def _enhance_products_node(self, state: IngestionState, config: RunnableConfig) -> dict[str, Any]:
        """Fill missing images/prices via web search; never fails the run."""
        run = _run_context(config)
        merged = self._merged_candidates(state)[: self.settings.max_catalog_size]

        if not self.settings.enable_search_enhancement:
            self._skip(state, "enhance_products", "disabled")
            return {}
        if not run.budget.has_at_least(self.settings.enhancement_reserve_seconds):
            self._skip(state, "enhance_products", "budget", remaining=round(run.budget.remaining(), 2))
            return {}

        update: dict[str, Any] = {}
        page = await run.page()
        brand_name = state.get("brand_name", "")
        try:
            if any(p.needs_image or p.needs_price for p in merged):
                enhanced = await self.search_service.enhance_products(
                    merged,
                    page,
                    brand_name,
                    max_searches=self.settings.max_searches,
                    budget=run.budget,
                )
                update["enhanced"] = [p.model_dump() for p in enhanced]

            needs_brand_image = not state.get("hero_image") and not merged
            if needs_brand_image and run.budget.has_at_least(self.settings.enhancement_reserve_seconds):
                hero = await self.search_service.search_brand_image(
                    brand_name, state.get("homepage_url", ""), page, budget=run.budget
                )
                if hero is not None:
                    update["hero_image"] = hero.model_dump()
        except Exception as e:
            logger.warning("Web search enhancement failed, keeping original products", error=str(e))
            return {"errors": [f"enhance_products: {e}"]}

        if not update:
            self._skip(state, "enhance_products", "nothing_missing")
        return update

    @track_stage
    async def _finalize_node(self, state: IngestionState, config: RunnableConfig) -> dict[str, Any]:
        """Assemble the profile and pass it through the boundary normalizer."""
        if state.get("enhanced") is not None:
            candidates = [ProductCandidate.model_validate(c) for c in state["enhanced"]]
        else:
            candidates = self._merged_candidates(state)

        hero = state.get("hero_image")
        profile = BrandProfile(
            name=state.get("brand_name") or "Unknown Brand",
            website=state.get("homepage_url") or state["url"],
            logo_url=state.get("logo_url", ""),
            hero_image=HeroImage.model_validate(hero) if hero else None,
            colors=BrandColors.model_validate(state.get("colors", {})),
            fonts=BrandFonts.model_validate(state.get("fonts", {})),
            voice_hints=state.get("voice_hints", []),
            snippets=BrandSnippets.model_validate(state.get("snippets", {})),
            catalog=finalize_catalog(candidates, self.settings.max_catalog_size),
        )
        return {"profile": normalize_brand_profile(profile).model_dump(), "used_fallback": False}

    async def _fallback_node(self, state: IngestionState) -> dict[str, Any]:
        """Terminal node for failed runs: minimal profile from the raw input."""
        profile = build_fallback_profile(state.get("raw_url", ""))
        logger.warning(
            "Using fallback profile",
            run_id=state.get("run_id"),
            code=state.get("failure_code"),
            errors=state.get("errors", []),
        )
        return {"profile": profile.model_dump(), "used_fallback": True}

    # =========================================================================
    # Execution
    # =========================================================================

    async def run(self, url: str, strict: bool = False) -> BrandProfile:
        """
        Ingest one website.

        Args:
            url: Raw user input; normalized and validated here.
            strict: Propagate the first stage failure instead of falling back.

        Returns:
            The scraped profile, or the fallback profile when not strict.

        Raises:
            ScraperError: Only in strict mode.
        """
        run_id = uuid4().hex
        budget = TimeBudget.start(self.settings.total_budget_seconds, clock=self._clock)
        initial_state: IngestionState = {
            "run_id": run_id,
            "raw_url": url,
            "candidates": [],
            "errors": [],
            "failed": False,
            "step_timings": {},
        }

        with LogContext(run_id=run_id, url=url):
            try:
                async with AsyncExitStack() as stack:
                    run = RunContext(
                        budget=budget,
                        browser=self.browser,
                        stack=stack,
                        timeout_ms=self.settings.navigation_timeout_ms,
                        strict=strict,
                    )
                    final_state = await self._graph.ainvoke(
                        initial_state, config={"configurable": {"run": run}}
                    )
                profile = BrandProfile.model_validate(final_state["profile"])
                used_fallback = bool(final_state.get("used_fallback"))
            except Exception as e:
                if strict:
                    raise
                error = ErrorHandler.to_scraper_error(e)
                self.events.emit(
                    "scrape_failed",
                    stage="pipeline",
                    run_id=run_id,
                    code=ErrorCode(error.code).value,
                    message=error.message,
                )
                profile, used_fallback = build_fallback_profile(url), True

            self.events.emit(
                "ingest_completed",
                run_id=run_id,
                name=profile.name,
                catalog_size=len(profile.catalog),
                fallback=used_fallback,
                elapsed_ms=int(budget.elapsed() * 1000),
            )
            return profile

    # =========================================================================
    # Testing Hooks
    # =========================================================================

    def mock_node(self, node_name: str, mock_func: Callable) -> None:
        """
        Register a mock function for a stage (testing).

        Args:
            node_name: Stage name, e.g. ``"load_homepage"``
            mock_func: Async function taking the state, returning an update
        """
        if node_name not in STAGES:
            raise ValueError(f"Unknown stage: {node_name}")
        self._mock_nodes[node_name] = mock_func

    def clear_mocks(self) -> None:
        """Clear all registered mocks."""
        self._mock_nodes.clear()

    # =========================================================================
    # Cleanup
    # =========================================================================

    async def close(self) -> None:
        """Close owned services and the browser."""
        if self._search_service is not None and self._owns_search:
            await self._search_service.disconnect()
        if self._owns_browser:
            await self.browser.close()


# =============================================================================
# Convenience Functions
# =============================================================================

_default_pipeline: Optional[IngestionPipeline] = None


def get_pipeline() -> IngestionPipeline:
    """Process-wide pipeline sharing one browser across requests."""
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = IngestionPipeline()
    return _default_pipeline


async def shutdown() -> None:
    """Close the shared pipeline (and its browser)."""
    global _default_pipeline
    if _default_pipeline is not None:
        await _default_pipeline.close()
        _default_pipeline = None


async def ingest(url: str, settings: Optional[Settings] = None) -> BrandProfile:
    """
    Ingest a brand website. Never raises.

    Without ``settings`` the shared pipeline is used; with them a dedicated
    pipeline is created and closed afterwards.

    Example:
        >>> profile = await ingest("https://acme.com")
        >>> profile.colors.primary
        '#E4002B'
    """
    try:
        if settings is None:
            return await get_pipeline().run(url)
        async with IngestionPipeline(settings=settings) as pipeline:
            return await pipeline.run(url)
    except Exception as e:
        logger.error("Ingest failed outside the pipeline", url=url, error=str(e))
        return build_fallback_profile(url)
