import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from brand_ingest.models.schemas import LoadResult, ProductCandidate
from brand_ingest.services.search_service import (
    EnhancementStats,
    SearchResult,
    WebSearchService,
    decode_result_url,
    is_social_url,
    looks_like_shop_result,
    parse_search_results,
)
from brand_ingest.utils.budget import TimeBudget
from brand_ingest.utils.retry import NavigationFailedError

SHOP_PRODUCT = "https://shop.example.com/products/mug"

RESULTS_HTML = """
<html><body>
  <div class="result results_links">
    <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fshop.example.com%2Fproducts%2Fmug&rut=abc">Acme Mug</a>
    <a class="result__snippet">Great enamel mug, $24.00</a>
  </div>
  <div class="result result--ad">
    <a class="result__a" href="https://ads.example.com/">Sponsored</a>
  </div>
  <div class="result">
    <a class="result__a" href="https://www.instagram.com/acme">Acme on Instagram</a>
  </div>
  <div class="result">
    <a class="result__a" href="https://www.amazon.com/dp/B0001">Acme Mug on Amazon</a>
    <div class="result__snippet">Buy now</div>
  </div>
</body></html>
"""

SHOP_PAGE_HTML = """
<html><head><meta property="og:image" content="https://shop.example.com/cdn/mug-1200.jpg"></head>
<body>
  <section class="hero"><img class="hero" src="/cdn/lifestyle-hero.jpg" width="1600" height="800"></section>
  <h1 class="product-title">Acme Mug</h1>
  <span class="price">$24.00</span>
</body></html>
"""


def results_client(calls=None, status=200):
    def handler(request):
        if calls is not None:
            calls.append(str(request.url))
        return httpx.Response(status, text=RESULTS_HTML)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))

def fake_load_html(pages, redirects=None):
    async def load(page, url, timeout_ms=3000, **kwargs):
        if url not in pages:
            raise NavigationFailedError(f"HTTP 404 for {url}")
        return LoadResult(html=pages[url], final_url=(redirects or {}).get(url, url))

    return AsyncMock(side_effect=load)

@pytest.fixture
def service(settings):
    return WebSearchService(settings, client=results_client())

# =============================================================================
# Result parsing
# =============================================================================

def test_parse_search_results_filters_ads_and_social():
    results = parse_search_results(RESULTS_HTML)

    assert [r.url for r in results] == [SHOP_PRODUCT, "https://www.amazon.com/dp/B0001"]
    assert results[0].title == "Acme Mug"
    assert results[0].snippet == "Great enamel mug, $24.00"
    assert results[0].host == "shop.example.com"

def test_parse_search_results_limit():
    assert len(parse_search_results(RESULTS_HTML, limit=1)) == 1

@pytest.mark.parametrize("href, expected", [
    ("//duckduckgo.com/l/?uddg=https%3A%2F%2Fa.com%2Fx", "https://a.com/x"),
    ("https://a.com/y", "https://a.com/y"),
    ("/relative", None),
    ("", None),
])
def test_decode_result_url(href, expected):
    assert decode_result_url(href) == expected

def test_is_social_url():
    assert is_social_url("https://x.com/acme")
    assert is_social_url("https://m.facebook.com/acme")
    assert not is_social_url("https://box.com/acme")

def test_looks_like_shop_result():
    assert looks_like_shop_result(SearchResult(title="t", url="https://www.ebay.com/itm/1"))
    assert looks_like_shop_result(SearchResult(title="t", url="https://blog.com/", snippet="Price: 20"))
    assert not looks_like_shop_result(SearchResult(title="t", url="https://blog.com/", snippet="A review"))

# =============================================================================
# Search
# =============================================================================

@pytest.mark.asyncio
async def test_search_builds_query(settings):
    calls = []
    service = WebSearchService(settings, client=results_client(calls))

    results = await service.search("Acme mug price buy")

    assert len(results) == 2
    assert calls == [f"{settings.search_endpoint}?q=Acme+mug+price+buy"]

@pytest.mark.asyncio
async def test_search_http_error_returns_empty(settings):
    service = WebSearchService(settings, client=results_client(status=503))
    assert await service.search("anything") == []

@pytest.mark.asyncio
async def test_search_network_error_retried_then_empty(settings):
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    service = WebSearchService(settings, client=client)

    assert await service.search("anything") == []
    assert len(attempts) == 2

@pytest.mark.asyncio
async def test_disconnect_keeps_injected_client(settings):
    client = results_client()
    service = WebSearchService(settings, client=client)
    await service.disconnect()
    assert not client.is_closed

@pytest.mark.asyncio
async def test_guard_request_blocks_private_hosts():
    from brand_ingest.utils.retry import BlockedUrlError

    with pytest.raises(BlockedUrlError):
        await WebSearchService._guard_request(httpx.Request("GET", "http://127.0.0.1/"))

# =============================================================================
# Enhancement
# =============================================================================

@pytest.mark.asyncio
async def test_enhance_fills_missing_image_and_price(service):
    products = [
        ProductCandidate(title="Mug", price="$24.00", url="https://acme.com/p/mug"),
        ProductCandidate(title="Tumbler", image="https://acme.com/t.jpg", url="https://acme.com/p/tumbler"),
        ProductCandidate(title="Bottle", price="$30.00", image="https://acme.com/b.jpg", url="https://acme.com/p/bottle"),
    ]
    stats = EnhancementStats()

    with patch("brand_ingest.services.search_service.load_html", fake_load_html({SHOP_PRODUCT: SHOP_PAGE_HTML})):
        enhanced = await service.enhance_products(products, MagicMock(), "Acme", stats=stats)

    mug, tumbler, bottle = enhanced
    assert mug.image == "https://shop.example.com/cdn/mug-1200.jpg"
    assert mug.found_image and not mug.found_price
    assert mug.search_source == SHOP_PRODUCT
    assert tumbler.price == "$24.00"
    assert tumbler.found_price
    assert bottle is products[2]
    assert stats.searches_used == 2
    assert (stats.images_found, stats.prices_found) == (1, 1)
    # Inputs untouched
    assert products[0].image == ""

@pytest.mark.asyncio
async def test_enhance_respects_search_limit(service):
    products = [
        ProductCandidate(title="Mug", url="https://acme.com/p/mug"),
        ProductCandidate(title="Cup", url="https://acme.com/p/cup"),
    ]
    stats = EnhancementStats()

    with patch("brand_ingest.services.search_service.load_html", fake_load_html({SHOP_PRODUCT: SHOP_PAGE_HTML})):
        enhanced = await service.enhance_products(products, MagicMock(), "Acme", max_searches=1, stats=stats)

    assert stats.searches_used == 1
    assert enhanced[0].image and enhanced[0].price == "N/A"
    assert enhanced[1] is products[1]

@pytest.mark.asyncio
async def test_enhance_skips_unreachable_result_pages(service):
    products = [ProductCandidate(title="Mug", price="$1.00", url="https://acme.com/p/mug")]

    with patch("brand_ingest.services.search_service.load_html", fake_load_html({})):
        enhanced = await service.enhance_products(products, MagicMock(), "Acme")

    assert enhanced[0].image == ""
    assert not enhanced[0].found_image

@pytest.mark.asyncio
async def test_enhance_skips_result_pages_redirecting_to_private_hosts(service):
    products = [ProductCandidate(title="Mug", url="https://acme.com/p/mug")]
    loader = fake_load_html(
        {SHOP_PRODUCT: SHOP_PAGE_HTML},
        redirects={SHOP_PRODUCT: "http://169.254.169.254/latest/meta-data"},
    )

    with patch("brand_ingest.services.search_service.load_html", loader):
        enhanced = await service.enhance_products(products, MagicMock(), "Acme")

    loader.assert_awaited()
    assert enhanced[0].image == ""
    assert enhanced[0].price == "N/A"

@pytest.mark.asyncio
async def test_enhance_stops_when_budget_is_low(service, fake_clock):
    budget = TimeBudget.start(0.5, clock=fake_clock)
    products = [ProductCandidate(title="Mug", url="https://acme.com/p/mug")]
    stats = EnhancementStats()

    enhanced = await service.enhance_products(products, MagicMock(), "Acme", budget=budget, stats=stats)

    assert enhanced == products
    assert stats.searches_used == 0

# =============================================================================
# Brand image
# =============================================================================

@pytest.mark.asyncio
async def test_search_brand_image_uses_own_site(service):
    with patch("brand_ingest.services.search_service.load_html", fake_load_html({SHOP_PRODUCT: SHOP_PAGE_HTML})):
        hero = await service.search_brand_image("Acme", "https://www.shop.example.com/", MagicMock())

    assert hero.url == "https://shop.example.com/cdn/lifestyle-hero.jpg"
    assert hero.alt_text == "Acme brand image"

@pytest.mark.asyncio
async def test_search_brand_image_ignores_other_sites(service):
    loader = fake_load_html({SHOP_PRODUCT: SHOP_PAGE_HTML})
    with patch("brand_ingest.services.search_service.load_html", loader):
        hero = await service.search_brand_image("Acme", "https://acme.com/", MagicMock())

    assert hero is None
    loader.assert_not_awaited()
