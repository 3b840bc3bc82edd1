import json
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest

from brand_ingest.config.settings import Settings
from brand_ingest.extractors.dom import parse_html
from brand_ingest.utils.logger import RecordingEventSink

# =============================================================================
# Settings
# =============================================================================

@pytest.fixture
def settings():
    """Real settings, isolated from any local .env file."""
    return Settings(
        _env_file=None,
        ENABLE_SEARCH_ENHANCEMENT=False,
        LOG_JSON=False,
    )

@pytest.fixture(autouse=True)
def patch_get_settings(settings):
    """Globally patch get_settings to return the test settings."""
    with patch("brand_ingest.config.settings.get_settings", return_value=settings):
        # Also patch the places where get_settings is imported directly
        with patch("brand_ingest.pipeline.orchestrator.get_settings", return_value=settings):
            with patch("brand_ingest.services.browser_service.get_settings", return_value=settings):
                with patch("brand_ingest.services.search_service.get_settings", return_value=settings):
                    with patch("brand_ingest.main.get_settings", return_value=settings):
                        yield settings

# =============================================================================
# Fake Browser
# =============================================================================

COMPUTED_STYLES = {
    "bodyBackground": "rgb(255, 255, 255)",
    "bodyColor": "rgb(34, 34, 34)",
    "buttonBackground": "rgb(0, 0, 0)",
    "linkColor": "rgb(17, 17, 17)",
    "heroBackground": None,
}

COMPUTED_FONTS = {
    "body": '"Inter", sans-serif',
    "heading": '"Playfair Display", Georgia, serif',
}


class FakeResponse:
    def __init__(self, status=200):
        self.status = status


class FakeContext:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class FakePage:
    """
    Page double serving canned markup per URL.

    Unknown URLs answer 404; an exception stored for a URL is raised by goto.
    """

    def __init__(self, site=None, styles=None, fonts=None):
        self.site = dict(site or {})
        self.styles = COMPUTED_STYLES if styles is None else styles
        self.fonts = COMPUTED_FONTS if fonts is None else fonts
        self.url = ""
        self.visited = []
        self.timeouts = []
        self.context = FakeContext()
        self._html = ""

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        self.timeouts.append(timeout)
        entry = self.site.get(url)
        if isinstance(entry, Exception):
            raise entry
        if entry is None:
            return FakeResponse(404)
        self.url = url
        self._html = entry
        return FakeResponse(200)

    async def wait_for_load_state(self, state, timeout=None):
        return None

    async def content(self):
        return self._html

    async def evaluate(self, script):
        return self.fonts if "fontFamily" in script else self.styles


class FakeBrowserManager:
    """Stands in for BrowserManager; counts scoped page acquisitions."""

    def __init__(self, page):
        self._page = page
        self.acquired = 0
        self.released = 0
        self.closed = False

    @asynccontextmanager
    async def page(self, timeout_ms=None):
        self.acquired += 1
        try:
            yield self._page
        finally:
            self.released += 1

    async def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

# =============================================================================
# HTML Fixtures
# =============================================================================

SITE_ROOT = "https://mybrand.com/"

ORGANIZATION_LD = json.dumps({
    "@context": "https://schema.org",
    "@type": "Organization",
    "name": "MyBrand",
    "logo": "https://mybrand.com/static/logo.png",
})

HOMEPAGE_HTML = f"""
<html>
<head>
  <title>MyBrand | Official Store</title>
  <meta property="og:site_name" content="MyBrand">
  <meta name="theme-color" content="#E4002B">
  <link rel="icon" href="/favicon.png">
  <script type="application/ld+json">{ORGANIZATION_LD}</script>
</head>
<body>
  <header>
    <a href="/"><img class="site-logo" src="/static/logo.png" alt="MyBrand logo"></a>
  </header>
  <section class="hero">
    <h1>Coffee for curious people</h1>
    <img class="hero-image" src="/static/hero-banner.jpg" alt="Morning pour" width="1600" height="600">
    <a class="btn btn-primary" href="/collections/all">Shop now</a>
  </section>
  <p class="tagline">Roasted fresh every week</p>
  <h2>Our single origins</h2>
  <a href="/collections/all">All coffee</a>
  <a href="/products/house-blend">House Blend</a>
  <a href="/products/dark-roast">Dark Roast</a>
  <a href="/about">About</a>
  <a href="mailto:hello@mybrand.com">Contact</a>
</body>
</html>
"""

COLLECTION_HTML = """
<html><body>
  <div class="grid">
    <div class="product-card">
      <a href="/products/house-blend"><img src="/cdn/house-blend-large.jpg" alt="House Blend"></a>
      <h3 class="product-card__title">House Blend</h3>
      <span class="price">$18.00</span>
    </div>
    <div class="product-card">
      <a href="/products/decaf"><img src="/cdn/decaf.jpg" alt="Decaf"></a>
      <h3>Decaf</h3>
      <span class="price compare-at">$20.00</span>
      <span class="price sale">$16.00</span>
    </div>
  </div>
</body></html>
"""

HOUSE_BLEND_LD = json.dumps({
    "@context": "https://schema.org",
    "@type": "Product",
    "name": "House Blend",
    "image": "https://mybrand.com/cdn/house-blend-large.jpg",
    "url": "https://mybrand.com/products/house-blend",
    "offers": {"@type": "Offer", "price": "18.00", "priceCurrency": "USD", "availability": "https://schema.org/InStock"},
})

HOUSE_BLEND_HTML = f"""
<html><head>
  <script type="application/ld+json">{HOUSE_BLEND_LD}</script>
</head><body><h1>House Blend</h1></body></html>
"""

DARK_ROAST_HTML = """
<html><body>
  <h1 class="product-title">Dark Roast</h1>
  <span itemprop="price" content="21.50">$21.50</span>
  <meta itemprop="priceCurrency" content="USD">
  <div class="product-gallery"><img src="/cdn/dark-roast-1200.jpg" alt="Dark Roast"></div>
</body></html>
"""


def site_pages():
    return {
        SITE_ROOT: HOMEPAGE_HTML,
        "https://mybrand.com/collections/all": COLLECTION_HTML,
        "https://mybrand.com/products/house-blend": HOUSE_BLEND_HTML,
        "https://mybrand.com/products/dark-roast": DARK_ROAST_HTML,
    }

# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def homepage_soup():
    return parse_html(HOMEPAGE_HTML)

@pytest.fixture
def collection_soup():
    return parse_html(COLLECTION_HTML)

@pytest.fixture
def fake_page():
    return FakePage(site_pages())

@pytest.fixture
def fake_browser(fake_page):
    return FakeBrowserManager(fake_page)

@pytest.fixture
def fake_clock():
    return FakeClock()

@pytest.fixture
def events():
    return RecordingEventSink()

@pytest.fixture
def no_sleep():
    return AsyncMock(return_value=None)
