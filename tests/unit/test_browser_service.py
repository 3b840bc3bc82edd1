from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from brand_ingest.services.browser_service import BrowserManager, should_block_request

# =============================================================================
# Fixtures
# =============================================================================

def make_browser():
    page = MagicMock()
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.add_init_script = AsyncMock()
    context.route = AsyncMock()
    context.close = AsyncMock()
    page.context = context

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.is_connected.return_value = True
    browser.close = AsyncMock()
    return browser, context, page

@pytest.fixture
def launcher():
    def launch_side_effect(settings):
        playwright = MagicMock()
        playwright.stop = AsyncMock()
        browser, _, _ = make_browser()
        return playwright, browser

    return AsyncMock(side_effect=launch_side_effect)

@pytest.fixture
def manager(settings, launcher, fake_clock):
    return BrowserManager(settings, launcher=launcher, clock=fake_clock)

# =============================================================================
# Request filter
# =============================================================================

@pytest.mark.parametrize("url, resource_type, blocked", [
    ("https://cdn.shop.com/video.mp4", "other", True),
    ("https://cdn.shop.com/stream", "media", True),
    ("https://cdn.shop.com/hero.jpg", "image", False),
    ("https://cdn.shop.com/app.js", "script", False),
    ("http://192.168.0.1/track", "xhr", True),
    ("http://localhost:3000/api", "fetch", True),
    ("data:image/png;base64,xx", "image", False),
])
def test_should_block_request(url, resource_type, blocked):
    assert should_block_request(url, resource_type) is blocked

@pytest.mark.asyncio
async def test_route_request_aborts_or_continues():
    route = MagicMock()
    route.abort = AsyncMock()
    route.continue_ = AsyncMock()

    request = MagicMock(url="http://10.0.0.1/", resource_type="document")
    await BrowserManager._route_request(route, request)
    route.abort.assert_awaited_once()

    request = MagicMock(url="https://shop.com/", resource_type="document")
    await BrowserManager._route_request(route, request)
    route.continue_.assert_awaited_once()

# =============================================================================
# Lifecycle
# =============================================================================

@pytest.mark.asyncio
async def test_lazy_launch_and_reuse(manager, launcher):
    assert not manager.is_running

    first = await manager.get_browser()
    second = await manager.get_browser()

    assert first is second
    assert launcher.await_count == 1
    assert manager.launch_count == 1

@pytest.mark.asyncio
async def test_restart_after_max_age(manager, launcher, fake_clock, settings):
    first = await manager.get_browser()
    fake_clock.advance(settings.browser_restart_seconds)

    second = await manager.get_browser()

    assert second is not first
    first.close.assert_awaited_once()
    assert manager.launch_count == 2

@pytest.mark.asyncio
async def test_relaunch_when_disconnected(manager):
    first = await manager.get_browser()
    first.is_connected.return_value = False

    second = await manager.get_browser()

    assert second is not first
    assert manager.launch_count == 2

@pytest.mark.asyncio
async def test_page_context_configured_and_closed(manager, settings):
    async with manager.page(timeout_ms=3000) as page:
        context = page.context
        browser = await manager.get_browser()
        kwargs = browser.new_context.await_args.kwargs
        assert kwargs["user_agent"] == settings.user_agent
        assert kwargs["viewport"] == {"width": 1920, "height": 1080}
        context.set_default_timeout.assert_called_once_with(3000)
        context.add_init_script.assert_awaited_once()
        context.route.assert_awaited_once()

    context.close.assert_awaited_once()

@pytest.mark.asyncio
async def test_page_closed_when_body_raises(manager):
    with pytest.raises(RuntimeError):
        async with manager.page() as page:
            raise RuntimeError("extraction blew up")
    page.context.close.assert_awaited_once()

@pytest.mark.asyncio
async def test_close_page_swallows_playwright_errors():
    page = MagicMock()
    page.context.close = AsyncMock(side_effect=PlaywrightError("already closed"))
    await BrowserManager.close_page(page)

@pytest.mark.asyncio
async def test_close_stops_driver(manager):
    browser = await manager.get_browser()
    playwright = manager._playwright

    await manager.close()

    browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()
    assert not manager.is_running
