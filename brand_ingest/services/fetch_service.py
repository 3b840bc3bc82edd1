"""
Fetch executor: load a URL into a page handle and return rendered markup.
"""

from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from brand_ingest.models.schemas import LoadResult
from brand_ingest.utils.logger import get_logger
from brand_ingest.utils.retry import NavigationFailedError, ScrapeTimeoutError

logger = get_logger(__name__)

DEFAULT_NAVIGATION_TIMEOUT_MS = 30_000
NETWORK_IDLE_CAP_MS = 2_000


def _is_acceptable_status(status: Optional[int]) -> bool:
    return status is not None and 200 <= status < 400


async def load_html(
    page: Page,
    url: str,
    timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
    wait_for_network_idle: bool = False,
    network_idle_cap_ms: int = NETWORK_IDLE_CAP_MS,
) -> LoadResult:
    """
    Navigate ``page`` to ``url`` and return its markup and final URL.

    Args:
        page: Page handle owned by the caller.
        url: Already validated absolute URL.
        timeout_ms: Navigation timeout.
        wait_for_network_idle: Also wait (best effort) for network idle.
        network_idle_cap_ms: Upper bound for the idle wait.

    Raises:
        ScrapeTimeoutError: Navigation exceeded ``timeout_ms``.
        NavigationFailedError: No response, a 4xx/5xx status, or any other
            navigation failure.
    """
    try:
        response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        raise ScrapeTimeoutError(f"Navigation timed out after {timeout_ms}ms: {url}", cause=e) from e
    except PlaywrightError as e:
        raise NavigationFailedError(f"Navigation failed: {url}: {e.message}", cause=e) from e

    if response is None:
        raise NavigationFailedError(f"No response for {url}")
    if not _is_acceptable_status(response.status):
        raise NavigationFailedError(f"HTTP {response.status} for {url}")

    if wait_for_network_idle:
        idle_timeout = max(1, min(network_idle_cap_ms, timeout_ms))
        try:
            await page.wait_for_load_state("networkidle", timeout=idle_timeout)
        except PlaywrightError as e:
            logger.debug("Network idle wait skipped", url=url, error=str(e))

    try:
        html = await page.content()
    except PlaywrightError as e:
        raise NavigationFailedError(f"Could not read page content: {url}", cause=e) from e

    final_url = page.url or url
    logger.debug("Page loaded", url=url, final_url=final_url, status=response.status, size=len(html))
    return LoadResult(html=html, final_url=final_url)

