"""
Logo extraction.

Candidates come from several independent sources, each with a score:

    ===========================================  =========
    Source                                       Score
    ===========================================  =========
    schema.org Organization / WebSite ``logo``   100
    ``og:logo`` or a logo-looking ``og:image``   90
    ``<img>`` elements                           rule sum
    homepage link wrapping an image              60 (+20)
    inline SVG inside a background-image box     45
    ===========================================  =========

The best candidate passing ``is_valid_logo_url`` wins; otherwise the page's
favicon link tags are used, and ``/favicon.ico`` as a last resort.
"""

import re
from typing import Any, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from brand_ingest.extractors.dom import (
    attr,
    class_and_id,
    image_source,
    is_inside,
    iter_json_ld,
    json_ld_types,
    meta_content,
    select_all,
    select_first,
)
from brand_ingest.utils.scoring import CandidatePool, ScoreCandidate, select_best
from brand_ingest.utils.url_guard import resolve_url

HEADER_REGION_SELECTOR = "header, nav, [role=banner], .header, .navbar, .site-header, .top-bar"
LOGO_WRAPPER_SELECTOR = ".logo, .brand, .site-logo, .header-logo, [class*=logo]"

FAVICON_SELECTORS = (
    'link[rel="apple-touch-icon"]',
    'link[rel="apple-touch-icon-precomposed"]',
    'link[rel="icon"][sizes="192x192"]',
    'link[rel="icon"][sizes="180x180"]',
    'link[rel="icon"][type="image/png"]',
    'link[rel="shortcut icon"]',
    'link[rel="icon"]',
)

NON_LOGO_MARKERS = ("product", "banner", "hero", "slide")
INVALID_LOGO_MARKERS = ("product", "banner", "hero", "slide", "thumbnail")
SIZE_HINT_PATTERN = re.compile(r"(?:^|[\s_-])(?:small|medium|sm|md|h-\d+|w-\d+|max-h)", re.IGNORECASE)
HUGE_SIZE_PATTERN = re.compile(r"(?:[_-]|\b)(?:1[5-9]\d\d|[2-9]\d{3})x|(?:width|w)=(?:1[5-9]\d\d|[2-9]\d{3})")

SCHEMA_LOGO_SCORE = 100
OG_LOGO_SCORE = 90
HOME_LINK_SCORE = 60
HOME_LINK_BONUS = 20
SVG_BACKGROUND_SCORE = 45


# =============================================================================
# Scoring Rules
# =============================================================================

def brand_words(brand_name: str) -> list[str]:
    return [w for w in re.split(r"\W+", (brand_name or "").lower()) if len(w) > 2]


def score_logo_image(img: Tag, brand_name: str = "") -> int:
    """
    Score an ``<img>`` as a logo candidate.

    Keyword matches on class/id/src/alt, header or logo-wrapper containment
    and size hints add points; product/banner imagery and huge sources
    subtract them.
    """
    ident = class_and_id(img)
    src = image_source(img).lower()
    alt = attr(img, "alt").lower()
    score = 0

    if "logo" in ident:
        score += 50
    if "logo" in src:
        score += 30
    if "brand" in ident:
        score += 25
    if "logo" in alt:
        score += 20
    if any(word in alt for word in brand_words(brand_name)):
        score += 15
    if is_inside(img, HEADER_REGION_SELECTOR):
        score += 40
    if is_inside(img, LOGO_WRAPPER_SELECTOR):
        score += 35
    if SIZE_HINT_PATTERN.search(ident):
        score += 5
    if any(marker in ident or marker in src for marker in NON_LOGO_MARKERS):
        score -= 30
    if HUGE_SIZE_PATTERN.search(src):
        score -= 20
    return score


def schema_logo_url(item: dict[str, Any]) -> Optional[str]:
    """``logo`` of a schema.org object: a string, ``url`` or ``@id``."""
    logo = item.get("logo")
    if isinstance(logo, str):
        return logo
    if isinstance(logo, dict):
        for key in ("url", "contentUrl", "@id"):
            value = logo.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def looks_like_logo_url(url: str) -> bool:
    lowered = url.lower()
    return "logo" in lowered or "brand" in lowered


def is_valid_logo_url(url: Optional[str]) -> bool:
    """Absolute http(s), long enough, and not product or banner imagery."""
    if not url or len(url) < 10:
        return False
    lowered = url.lower()
    if not lowered.startswith(("http://", "https://")):
        return False
    return not any(marker in lowered for marker in INVALID_LOGO_MARKERS)


def _is_homepage_link(href: str, base_url: str) -> bool:
    if href == "/":
        return True
    resolved = resolve_url(href, base_url)
    if not resolved:
        return False
    parts, base = urlsplit(resolved), urlsplit(base_url)
    return parts.netloc == base.netloc and parts.path in ("", "/") and not parts.query


# =============================================================================
# Extraction
# =============================================================================

def collect_logo_candidates(soup: BeautifulSoup, base_url: str, brand_name: str = "") -> list[ScoreCandidate[str]]:
    """All logo candidates in encounter order, with scores."""
    pool: CandidatePool[str] = CandidatePool()

    for item in iter_json_ld(soup):
        if set(json_ld_types(item)) & {"Organization", "WebSite", "Brand", "Corporation", "Store"}:
            resolved = resolve_url(schema_logo_url(item), base_url)
            if resolved:
                pool.add(resolved, SCHEMA_LOGO_SCORE, "schema")

    og_logo = meta_content(soup, "og:logo")
    if og_logo:
        resolved = resolve_url(og_logo, base_url)
        if resolved:
            pool.add(resolved, OG_LOGO_SCORE, "og:logo")
    og_image = meta_content(soup, "og:image")
    if og_image and looks_like_logo_url(og_image):
        resolved = resolve_url(og_image, base_url)
        if resolved:
            pool.add(resolved, OG_LOGO_SCORE, "og:image")

    for img in soup.find_all("img"):
        score = score_logo_image(img, brand_name)
        if score <= 0:
            continue
        resolved = resolve_url(image_source(img), base_url)
        if resolved:
            pool.add(resolved, score, "img")

    for link in soup.find_all("a", href=True):
        if not _is_homepage_link(attr(link, "href"), base_url):
            continue
        img = link.find("img")
        if img is None:
            continue
        resolved = resolve_url(image_source(img), base_url)
        if resolved:
            pool.boost(resolved, HOME_LINK_SCORE, HOME_LINK_BONUS, "home-link")

    for svg in select_all(soup, "svg[class*=logo], svg[id*=logo], [class*=logo] svg"):
        parent = svg.parent if isinstance(svg.parent, Tag) else None
        style = attr(parent, "style")
        match = re.search(r"background-image:\s*url\(['\"]?([^'\")]+)['\"]?\)", style)
        if match:
            resolved = resolve_url(match.group(1), base_url)
            if resolved:
                pool.add(resolved, SVG_BACKGROUND_SCORE, "svg")

    return pool.candidates()


def favicon_url(soup: BeautifulSoup, base_url: str) -> str:
    """Best favicon link, or ``/favicon.ico`` on the page origin."""
    for selector in FAVICON_SELECTORS:
        link = select_first(soup, selector)
        resolved = resolve_url(attr(link, "href"), base_url)
        if resolved:
            return resolved
    return resolve_url("/favicon.ico", base_url) or ""


def extract_logo(soup: BeautifulSoup, base_url: str, brand_name: str = "") -> str:
    """Logo URL for the page; never empty for a valid base URL."""
    best = select_best(collect_logo_candidates(soup, base_url, brand_name), accept=is_valid_logo_url)
    if best is not None:
        return best.value
    return favicon_url(soup, base_url)
