"""
Color palette extraction.

Primary color candidates are gathered from declared CSS custom properties,
``meta[name=theme-color]`` and computed styles of the live page (CTA button
background, link color, hero region background). The first candidate that
is neither near-white nor near-black becomes the primary color. Background
and text come straight from the computed body styles.
"""

import re
from typing import Any, Optional

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from brand_ingest.extractors.dom import meta_content
from brand_ingest.models.schemas import (
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_PRIMARY_COLOR,
    DEFAULT_TEXT_COLOR,
    BrandColors,
    normalize_color,
)
from brand_ingest.utils.logger import get_logger

logger = get_logger(__name__)

NEAR_WHITE_THRESHOLD = 240
NEAR_BLACK_THRESHOLD = 40

ROOT_BLOCK_PATTERN = re.compile(r":root\s*\{([^}]*)\}", re.IGNORECASE)
PRIMARY_VAR_PATTERN = re.compile(r"--(?:primary|brand)(?:-color)?\s*:\s*([^;]+);?", re.IGNORECASE)
ACCENT_VAR_PATTERN = re.compile(r"--accent(?:-color)?\s*:\s*([^;]+);?", re.IGNORECASE)

COMPUTED_STYLES_SCRIPT = """
() => {
  const read = (el, prop) => el ? getComputedStyle(el)[prop] : null;
  const button = document.querySelector(
    'button, a[class*="button"], a[class*="btn"], .cta, [class*="cta"]'
  );
  const link = document.querySelector('main a, a');
  const hero = document.querySelector(
    '[class*="hero"], [id*="hero"], [class*="banner"]'
  );
  return {
    bodyBackground: read(document.body, 'backgroundColor'),
    bodyColor: read(document.body, 'color'),
    buttonBackground: read(button, 'backgroundColor'),
    linkColor: read(link, 'color'),
    heroBackground: read(hero, 'backgroundColor'),
  };
}
"""


def _channels(hex_color: str) -> tuple[int, int, int]:
    value = hex_color.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def is_near_white(hex_color: str) -> bool:
    return all(c > NEAR_WHITE_THRESHOLD for c in _channels(hex_color))


def is_near_black(hex_color: str) -> bool:
    return all(c < NEAR_BLACK_THRESHOLD for c in _channels(hex_color))


def css_variable_colors(soup: BeautifulSoup) -> list[str]:
    """Primary/brand variables first, then accent variables, from ``:root`` blocks."""
    primary: list[str] = []
    accent: list[str] = []
    for style in soup.find_all("style"):
        css = style.get_text() or ""
        for block in ROOT_BLOCK_PATTERN.findall(css):
            primary.extend(m.strip() for m in PRIMARY_VAR_PATTERN.findall(block))
            accent.extend(m.strip() for m in ACCENT_VAR_PATTERN.findall(block))
    return primary + accent


def pick_primary(candidates: list[Optional[str]]) -> Optional[str]:
    """First normalizable candidate that is neither near-white nor near-black."""
    for raw in candidates:
        color = normalize_color(raw)
        if color and not is_near_white(color) and not is_near_black(color):
            return color
    return None


async def read_computed_styles(page: Optional[Page]) -> dict[str, Any]:
    """Computed colors of key elements, empty when the page is unavailable."""
    if page is None:
        return {}
    try:
        result = await page.evaluate(COMPUTED_STYLES_SCRIPT)
    except PlaywrightError as e:
        logger.debug("Computed style read failed", error=str(e))
        return {}
    return result if isinstance(result, dict) else {}


async def extract_colors(page: Optional[Page], soup: BeautifulSoup) -> BrandColors:
    """Brand palette for the page; defaults fill whatever cannot be read."""
    computed = await read_computed_styles(page)

    candidates: list[Optional[str]] = [
        *css_variable_colors(soup),
        meta_content(soup, "theme-color"),
        computed.get("buttonBackground"),
        computed.get("linkColor"),
        computed.get("heroBackground"),
    ]
    primary = pick_primary(candidates) or DEFAULT_PRIMARY_COLOR
    background = normalize_color(computed.get("bodyBackground")) or DEFAULT_BACKGROUND_COLOR
    text = normalize_color(computed.get("bodyColor")) or DEFAULT_TEXT_COLOR

    logger.debug("Colors extracted", primary=primary, background=background, text=text)
    return BrandColors(primary=primary, background=background, text=text)
