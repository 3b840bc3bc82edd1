"""
Typography extraction from computed ``font-family`` stacks.
"""

import re
from typing import Optional
from urllib.parse import quote_plus

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from brand_ingest.extractors.dom import attr, select_all
from brand_ingest.models.schemas import DEFAULT_FONT_STACK, BrandFonts
from brand_ingest.utils.logger import get_logger

logger = get_logger(__name__)

SYSTEM_FONTS = frozenset({
    "arial", "helvetica", "helvetica neue", "times", "times new roman",
    "courier", "courier new", "verdana", "georgia", "palatino", "garamond",
    "bookman", "comic sans ms", "trebuchet ms", "impact", "sans-serif",
    "serif", "monospace", "system-ui", "-apple-system", "blinkmacsystemfont",
    "segoe ui", "ui-sans-serif", "ui-serif", "cursive", "fantasy", "inherit",
})

GOOGLE_FONTS = frozenset({
    "roboto", "open sans", "lato", "montserrat", "poppins", "inter",
    "raleway", "oswald", "nunito", "playfair display", "merriweather",
    "source sans pro", "work sans", "rubik", "dm sans", "karla", "mulish",
    "noto sans", "pt sans", "libre baskerville", "cormorant garamond",
})

GOOGLE_FONTS_LINK_PATTERN = re.compile(r"fonts\.googleapis\.com/css", re.IGNORECASE)

FONT_FAMILY_SCRIPT = """
() => {
  const family = (el) => el ? getComputedStyle(el).fontFamily : null;
  return {
    body: family(document.body),
    heading: family(document.querySelector('h1') || document.querySelector('h2')),
  };
}
"""


def first_custom_font(stack: Optional[str]) -> Optional[str]:
    """
    First non-system font of a ``font-family`` stack, title-cased.

    Example:
        >>> first_custom_font('"open sans", Arial, sans-serif')
        'Open Sans'
    """
    if not stack:
        return None
    for part in stack.split(","):
        name = part.strip().strip("'\"").strip().lower()
        if name and name not in SYSTEM_FONTS:
            return " ".join(word.capitalize() for word in name.split())
    return None


def detect_font_source(soup: BeautifulSoup, families: list[str]) -> Optional[str]:
    """Stylesheet serving the fonts: a Google Fonts link, or a css2 URL for known families."""
    for link in select_all(soup, "link[href]"):
        href = attr(link, "href")
        if GOOGLE_FONTS_LINK_PATTERN.search(href):
            return f"https:{href}" if href.startswith("//") else href

    known = [f for f in dict.fromkeys(families) if f and f.lower() in GOOGLE_FONTS]
    if not known:
        return None
    query = "&".join(f"family={quote_plus(name)}:wght@400;700" for name in known)
    return f"https://fonts.googleapis.com/css2?{query}&display=swap"


async def extract_fonts(page: Optional[Page], soup: Optional[BeautifulSoup] = None) -> BrandFonts:
    """Heading and body fonts; heading falls back to body, both to a default stack."""
    stacks: dict = {}
    if page is not None:
        try:
            result = await page.evaluate(FONT_FAMILY_SCRIPT)
            stacks = result if isinstance(result, dict) else {}
        except PlaywrightError as e:
            logger.debug("Computed font read failed", error=str(e))

    body = first_custom_font(stacks.get("body"))
    heading = first_custom_font(stacks.get("heading")) or body

    source_url = None
    if soup is not None:
        source_url = detect_font_source(soup, [f for f in (heading, body) if f])

    return BrandFonts(
        heading=heading or DEFAULT_FONT_STACK,
        body=body or DEFAULT_FONT_STACK,
        source_url=source_url,
    )
