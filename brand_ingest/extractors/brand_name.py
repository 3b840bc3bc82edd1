"""
Brand name extraction.

Priority: ``og:site_name`` metadata, then the cleaned page title, then the
hostname turned into a title-cased name.
"""

import re
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from brand_ingest.extractors.dom import clean_text, meta_content

TITLE_SUFFIX_PATTERN = re.compile(
    r"\s*[-|–—:·]\s*(?:home|homepage|shop|store|official|online|welcome)\b.*$",
    re.IGNORECASE,
)
TITLE_SEPARATOR_PATTERN = re.compile(r"\s+[-|–—·]\s+")
MAX_BRAND_NAME_LENGTH = 60
UNKNOWN_BRAND = "Unknown Brand"


def clean_title(title: str) -> str:
    """
    Strip trailing separators and marketing suffix words from a page title.

    Example:
        >>> clean_title("Acme | Official Store")
        'Acme'
        >>> clean_title("Acme Coffee - Home")
        'Acme Coffee'
    """
    text = clean_text(title)
    text = TITLE_SUFFIX_PATTERN.sub("", text).strip()
    # "Acme - Great coffee beans for everyone": keep the leading segment
    parts = TITLE_SEPARATOR_PATTERN.split(text)
    if len(parts) > 1 and parts[0]:
        text = parts[0].strip()
    return text


def name_from_hostname(url: str) -> str:
    """
    Title-case the registrable part of a hostname.

    Example:
        >>> name_from_hostname("https://www.blue-bottle.coffee.com/")
        'Blue-bottle Coffee'
    """
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        host = ""
    host = host.removeprefix("www.")
    if not host:
        return UNKNOWN_BRAND
    labels = host.split(".")
    if len(labels) > 1:
        labels = labels[:-1]
    words = [label.capitalize() for label in labels if label]
    return " ".join(words) or UNKNOWN_BRAND


def extract_brand_name(soup: BeautifulSoup, url: str) -> str:
    """Best available brand name for the page."""
    site_name = clean_text(meta_content(soup, "og:site_name", "application-name"))
    if site_name and len(site_name) <= MAX_BRAND_NAME_LENGTH:
        return site_name

    title_tag = soup.find("title")
    if title_tag is not None:
        title = clean_title(title_tag.get_text())
        if title and len(title) <= MAX_BRAND_NAME_LENGTH:
            return title

    return name_from_hostname(url)
