"""
Shared BeautifulSoup helpers for the extraction strategies.
"""

import json
from typing import Any, Iterator, Optional

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from brand_ingest.utils.logger import get_logger

logger = get_logger(__name__)

LAZY_IMAGE_ATTRIBUTES = ("data-src", "data-original", "data-lazy", "data-lazy-src")
PLACEHOLDER_SRC_MARKERS = ("placeholder", "blank.", "spacer.", "1x1", "loading.", "lazy.")


def parse_html(html: str) -> BeautifulSoup:
    """Parse rendered markup with the lxml parser."""
    return BeautifulSoup(html or "", "lxml")


def clean_text(value: Optional[str]) -> str:
    """Collapse whitespace runs into single spaces."""
    if not value:
        return ""
    return " ".join(value.split())


def text_of(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return clean_text(element.get_text(" ", strip=True))


def attr(element: Optional[Tag], name: str) -> str:
    """Attribute as a stripped string; list attributes (class) are joined."""
    if element is None:
        return ""
    value = element.get(name)
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(value).strip()
    return str(value).strip()


def class_and_id(element: Optional[Tag]) -> str:
    """Lower-cased class list and id, for keyword matching."""
    return f"{attr(element, 'class')} {attr(element, 'id')}".lower()


def meta_content(soup: BeautifulSoup, *keys: str) -> str:
    """First non-empty ``content`` of a meta tag matched by property or name."""
    for key in keys:
        tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
        content = attr(tag, "content")
        if content:
            return content
    return ""


def is_inside(element: Tag, selector: str) -> bool:
    """Whether an ancestor of ``element`` matches the CSS selector."""
    parent = element.parent
    if not isinstance(parent, Tag):
        return False
    try:
        return parent.css.closest(selector) is not None
    except SelectorSyntaxError as e:
        logger.debug("Selector evaluation failed", selector=selector, error=str(e))
        return False


def select_all(root: Any, selector: str) -> list[Tag]:
    try:
        return list(root.select(selector))
    except SelectorSyntaxError as e:
        logger.debug("Selector evaluation failed", selector=selector, error=str(e))
        return []


def select_first(root: Any, selector: str) -> Optional[Tag]:
    try:
        return root.select_one(selector)
    except SelectorSyntaxError as e:
        logger.debug("Selector evaluation failed", selector=selector, error=str(e))
        return None


def first_srcset_url(srcset: str) -> str:
    """First URL of a ``srcset`` attribute."""
    if not srcset:
        return ""
    first = srcset.split(",")[0].strip()
    return first.split(" ")[0].strip()


def _is_placeholder_src(src: str) -> bool:
    lowered = src.lower()
    return lowered.startswith("data:") or any(marker in lowered for marker in PLACEHOLDER_SRC_MARKERS)


def image_source(img: Optional[Tag]) -> str:
    """
    Best raw source of an ``<img>``, honoring lazy-loading attributes.

    A real ``src`` wins; placeholder or data-URI sources lose to lazy
    attributes (``data-src`` and friends, then ``data-srcset``/``srcset``).
    """
    if img is None:
        return ""
    src = attr(img, "src")
    if src and not _is_placeholder_src(src):
        return src
    for name in LAZY_IMAGE_ATTRIBUTES:
        value = attr(img, name)
        if value and not value.startswith("data:"):
            return value
    for name in ("data-srcset", "srcset"):
        value = first_srcset_url(attr(img, name))
        if value and not value.startswith("data:"):
            return value
    return "" if src.startswith("data:") else src


def int_attr(element: Optional[Tag], name: str) -> Optional[int]:
    raw = attr(element, name).lower().removesuffix("px")
    try:
        return int(float(raw)) if raw else None
    except ValueError:
        return None


def iter_json_ld(soup: BeautifulSoup) -> Iterator[dict[str, Any]]:
    """
    Yield every JSON-LD object on the page.

    Top-level arrays and ``@graph`` containers are flattened; malformed
    script blocks are skipped.
    """
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw.strip())
        except json.JSONDecodeError:
            logger.debug("Skipping malformed JSON-LD block")
            continue
        yield from _flatten_json_ld(data)


def _flatten_json_ld(data: Any) -> Iterator[dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _flatten_json_ld(item)
    elif isinstance(data, dict):
        yield data
        graph = data.get("@graph")
        if isinstance(graph, list):
            for item in graph:
                yield from _flatten_json_ld(item)


def json_ld_types(item: dict[str, Any]) -> list[str]:
    """``@type`` as a list of strings (schema.org allows both forms)."""
    value = item.get("@type")
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str)]
    return []
