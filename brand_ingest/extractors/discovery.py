"""
Link discovery: find product and collection pages worth loading.

Structured data is scanned first (highest score), then every same-origin
anchor is classified by path keyword and scored by specificity.
"""

from typing import Any, Iterable
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup

from brand_ingest.extractors.dom import attr, iter_json_ld, json_ld_types, text_of
from brand_ingest.models.schemas import CandidateType, UrlCandidate
from brand_ingest.utils.url_guard import is_same_origin, resolve_url

STRUCTURED_DATA_SCORE = 10.0

PRODUCT_PATH_MARKERS = ("/product/", "/products/", "/p/")
COLLECTION_PATH_MARKERS = ("/collection", "/category", "/categories", "/shop", "/catalog")


# =============================================================================
# Scoring Rules
# =============================================================================

def classify_path(path: str) -> CandidateType | None:
    lowered = path.lower()
    if any(marker in lowered for marker in PRODUCT_PATH_MARKERS):
        return CandidateType.PRODUCT
    if any(marker in lowered for marker in COLLECTION_PATH_MARKERS):
        return CandidateType.COLLECTION
    return None


def score_product_link(path: str, text: str) -> float:
    """
    Base 1; ``/products/`` +3 (else ``/product/`` +2); short link text +1;
    deep paths (more than four segments) -2; never below zero.
    """
    lowered = path.lower()
    score = 1.0
    if "/products/" in lowered:
        score += 3
    elif "/product/" in lowered:
        score += 2
    if 0 < len(text) < 100:
        score += 1
    if len([s for s in lowered.split("/") if s]) > 4:
        score -= 2
    return max(0.0, score)


def score_collection_link(path: str, text: str) -> float:
    """Base 1; ``/collections/`` +3 (else ``/collection/`` or ``/shop`` +2); short text +1."""
    lowered = path.lower()
    score = 1.0
    if "/collections/" in lowered:
        score += 3
    elif "/collection/" in lowered or "/shop" in lowered:
        score += 2
    if 0 < len(text) < 50:
        score += 1
    return score


def canonical_link(url: str) -> str:
    """Drop fragment and trailing slash so trivially different links compare equal."""
    parts = urlsplit(url)
    path = parts.path.rstrip("/") or "/"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


# =============================================================================
# Discovery
# =============================================================================

def _structured_links(soup: BeautifulSoup) -> Iterable[tuple[str, CandidateType]]:
    for item in iter_json_ld(soup):
        types = json_ld_types(item)
        if "Product" in types and isinstance(item.get("url"), str):
            yield item["url"], CandidateType.PRODUCT
        if "ItemList" in types:
            if isinstance(item.get("url"), str):
                yield item["url"], CandidateType.COLLECTION
            for element in item.get("itemListElement") or []:
                url = _list_element_url(element)
                if url:
                    yield url, CandidateType.PRODUCT


def _list_element_url(element: Any) -> str | None:
    if not isinstance(element, dict):
        return None
    if isinstance(element.get("url"), str):
        return element["url"]
    nested = element.get("item")
    if isinstance(nested, dict) and isinstance(nested.get("url"), str):
        return nested["url"]
    if isinstance(nested, str):
        return nested
    return None


def discover_links(soup: BeautifulSoup, base_url: str) -> list[UrlCandidate]:
    """Same-origin product and collection candidates, highest score first."""
    candidates: list[UrlCandidate] = []
    seen: set[str] = set()

    def add(url: str, score: float, kind: CandidateType) -> None:
        key = canonical_link(url)
        if key in seen:
            return
        seen.add(key)
        candidates.append(UrlCandidate(url=url, score=score, type=kind.value))

    for href, kind in _structured_links(soup):
        resolved = resolve_url(href, base_url)
        if resolved and is_same_origin(resolved, base_url):
            add(resolved, STRUCTURED_DATA_SCORE, kind)

    for anchor in soup.find_all("a", href=True):
        resolved = resolve_url(attr(anchor, "href"), base_url)
        if not resolved or not is_same_origin(resolved, base_url):
            continue
        path = urlsplit(resolved).path
        kind = classify_path(path)
        if kind is None:
            continue
        text = text_of(anchor)
        if kind is CandidateType.PRODUCT:
            add(resolved, score_product_link(path, text), kind)
        else:
            add(resolved, score_collection_link(path, text), kind)

    return sorted(candidates, key=lambda c: c.score, reverse=True)


def select_top_candidates(
    candidates: list[UrlCandidate],
    max_products: int = 4,
    max_collections: int = 1,
) -> tuple[list[UrlCandidate], list[UrlCandidate]]:
    """Top product and collection candidates, preserving score order."""
    products = [c for c in candidates if c.type == CandidateType.PRODUCT.value]
    collections = [c for c in candidates if c.type == CandidateType.COLLECTION.value]
    return products[:max_products], collections[:max_collections]


def product_links(soup: BeautifulSoup, base_url: str, limit: int = 6) -> list[str]:
    """Product URLs linked from a listing page."""
    products, _ = select_top_candidates(discover_links(soup, base_url), max_products=limit, max_collections=0)
    return [c.url for c in products]
