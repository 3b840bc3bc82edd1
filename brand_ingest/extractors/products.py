"""
Product extraction strategies.

Three independent strategies, tried per page in this order:

    1. Structured data (JSON-LD ``Product`` / ``ItemList`` / ``@graph``),
       including offer selection (in-stock filtering, ``AggregateOffer``
       low price, nested offers, ``priceSpecification``).
    2. Single product page DOM scan with ranked title/price/image selectors.
    3. Listing grid scan over known e-commerce container patterns, stopping
       at the first pattern that yields products.

Example:
    >>> soup = parse_html(html)
    >>> products = extract_products_from_json_ld(soup, "https://shop.example.com/")
    >>> if not products:
    ...     product = extract_product_from_dom(soup, "https://shop.example.com/p/1")
"""

import re
from typing import Any, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, NavigableString, Tag

from brand_ingest.extractors.dom import (
    attr,
    class_and_id,
    clean_text,
    image_source,
    int_attr,
    iter_json_ld,
    json_ld_types,
    meta_content,
    select_all,
    select_first,
    text_of,
)
from brand_ingest.extractors.normalizer import is_valid_image_url, merge_and_dedupe_products
from brand_ingest.extractors.pricing import clean_and_extract_price, format_price
from brand_ingest.models.schemas import MAX_TITLE_LENGTH, PRICE_UNKNOWN, ProductCandidate
from brand_ingest.utils.logger import get_logger
from brand_ingest.utils.scoring import CandidatePool, ScoreCandidate, select_best
from brand_ingest.utils.url_guard import is_same_origin, resolve_url

logger = get_logger(__name__)


# =============================================================================
# Selector Tables
# =============================================================================

TITLE_SELECTORS = (
    "h1[class*=product]",
    "h1[class*=title]",
    "[class*=product-title]",
    "[class*=product__title]",
    "[data-product-title]",
    "[itemprop=name]",
    "meta[property='og:title']",
    "h1",
)

PRICE_SELECTORS = (
    "[class*=sale-price]",
    "[class*=price-sale]",
    "[class*=price--sale]",
    "[class*=current-price]",
    "[class*=price-current]",
    "[class*=price__current]",
    "[class*=special-price]",
    "[data-product-price]",
    "[data-price]",
    "[class*=product-price]",
    "[class*=product__price]",
    ".price",
    "[class*=price]",
    "[class*=Price]",
)

META_PRICE_KEYS = ("og:price:amount", "product:price:amount", "product:price", "price")
META_CURRENCY_KEYS = ("og:price:currency", "product:price:currency", "priceCurrency", "currency")

PRODUCT_IMAGE_SELECTORS = (
    "[class*=product-image] img",
    "[class*=product__media] img",
    "[class*=product-gallery] img",
    "[class*=gallery] img",
    "img[class*=product]",
    "[data-zoom-image]",
    "#product-image img",
    "[class*=product] img",
    'img[alt*="product" i]',
    "main img",
)

GRID_CONTAINER_SELECTORS = (
    "[class*=product-item]",
    "[class*=product-card]",
    "[class*=product-grid-item]",
    "[class*=collection-item]",
    "[data-product-id]",
    "[data-product]",
    ".product",
    "[class*=grid-product]",
    "[class*=product-tile]",
    "article[class*=product]",
    "li[class*=product]",
)

GRID_TITLE_SELECTORS = (
    "[class*=product-title]",
    "[class*=product-name]",
    "[class*=title]",
    "h2",
    "h3",
    "h4",
    "[itemprop=name]",
)

GRID_FALLBACK_PATH_MARKERS = ("/product", "/p/", "/item")

# Price elements that are the old/compare-at price rather than the current one
STALE_PRICE_PATTERN = re.compile(r"(?<![a-z])(?:was|original|compare|old|strike|before|list-price|msrp)")
STALE_PRICE_TAGS = ("s", "del", "strike")
CURRENT_PRICE_PATTERN = re.compile(r"sale|current|special|now")

IMAGE_SIZE_BONUS = re.compile(r"large|original|master|full|1200|1500|2000")
IMAGE_SIZE_MEDIUM = re.compile(r"medium|800|1000")
IMAGE_SIZE_PENALTY = re.compile(r"small|thumb|icon|(?<!\d)(?:100|200|300)(?!\d)")
IMAGE_EXTENSION = re.compile(r"\.(?:jpe?g|png|webp)(?:$|[?#])")

IN_STOCK_MARKERS = ("instock", "in_stock", "in stock", "limitedavailability", "onlineonly")


# =============================================================================
# Structured Data
# =============================================================================

def _json_ld_image(value: Any) -> Optional[str]:
    """Image as a string, list (first entry), ``url`` or ``contentUrl``."""
    if isinstance(value, str):
        return value
    if isinstance(value, list) and value:
        return _json_ld_image(value[0])
    if isinstance(value, dict):
        for key in ("url", "contentUrl"):
            if isinstance(value.get(key), str):
                return value[key]
    return None


def _is_in_stock(offer: dict[str, Any]) -> bool:
    availability = str(offer.get("availability") or "").lower()
    return any(marker in availability for marker in IN_STOCK_MARKERS)


def _offer_currency(offer: dict[str, Any]) -> Optional[str]:
    currency = offer.get("priceCurrency")
    if isinstance(currency, str) and currency:
        return currency
    price_spec = offer.get("priceSpecification")
    if isinstance(price_spec, list) and price_spec:
        price_spec = price_spec[0]
    if isinstance(price_spec, dict) and isinstance(price_spec.get("priceCurrency"), str):
        return price_spec["priceCurrency"]
    return None


def _single_offer_price(offer: dict[str, Any], currency: Optional[str]) -> Optional[str]:
    currency = _offer_currency(offer) or currency
    for key in ("price", "lowPrice", "highPrice"):
        price = format_price(offer.get(key), currency)
        if price:
            return price
    price_spec = offer.get("priceSpecification")
    if isinstance(price_spec, list) and price_spec:
        price_spec = price_spec[0]
    if isinstance(price_spec, dict):
        return format_price(price_spec.get("price"), currency)
    return None


def extract_offer_price(offers: Any, currency: Optional[str] = None) -> Optional[str]:
    """
    Price of a schema.org ``offers`` value.

    Arrays prefer the first in-stock offer. ``AggregateOffer`` prefers
    ``lowPrice`` and otherwise descends into its nested ``offers``.
    """
    if isinstance(offers, list):
        dict_offers = [o for o in offers if isinstance(o, dict)]
        if not dict_offers:
            return None
        in_stock = [o for o in dict_offers if _is_in_stock(o)]
        for offer in in_stock + [o for o in dict_offers if o not in in_stock]:
            price = extract_offer_price(offer, currency)
            if price:
                return price
        return None

    if not isinstance(offers, dict):
        return None

    currency = _offer_currency(offers) or currency
    if "AggregateOffer" in json_ld_types(offers):
        low = format_price(offers.get("lowPrice"), currency)
        if low:
            return low
        nested = offers.get("offers")
        if nested:
            price = extract_offer_price(nested, currency)
            if price:
                return price
    return _single_offer_price(offers, currency)


def _product_from_json_ld(item: dict[str, Any], page_url: str) -> Optional[ProductCandidate]:
    name = item.get("name")
    title = clean_text(name if isinstance(name, str) else "")
    if not title:
        return None

    image = resolve_url(_json_ld_image(item.get("image")), page_url)
    if not image or not is_valid_image_url(image):
        return None

    url = resolve_url(item.get("url") if isinstance(item.get("url"), str) else None, page_url) or page_url
    price = extract_offer_price(item.get("offers")) or PRICE_UNKNOWN
    return ProductCandidate(title=title, price=price, image=image, url=url)


def _list_products(item: dict[str, Any]) -> list[dict[str, Any]]:
    products = []
    for element in item.get("itemListElement") or []:
        if not isinstance(element, dict):
            continue
        nested = element.get("item")
        if isinstance(nested, dict) and "Product" in json_ld_types(nested):
            products.append(nested)
        elif "Product" in json_ld_types(element):
            products.append(element)
    return products


def extract_products_from_json_ld(soup: BeautifulSoup, page_url: str) -> list[ProductCandidate]:
    """Products declared in JSON-LD. Entries without a name or usable image are skipped."""
    candidates: list[ProductCandidate] = []
    for item in iter_json_ld(soup):
        types = json_ld_types(item)
        raw_products: list[dict[str, Any]] = []
        if "Product" in types or "ProductGroup" in types:
            raw_products.append(item)
        if "ItemList" in types:
            raw_products.extend(_list_products(item))
        for raw in raw_products:
            candidate = _product_from_json_ld(raw, page_url)
            if candidate is not None:
                candidates.append(candidate)
    return merge_and_dedupe_products(candidates)


# =============================================================================
# Price (DOM)
# =============================================================================

def _is_stale_node(node: Tag) -> bool:
    if node.name in STALE_PRICE_TAGS:
        return True
    if STALE_PRICE_PATTERN.search(class_and_id(node)):
        return True
    return "line-through" in attr(node, "style").replace(" ", "").lower()


def is_stale_price_element(element: Tag) -> bool:
    """Old, compare-at or struck-through price element (checked up to two ancestors)."""
    node: Optional[Tag] = element
    for _ in range(3):
        if node is None or not isinstance(node, Tag):
            break
        if _is_stale_node(node):
            return True
        node = node.parent if isinstance(node.parent, Tag) else None
    return False


def _current_text(element: Tag) -> str:
    """Text of ``element`` without the strings of stale descendants."""
    parts = []
    for node in element.descendants:
        if type(node) is not NavigableString:
            continue
        parent = node.parent
        while parent is not None and parent is not element and not _is_stale_node(parent):
            parent = parent.parent
        if parent is element:
            parts.append(str(node))
    return clean_text(" ".join(parts))


def _price_text(element: Tag) -> str:
    return attr(element, "content") or attr(element, "data-price") or _current_text(element)


def _itemprop_price(root: Any) -> Optional[str]:
    element = select_first(root, "[itemprop=price]")
    if element is None:
        return None
    currency_el = select_first(root, "[itemprop=priceCurrency]")
    currency = (attr(currency_el, "content") or text_of(currency_el)) if currency_el is not None else None
    return clean_and_extract_price(_price_text(element), currency or None)


def _meta_price(soup: BeautifulSoup) -> Optional[str]:
    amount = meta_content(soup, *META_PRICE_KEYS)
    if not amount:
        return None
    currency = meta_content(soup, *META_CURRENCY_KEYS) or None
    return clean_and_extract_price(amount, currency)


def extract_price(root: Any) -> str:
    """
    Current price of a product page or product card, or ``"N/A"``.

    Microdata and meta tags are trusted first; otherwise price elements are
    ranked by selector order, with stale (was/compare/original) elements
    skipped and sale/current markers preferred.
    """
    price = _itemprop_price(root)
    if price:
        return price
    if isinstance(root, BeautifulSoup):
        price = _meta_price(root)
        if price:
            return price

    seen: set[int] = set()
    candidates: list[ScoreCandidate[str]] = []
    for index, selector in enumerate(PRICE_SELECTORS):
        for element in select_all(root, selector):
            if id(element) in seen:
                continue
            seen.add(id(element))
            if is_stale_price_element(element):
                continue
            value = clean_and_extract_price(_price_text(element))
            if not value:
                continue
            score = 100 - index * 5
            if CURRENT_PRICE_PATTERN.search(class_and_id(element)):
                score += 10
            candidates.append(ScoreCandidate(value=value, score=score, source=selector))
    best = select_best(candidates)
    return best.value if best else PRICE_UNKNOWN


# =============================================================================
# Images (DOM)
# =============================================================================

def score_image_by_size(url: str) -> int:
    """Size hints in an image URL: large/original up, thumbnails down."""
    lowered = url.lower()
    score = 0
    if IMAGE_SIZE_BONUS.search(lowered):
        score += 20
    elif IMAGE_SIZE_MEDIUM.search(lowered):
        score += 10
    if IMAGE_SIZE_PENALTY.search(lowered):
        score -= 20
    if IMAGE_EXTENSION.search(lowered):
        score += 5
    return score


def score_product_img(img: Tag) -> int:
    """Size hint score of an ``<img>``, including declared size and thumbnail classes."""
    score = score_image_by_size(image_source(img))
    ident = class_and_id(img)
    if "thumb" in ident:
        score -= 20
    if "main" in ident or "primary" in ident or "featured" in ident:
        score += 10
    width = int_attr(img, "width")
    if width is not None:
        score += 10 if width >= 400 else -10 if width < 150 else 0
    return score


def extract_best_product_image(soup: Any, page_url: str) -> str:
    """Best product image URL on a product page, or an empty string."""
    pool: CandidatePool[str] = CandidatePool()

    for key, score in (("og:image", 100), ("twitter:image", 95)):
        if isinstance(soup, BeautifulSoup):
            resolved = resolve_url(meta_content(soup, key), page_url)
            if resolved:
                pool.add(resolved, score, key)

    itemprop = select_first(soup, "[itemprop=image]")
    if itemprop is not None:
        raw = attr(itemprop, "content") or attr(itemprop, "href") or image_source(itemprop)
        resolved = resolve_url(raw, page_url)
        if resolved:
            pool.add(resolved, 90, "itemprop")

    for index, selector in enumerate(PRODUCT_IMAGE_SELECTORS):
        for img in select_all(soup, selector):
            raw = image_source(img) or attr(img, "data-zoom-image")
            resolved = resolve_url(raw, page_url)
            if resolved:
                pool.add(resolved, 80 - 5 * index + score_product_img(img), selector)

    best = pool.best(accept=is_valid_image_url)
    if best is not None:
        return best.value

    # Last resort: any usable image on the page
    for img in select_all(soup, "img"):
        resolved = resolve_url(image_source(img), page_url)
        if resolved and is_valid_image_url(resolved):
            return resolved
    return ""


# =============================================================================
# Single Product Page
# =============================================================================

def extract_product_title(soup: Any) -> str:
    for selector in TITLE_SELECTORS:
        element = select_first(soup, selector)
        if element is None:
            continue
        text = clean_text(attr(element, "content")) if element.name == "meta" else text_of(element)
        if 0 < len(text) < MAX_TITLE_LENGTH:
            return text
    return ""


def _canonical_url(soup: BeautifulSoup, page_url: str) -> str:
    link = select_first(soup, "link[rel=canonical]")
    canonical = resolve_url(attr(link, "href"), page_url) or resolve_url(meta_content(soup, "og:url"), page_url)
    if canonical and is_same_origin(canonical, page_url):
        return canonical
    return page_url


def extract_product_from_dom(soup: BeautifulSoup, page_url: str) -> Optional[ProductCandidate]:
    """
    Product described by a single product page, or None without a title.

    The image may be empty (the search stage can fill it later); the price
    falls back to ``"N/A"``.
    """
    title = extract_product_title(soup)
    if not title:
        return None
    return ProductCandidate(
        title=title,
        price=extract_price(soup),
        image=extract_best_product_image(soup, page_url),
        url=_canonical_url(soup, page_url),
    )


# =============================================================================
# Listing Grid
# =============================================================================

def _outermost(elements: list[Tag]) -> list[Tag]:
    """Drop elements nested inside another element of the same list."""
    ids = {id(e) for e in elements}
    return [e for e in elements if not any(id(parent) in ids for parent in e.parents)]


def _grid_title(container: Tag, link: Tag) -> str:
    for selector in GRID_TITLE_SELECTORS:
        element = select_first(container, selector)
        text = text_of(element)
        if text:
            return text
    return text_of(link)


def _grid_image(container: Tag, page_url: str) -> str:
    candidates: list[ScoreCandidate[str]] = []
    for img in container.find_all("img"):
        resolved = resolve_url(image_source(img), page_url)
        if resolved:
            candidates.append(ScoreCandidate(value=resolved, score=score_product_img(img)))
    best = select_best(candidates, accept=is_valid_image_url)
    return best.value if best else ""


def _product_from_container(container: Tag, page_url: str) -> Optional[ProductCandidate]:
    link = container if container.name == "a" and container.get("href") else select_first(container, "a[href]")
    if link is None:
        return None
    url = resolve_url(attr(link, "href"), page_url)
    if not url:
        return None
    title = _grid_title(container, link)[:MAX_TITLE_LENGTH]
    image = _grid_image(container, page_url)
    if not title or not image:
        return None
    return ProductCandidate(title=title, price=extract_price(container), image=image, url=url)


def _anchor_fallback(soup: BeautifulSoup, page_url: str) -> list[ProductCandidate]:
    products: list[ProductCandidate] = []
    for anchor in soup.find_all("a", href=True):
        img = anchor.find("img")
        if img is None:
            continue
        url = resolve_url(attr(anchor, "href"), page_url)
        if not url or not any(m in urlsplit(url).path.lower() for m in GRID_FALLBACK_PATH_MARKERS):
            continue
        image = resolve_url(image_source(img), page_url)
        if not image or not is_valid_image_url(image):
            continue
        title = (attr(img, "alt") or text_of(anchor) or "Product")[:MAX_TITLE_LENGTH]
        products.append(ProductCandidate(title=title, price=PRICE_UNKNOWN, image=image, url=url))
    return products


def extract_products_from_grid(soup: BeautifulSoup, page_url: str) -> list[ProductCandidate]:
    """Products of a listing page, using the first container pattern that yields any."""
    for selector in GRID_CONTAINER_SELECTORS:
        containers = _outermost(select_all(soup, selector))
        if not containers:
            continue
        products = [p for p in (_product_from_container(c, page_url) for c in containers) if p]
        if products:
            logger.debug("Grid products found", selector=selector, count=len(products))
            return _dedupe_by_url(products)

    return _dedupe_by_url(_anchor_fallback(soup, page_url))


def _dedupe_by_url(products: list[ProductCandidate]) -> list[ProductCandidate]:
    seen: set[str] = set()
    unique = []
    for product in merge_and_dedupe_products(products):
        if product.url in seen:
            continue
        seen.add(product.url)
        unique.append(product)
    return unique


def extract_page_products(soup: BeautifulSoup, page_url: str) -> list[ProductCandidate]:
    """
    Products of a loaded product page: structured data first, the single
    product DOM scan only when structured data yields nothing.
    """
    products = extract_products_from_json_ld(soup, page_url)
    if products:
        return products
    product = extract_product_from_dom(soup, page_url)
    return [product] if product else []
