"""
Product normalization: image URL validation, deduplication and catalog capping.
"""

import re
from typing import Iterable, Optional

from brand_ingest.models.schemas import MAX_CATALOG_SIZE, Product, ProductCandidate
from brand_ingest.utils.logger import get_logger

logger = get_logger(__name__)

IMAGE_EXTENSION_PATTERN = re.compile(r"\.(?:jpe?g|png|webp|gif|avif)(?:[?#].*)?$", re.IGNORECASE)
PLACEHOLDER_MARKERS = ("placeholder", "1x1", "blank.", "spacer.", "pixel.", "transparent.")
PRODUCT_PATH_MARKERS = ("/products/", "/product-images/")


def is_valid_image_url(url: Optional[str]) -> bool:
    """
    Allow/deny heuristic for product image URLs.

    Rejects short or non-http(s) URLs, placeholder markers, and logos or icons
    that are not product imagery. Accepts known image extensions (query string
    allowed) or URLs living under a product image path.
    """
    if not url or len(url) < 10:
        return False
    lowered = url.lower()
    if not lowered.startswith(("http://", "https://")):
        return False
    if "logo" in lowered and "product" not in lowered:
        return False
    if any(marker in lowered for marker in PLACEHOLDER_MARKERS):
        return False
    if "icon." in lowered and "product" not in lowered:
        return False
    if IMAGE_EXTENSION_PATTERN.search(lowered):
        return True
    return any(marker in lowered for marker in PRODUCT_PATH_MARKERS)


def merge_and_dedupe_products(*groups: Iterable[ProductCandidate]) -> list[ProductCandidate]:
    """
    Merge candidate lists, keeping the first occurrence of each
    (lower-cased title, URL) key in encounter order.
    """
    seen: set[str] = set()
    merged: list[ProductCandidate] = []
    for group in groups:
        for candidate in group or []:
            key = candidate.dedupe_key
            if key in seen:
                continue
            seen.add(key)
            merged.append(candidate)
    return merged


def finalize_catalog(
    candidates: Iterable[ProductCandidate],
    limit: int = MAX_CATALOG_SIZE,
) -> list[Product]:
    """
    Dedupe, cap and freeze candidates into catalog entries.

    Candidates still lacking a usable image after enhancement are dropped
    before capping.
    """
    unique = merge_and_dedupe_products(candidates)
    with_image = [candidate for candidate in unique if is_valid_image_url(candidate.image)]
    if len(with_image) < len(unique):
        logger.debug("Dropped products without image", dropped=len(unique) - len(with_image))
    unique = with_image
    capped = unique[: min(limit, MAX_CATALOG_SIZE)]
    if len(unique) > len(capped):
        logger.debug("Catalog truncated", found=len(unique), kept=len(capped))
    return [candidate.to_product() for candidate in capped]
