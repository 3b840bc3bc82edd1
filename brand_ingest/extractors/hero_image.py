"""
Hero image extraction.

Scores ``og:image``, ``<img>`` and ``<picture>`` elements for hero/banner
likeness and returns the best one with its alt text.
"""

import re
from typing import Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from brand_ingest.extractors.dom import (
    attr,
    class_and_id,
    first_srcset_url,
    image_source,
    int_attr,
    is_inside,
    meta_content,
)
from brand_ingest.models.schemas import HeroImage
from brand_ingest.utils.scoring import CandidatePool, select_best
from brand_ingest.utils.url_guard import resolve_url

HERO_SECTION_SELECTOR = (
    "[class*=hero], [id*=hero], [class*=banner], [id*=banner], "
    "[class*=slideshow], [class*=carousel], [class*=jumbotron]"
)
HEADER_SELECTOR = "header, [role=banner]"

HERO_IMAGE_PATTERN = re.compile(r"\.(?:jpe?g|png|webp|avif|gif)(?:$|[?#])", re.IGNORECASE)
IMAGE_CDN_MARKERS = ("cdn", "cloudinary", "imgix", "shopify", "images.")

OG_HERO_SCORE = 80
PICTURE_BASE_SCORE = 40


# =============================================================================
# Scoring Rules
# =============================================================================

def looks_like_hero_url(url: str) -> bool:
    lowered = url.lower()
    if any(marker in lowered for marker in ("logo", "icon", "thumb")):
        return False
    return any(marker in lowered for marker in ("hero", "banner", "featured"))


def is_hero_image_url(url: Optional[str]) -> bool:
    """Plausible raster image URL: extension, image path or image CDN host."""
    if not url or not url.lower().startswith(("http://", "https://")):
        return False
    if HERO_IMAGE_PATTERN.search(url):
        return True
    parts = urlsplit(url)
    path = parts.path.lower()
    if "/image" in path or "/img" in path:
        return True
    host = (parts.hostname or "").lower()
    return any(marker in host for marker in IMAGE_CDN_MARKERS)


def score_hero_image(img: Tag) -> int:
    """
    Score an ``<img>`` as a hero candidate.

    Hero/banner keywords, hero-section or header containment and wide aspect
    ratios add points; logos, small declared sizes and product thumbnails
    subtract them.
    """
    ident = class_and_id(img)
    src = image_source(img).lower()
    score = 0

    if "hero" in ident or "banner" in ident:
        score += 60
    if "hero" in src or "banner" in src:
        score += 40
    if "featured" in ident or "main" in ident:
        score += 30
    if is_inside(img, HERO_SECTION_SELECTOR):
        score += 50
    if is_inside(img, HEADER_SELECTOR):
        score += 25
    if "logo" in ident or "logo" in src:
        score -= 70

    width, height = int_attr(img, "width"), int_attr(img, "height")
    if width is not None and width < 400:
        score -= 30
    if height is not None and height < 200:
        score -= 30
    if width and height and width / height > 1.5:
        score += 20

    if "product" in ident or "thumbnail" in ident or "thumb" in src:
        score -= 40
    return score


def score_picture(picture: Tag) -> int:
    ident = class_and_id(picture)
    score = PICTURE_BASE_SCORE
    if "hero" in ident or "banner" in ident:
        score += 60
    if is_inside(picture, HERO_SECTION_SELECTOR):
        score += 50
    return score


def _picture_source(picture: Tag) -> str:
    for source in picture.find_all("source"):
        url = first_srcset_url(attr(source, "srcset"))
        if url:
            return url
    return image_source(picture.find("img"))


# =============================================================================
# Extraction
# =============================================================================

def extract_hero_image(soup: BeautifulSoup, base_url: str, brand_name: str = "") -> Optional[HeroImage]:
    """Best hero image on the page, or None."""
    pool: CandidatePool[str] = CandidatePool()
    alts: dict[str, str] = {}

    og_image = meta_content(soup, "og:image")
    if og_image and looks_like_hero_url(og_image):
        resolved = resolve_url(og_image, base_url)
        if resolved:
            pool.add(resolved, OG_HERO_SCORE, "og:image")
            alts[resolved] = meta_content(soup, "og:image:alt")

    for img in soup.find_all("img"):
        score = score_hero_image(img)
        if score <= 0:
            continue
        resolved = resolve_url(image_source(img), base_url)
        if resolved and pool.add(resolved, score, "img"):
            alts[resolved] = attr(img, "alt")

    for picture in soup.find_all("picture"):
        resolved = resolve_url(_picture_source(picture), base_url)
        if resolved and pool.add(resolved, score_picture(picture), "picture"):
            alts[resolved] = attr(picture.find("img"), "alt")

    best = select_best(pool.candidates(), accept=is_hero_image_url)
    if best is None:
        return None
    alt_text = alts.get(best.value) or f"{brand_name or 'Brand'} hero image"
    return HeroImage(url=best.value, alt_text=alt_text)
