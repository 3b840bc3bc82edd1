"""
Extractors module for the brand ingestion pipeline.

Every strategy works on one parsed DOM snapshot (plus the live page for
computed styles) and returns an empty or absent value when nothing is found.

Components:
    - brand_name: Site name / title / hostname
    - logo, hero_image: Scored image selection
    - colors, fonts: Computed-style palette and typography
    - voice: Headlines, CTAs and tagline
    - discovery: Product and collection link candidates
    - products: Structured-data, single-page and grid product strategies
    - pricing, normalizer: Price parsing, image validation and dedup
"""

from brand_ingest.extractors.brand_name import extract_brand_name
from brand_ingest.extractors.colors import extract_colors
from brand_ingest.extractors.discovery import discover_links, product_links, select_top_candidates
from brand_ingest.extractors.dom import parse_html
from brand_ingest.extractors.fonts import extract_fonts
from brand_ingest.extractors.hero_image import extract_hero_image
from brand_ingest.extractors.logo import extract_logo
from brand_ingest.extractors.normalizer import finalize_catalog, is_valid_image_url, merge_and_dedupe_products
from brand_ingest.extractors.pricing import clean_and_extract_price
from brand_ingest.extractors.products import (
    extract_best_product_image,
    extract_page_products,
    extract_price,
    extract_product_from_dom,
    extract_products_from_grid,
    extract_products_from_json_ld,
)
from brand_ingest.extractors.voice import VoiceSnippets, extract_voice

__all__ = [
    "parse_html",
    "extract_brand_name",
    "extract_logo",
    "extract_hero_image",
    "extract_colors",
    "extract_fonts",
    "extract_voice",
    "VoiceSnippets",
    "discover_links",
    "select_top_candidates",
    "product_links",
    "extract_products_from_json_ld",
    "extract_product_from_dom",
    "extract_products_from_grid",
    "extract_page_products",
    "extract_best_product_image",
    "extract_price",
    "clean_and_extract_price",
    "is_valid_image_url",
    "merge_and_dedupe_products",
    "finalize_catalog",
]
