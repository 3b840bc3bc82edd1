"""
Pydantic models and schemas for the brand ingestion pipeline.

This module defines all data structures used throughout the pipeline,
ensuring type safety, validation, and serialization consistency. Field names
are snake_case in Python and serialize to the camelCase shape consumed by
downstream stages (``logoUrl``, ``heroImage``, ``voiceHints``...).

Models:
    - Product / ProductCandidate: Catalog entries before and after finalization
    - HeroImage, BrandColors, BrandFonts, BrandSnippets: Brand assets
    - BrandProfile: Complete ingestion output
    - UrlCandidate: Link discovery result
    - LoadResult: Rendered page snapshot
    - ErrorCode / ApiErrorCode: Error taxonomy
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any, Literal, Optional, Self
from uuid import uuid4

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# Base Configuration
# =============================================================================

class BaseModel(PydanticBaseModel):
    """Base model with common configuration for all schemas."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=False,
        populate_by_name=True,
        use_enum_values=True,
        alias_generator=to_camel,
    )

    def to_json(self, **kwargs) -> str:
        """Serialize model to JSON string using external (camelCase) names."""
        kwargs.setdefault("by_alias", True)
        return self.model_dump_json(indent=2, **kwargs)

    def to_dict(self, **kwargs) -> dict[str, Any]:
        """Serialize model to dictionary using external (camelCase) names."""
        kwargs.setdefault("by_alias", True)
        return self.model_dump(**kwargs)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize model from JSON string."""
        return cls.model_validate_json(json_str)


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Internal scraper error codes, surfaced to logging only."""
    INVALID_URL = "INVALID_URL"
    BLOCKED_URL = "BLOCKED_URL"
    TIMEOUT = "TIMEOUT"
    NAVIGATION_FAILED = "NAVIGATION_FAILED"
    PARSE_FAILED = "PARSE_FAILED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"


class ApiErrorCode(str, Enum):
    """Error codes exposed through the API boundary."""
    INVALID_URL = "INVALID_URL"
    BLOCKED_URL = "BLOCKED_URL"
    SCRAPE_TIMEOUT = "SCRAPE_TIMEOUT"
    SCRAPE_FAILED = "SCRAPE_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL = "INTERNAL"


class CandidateType(str, Enum):
    """Kind of URL found during link discovery."""
    PRODUCT = "product"
    COLLECTION = "collection"


# =============================================================================
# Validators (Reusable)
# =============================================================================

DEFAULT_PRIMARY_COLOR = "#111111"
DEFAULT_BACKGROUND_COLOR = "#FFFFFF"
DEFAULT_TEXT_COLOR = "#111111"
DEFAULT_FONT_STACK = "Arial, sans-serif"
PRICE_UNKNOWN = "N/A"

MAX_TITLE_LENGTH = 200
MAX_VOICE_HINTS = 10
MAX_SNIPPET_ITEMS = 5
MAX_CATALOG_SIZE = 8

HEX6_PATTERN = re.compile(r"^#?([0-9a-fA-F]{6})$")
HEX3_PATTERN = re.compile(r"^#?([0-9a-fA-F]{3})$")
RGB_PATTERN = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*[,\s]\s*(\d{1,3})\s*[,\s]\s*(\d{1,3})(?:\s*[,/]\s*([\d.]+%?))?\s*\)$",
    re.IGNORECASE,
)


def normalize_color(value: Optional[str]) -> Optional[str]:
    """
    Normalize a CSS color value to an upper-case ``#RRGGBB`` string.

    Accepts ``#RRGGBB``, ``#RGB`` and ``rgb()/rgba()`` notations. Fully
    transparent ``rgba(..., 0)`` values and anything unparseable return None.

    Example:
        >>> normalize_color("#abc")
        '#AABBCC'
        >>> normalize_color("rgb(255, 0, 10)")
        '#FF000A'
    """
    if not value or not isinstance(value, str):
        return None
    raw = value.strip()

    match = HEX6_PATTERN.match(raw)
    if match:
        return f"#{match.group(1).upper()}"

    match = HEX3_PATTERN.match(raw)
    if match:
        return "#" + "".join(ch * 2 for ch in match.group(1).upper())

    match = RGB_PATTERN.match(raw)
    if match:
        alpha = match.group(4)
        if alpha is not None:
            alpha_value = float(alpha.rstrip("%"))
            if alpha_value == 0:
                return None
        channels = [min(int(match.group(i)), 255) for i in (1, 2, 3)]
        return "#" + "".join(f"{c:02X}" for c in channels)

    return None


def cap_unique(items: Optional[list[str]], limit: int) -> list[str]:
    """Strip, drop empties, dedupe preserving order, and cap a string list."""
    result: list[str] = []
    for item in items or []:
        if not isinstance(item, str):
            continue
        text = item.strip()
        if text and text not in result:
            result.append(text)
        if len(result) >= limit:
            break
    return result


# =============================================================================
# Product Models
# =============================================================================

class ProductCandidate(BaseModel):
    """
    Provisional product produced by one of the extraction strategies.

    Candidates stay mutable so the web-search stage can fill a missing image
    or price; they become immutable ``Product`` entries on finalization.
    """

    title: str = Field(..., min_length=1, description="Product title")
    price: str = Field(default=PRICE_UNKNOWN, description="Formatted price or N/A")
    image: str = Field(default="", description="Absolute image URL")
    url: str = Field(..., description="Absolute product URL")

    # Enhancement markers
    found_image: bool = Field(default=False, description="Image filled by web search")
    found_price: bool = Field(default=False, description="Price filled by web search")
    search_source: Optional[str] = Field(default=None, description="URL the data came from")

    @field_validator("title")
    @classmethod
    def truncate_title(cls, v: str) -> str:
        """Titles longer than the catalog limit are truncated."""
        return v[:MAX_TITLE_LENGTH].strip()

    @field_validator("price", mode="before")
    @classmethod
    def default_price(cls, v: Any) -> str:
        """Empty prices collapse to the N/A sentinel."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return PRICE_UNKNOWN
        return str(v)

    @property
    def dedupe_key(self) -> str:
        """Composite key of lower-cased title and URL."""
        return f"{self.title.lower()}|{self.url}"

    @property
    def needs_image(self) -> bool:
        return not self.image

    @property
    def needs_price(self) -> bool:
        return not self.price or self.price == PRICE_UNKNOWN

    def to_product(self) -> "Product":
        """Freeze this candidate into a catalog entry."""
        return Product(title=self.title, price=self.price, image=self.image, url=self.url)


class Product(BaseModel):
    """Catalog entry placed into a BrandProfile. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex, description="Process-unique token")
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    price: str = Field(default=PRICE_UNKNOWN)
    image: str = Field(default="")
    url: str = Field(...)


# =============================================================================
# Brand Asset Models
# =============================================================================

class HeroImage(BaseModel):
    """Hero image with its alt text."""

    url: str = Field(..., min_length=1)
    alt_text: str = Field(default="")


class BrandColors(BaseModel):
    """Brand palette. Every field is always a normalized #RRGGBB string."""

    primary: str = Field(default=DEFAULT_PRIMARY_COLOR)
    background: str = Field(default=DEFAULT_BACKGROUND_COLOR)
    text: str = Field(default=DEFAULT_TEXT_COLOR)

    @field_validator("primary", "background", "text", mode="before")
    @classmethod
    def coerce_color(cls, v: Any, info) -> str:
        defaults = {
            "primary": DEFAULT_PRIMARY_COLOR,
            "background": DEFAULT_BACKGROUND_COLOR,
            "text": DEFAULT_TEXT_COLOR,
        }
        return normalize_color(v) or defaults[info.field_name]


class BrandFonts(BaseModel):
    """Heading and body font families."""

    heading: str = Field(default=DEFAULT_FONT_STACK)
    body: str = Field(default=DEFAULT_FONT_STACK)
    source_url: Optional[str] = Field(default=None, description="Stylesheet that serves the fonts")

    @field_validator("heading", "body", mode="before")
    @classmethod
    def default_font(cls, v: Any) -> str:
        if not v or not isinstance(v, str) or not v.strip():
            return DEFAULT_FONT_STACK
        return v


class BrandSnippets(BaseModel):
    """Copy snippets gathered from the homepage."""

    tagline: Optional[str] = Field(default=None)
    headlines: Optional[list[str]] = Field(default=None)
    ctas: Optional[list[str]] = Field(default=None)

    @field_validator("tagline", mode="before")
    @classmethod
    def empty_tagline(cls, v: Any) -> Optional[str]:
        if not v or not isinstance(v, str) or not v.strip():
            return None
        return v

    @field_validator("headlines", "ctas", mode="before")
    @classmethod
    def cap_items(cls, v: Any) -> Optional[list[str]]:
        items = cap_unique(v, MAX_SNIPPET_ITEMS)
        return items or None


class BrandProfile(BaseModel):
    """
    Structured output of brand ingestion.

    The profile is always structurally valid, including the fallback case:
    colors are normalized hex strings, fonts are non-empty, hint and catalog
    lists are capped.

    Example:
        >>> profile = BrandProfile(name="Acme", website="https://acme.com")
        >>> profile.colors.background
        '#FFFFFF'
    """

    name: str = Field(..., min_length=1)
    website: str = Field(..., min_length=1)
    logo_url: str = Field(default="")
    hero_image: Optional[HeroImage] = Field(default=None)
    colors: BrandColors = Field(default_factory=BrandColors)
    fonts: BrandFonts = Field(default_factory=BrandFonts)
    voice_hints: list[str] = Field(default_factory=list)
    snippets: BrandSnippets = Field(default_factory=BrandSnippets)
    catalog: list[Product] = Field(default_factory=list)
    trust: dict[str, Any] = Field(default_factory=dict)

    @field_validator("voice_hints", mode="before")
    @classmethod
    def cap_voice_hints(cls, v: Any) -> list[str]:
        return cap_unique(v, MAX_VOICE_HINTS)

    @model_validator(mode="after")
    def enforce_catalog_invariants(self) -> Self:
        """Catalog entries are unique by (lower-cased title, URL) and capped."""
        seen: set[str] = set()
        unique: list[Product] = []
        for product in self.catalog:
            key = f"{product.title.lower()}|{product.url}"
            if key in seen:
                continue
            seen.add(key)
            unique.append(product)
        self.catalog = unique[:MAX_CATALOG_SIZE]
        return self

    def to_dict(self, **kwargs) -> dict[str, Any]:
        """Serialize using camelCase names, omitting absent snippet fields."""
        kwargs.setdefault("by_alias", True)
        data = self.model_dump(**kwargs)
        snippets_key = "snippets"
        data[snippets_key] = {
            k: v for k, v in data.get(snippets_key, {}).items() if v is not None
        }
        return data

    def to_json(self, **kwargs) -> str:
        """JSON with the same shape as ``to_dict``."""
        kwargs.setdefault("mode", "json")
        return json.dumps(self.to_dict(**kwargs), indent=2, ensure_ascii=False)


# =============================================================================
# Internal Pipeline Models
# =============================================================================

class UrlCandidate(BaseModel):
    """Product or collection URL found during link discovery."""

    url: str
    score: float = 0.0
    type: Literal["product", "collection"]


class LoadResult(BaseModel):
    """Rendered markup and the post-redirect URL of a page load."""

    html: str
    final_url: str


# =============================================================================
# Export All Models
# =============================================================================

__all__ = [
    # Base
    "BaseModel",
    # Enums
    "ErrorCode",
    "ApiErrorCode",
    "CandidateType",
    # Validators
    "normalize_color",
    "cap_unique",
    # Products
    "ProductCandidate",
    "Product",
    # Brand assets
    "HeroImage",
    "BrandColors",
    "BrandFonts",
    "BrandSnippets",
    "BrandProfile",
    # Internal
    "UrlCandidate",
    "LoadResult",
    # Constants
    "DEFAULT_PRIMARY_COLOR",
    "DEFAULT_BACKGROUND_COLOR",
    "DEFAULT_TEXT_COLOR",
    "DEFAULT_FONT_STACK",
    "PRICE_UNKNOWN",
    "MAX_TITLE_LENGTH",
    "MAX_VOICE_HINTS",
    "MAX_SNIPPET_ITEMS",
    "MAX_CATALOG_SIZE",
]
