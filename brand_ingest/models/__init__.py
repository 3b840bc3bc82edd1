"""Data models module for the brand ingestion pipeline."""

from brand_ingest.models.schemas import (
    # Base Models
    BaseModel,

    # Enums
    ErrorCode,
    ApiErrorCode,
    CandidateType,

    # Product Models
    ProductCandidate,
    Product,

    # Brand Asset Models
    HeroImage,
    BrandColors,
    BrandFonts,
    BrandSnippets,
    BrandProfile,

    # Internal Models
    UrlCandidate,
    LoadResult,

    # Validators
    normalize_color,
)

__all__ = [
    "BaseModel",
    "ErrorCode",
    "ApiErrorCode",
    "CandidateType",
    "ProductCandidate",
    "Product",
    "HeroImage",
    "BrandColors",
    "BrandFonts",
    "BrandSnippets",
    "BrandProfile",
    "UrlCandidate",
    "LoadResult",
    "normalize_color",
]
