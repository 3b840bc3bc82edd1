"""
Validation service for the profile crossing the public boundary.

Every profile leaving the pipeline, scraped or fallback, passes through
``normalize_brand_profile`` so callers only ever see structurally valid data.
"""

from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from brand_ingest.models.schemas import (
    MAX_SNIPPET_ITEMS,
    MAX_TITLE_LENGTH,
    MAX_VOICE_HINTS,
    BrandProfile,
)
from brand_ingest.utils.logger import get_logger

logger = get_logger(__name__)


class ValidationError(Exception):
    """Raised when data cannot be coerced into a valid profile."""

    def __init__(self, code: str, message: str, details: Optional[dict] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


def ensure_scheme(website: str) -> str:
    """Prefix scheme-less websites with ``https://``."""
    website = (website or "").strip()
    if website and not website.startswith(("http://", "https://")):
        return f"https://{website.lstrip('/')}"
    return website


def sanitize_text(text: str, max_length: int = MAX_TITLE_LENGTH) -> str:
    """Collapse whitespace and truncate."""
    return " ".join((text or "").split())[:max_length]


def _sanitize_list(items: Any, limit: int) -> Optional[list[str]]:
    if items is None:
        return None
    cleaned = [sanitize_text(item) for item in items if isinstance(item, str)]
    return [item for item in cleaned if item][:limit]


def normalize_brand_profile(data: Union[BrandProfile, dict[str, Any]]) -> BrandProfile:
    """
    Apply defaults, trim strings, validate colors and cap lists.

    Accepts a BrandProfile or a plain mapping (snake_case or camelCase keys).

    Raises:
        ValidationError: When required fields are missing or malformed.
    """
    raw = data.model_dump() if isinstance(data, BrandProfile) else dict(data or {})

    raw["website"] = ensure_scheme(raw.get("website", ""))
    if "name" in raw:
        raw["name"] = sanitize_text(raw.get("name") or "")

    hints_key = "voice_hints" if "voice_hints" in raw else "voiceHints"
    if hints_key in raw:
        raw[hints_key] = _sanitize_list(raw[hints_key], MAX_VOICE_HINTS) or []

    snippets = raw.get("snippets")
    if isinstance(snippets, dict):
        snippets = dict(snippets)
        for key in ("headlines", "ctas"):
            if key in snippets:
                snippets[key] = _sanitize_list(snippets[key], MAX_SNIPPET_ITEMS)
        raw["snippets"] = snippets

    try:
        return BrandProfile.model_validate(raw)
    except PydanticValidationError as e:
        logger.error("Brand profile validation failed", errors=e.error_count())
        raise ValidationError(
            code="INVALID_BRAND_PROFILE",
            message=f"Invalid brand profile: {e.errors()[0]['msg']}",
            details={"errors": e.errors(include_url=False)},
        ) from e
