"""
Fallback profile construction.

Builds the minimal valid BrandProfile returned whenever ingestion fails.
Works from the raw input alone and never raises.
"""

from urllib.parse import urlsplit

from brand_ingest.models.schemas import BrandProfile
from brand_ingest.services.validation_service import ensure_scheme
from brand_ingest.utils.logger import get_logger

logger = get_logger(__name__)

UNKNOWN_BRAND = "Unknown Brand"


def fallback_name(raw_url: str) -> str:
    """Hostname without ``www.``, or ``Unknown Brand`` when unparsable."""
    try:
        hostname = urlsplit(ensure_scheme(raw_url or "")).hostname or ""
    except ValueError:
        return UNKNOWN_BRAND
    return hostname.removeprefix("www.") or UNKNOWN_BRAND


def build_fallback_profile(raw_url: str) -> BrandProfile:
    """
    Default-colored, empty-catalog profile named after the hostname.

    Example:
        >>> build_fallback_profile("www.acme.com").name
        'acme.com'
    """
    website = ensure_scheme(raw_url or "") or "https://unknown.invalid/"
    profile = BrandProfile(name=fallback_name(raw_url), website=website)
    logger.debug("Fallback profile built", name=profile.name, website=website)
    return profile
