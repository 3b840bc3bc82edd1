import json

import pytest
from pydantic import ValidationError

from brand_ingest.models.schemas import (
    BrandColors,
    BrandFonts,
    BrandProfile,
    BrandSnippets,
    HeroImage,
    Product,
    ProductCandidate,
    normalize_color,
)

# =============================================================================
# Colors
# =============================================================================

@pytest.mark.parametrize("raw, expected", [
    ("#abc", "#AABBCC"),
    ("#E4002B", "#E4002B"),
    ("e4002b", "#E4002B"),
    ("rgb(255, 0, 10)", "#FF000A"),
    ("rgba(17, 17, 17, 0.5)", "#111111"),
    ("rgba(0, 0, 0, 0)", None),
    ("transparent", None),
    ("", None),
    (None, None),
])
def test_normalize_color(raw, expected):
    assert normalize_color(raw) == expected

def test_brand_colors_fall_back_to_defaults():
    colors = BrandColors(primary="not-a-color", background=None, text="rgb(34,34,34)")
    assert colors.primary == "#111111"
    assert colors.background == "#FFFFFF"
    assert colors.text == "#222222"

def test_brand_fonts_defaults():
    fonts = BrandFonts(heading="", body=None)
    assert fonts.heading == "Arial, sans-serif"
    assert fonts.body == "Arial, sans-serif"

# =============================================================================
# Products
# =============================================================================

def test_product_candidate_defaults():
    candidate = ProductCandidate(title="  Mug  ", url="https://a.com/p/mug", price="")
    assert candidate.title == "Mug"
    assert candidate.price == "N/A"
    assert candidate.needs_image
    assert candidate.needs_price

def test_product_candidate_truncates_title():
    candidate = ProductCandidate(title="x" * 250, url="https://a.com/p/1")
    assert len(candidate.title) == 200

def test_product_candidate_requires_title():
    with pytest.raises(ValidationError):
        ProductCandidate(title="", url="https://a.com/p/1")

def test_to_product_is_frozen_with_unique_ids():
    candidate = ProductCandidate(title="Mug", url="https://a.com/p/mug", price="$10.00")
    first, second = candidate.to_product(), candidate.to_product()
    assert first.id != second.id
    with pytest.raises(ValidationError):
        first.title = "Other"

# =============================================================================
# BrandProfile
# =============================================================================

def test_profile_defaults():
    profile = BrandProfile(name="Acme", website="https://acme.com")
    assert profile.colors.primary == "#111111"
    assert profile.fonts.body == "Arial, sans-serif"
    assert profile.catalog == []
    assert profile.hero_image is None
    assert profile.logo_url == ""

def test_profile_caps_voice_hints():
    profile = BrandProfile(
        name="Acme",
        website="https://acme.com",
        voice_hints=[f"hint {i}" for i in range(15)] + ["hint 0", "  "],
    )
    assert len(profile.voice_hints) == 10
    assert profile.voice_hints[0] == "hint 0"

def test_profile_dedupes_and_caps_catalog():
    catalog = [Product(title=f"Item {i}", url=f"https://a.com/p/{i}") for i in range(10)]
    catalog.insert(1, Product(title="ITEM 0", url="https://a.com/p/0"))

    profile = BrandProfile(name="Acme", website="https://a.com", catalog=catalog)

    assert len(profile.catalog) == 8
    assert [p.title for p in profile.catalog[:2]] == ["Item 0", "Item 1"]

def test_snippets_cap_and_empty():
    snippets = BrandSnippets(tagline="  ", headlines=["a1", "a1", "b2", "c3", "d4", "e5", "f6"], ctas=[])
    assert snippets.tagline is None
    assert snippets.headlines == ["a1", "b2", "c3", "d4", "e5"]
    assert snippets.ctas is None

def test_to_dict_uses_camel_case_and_omits_absent_snippets():
    profile = BrandProfile(
        name="Acme",
        website="https://acme.com/",
        logo_url="https://acme.com/logo.png",
        hero_image=HeroImage(url="https://acme.com/hero.jpg", alt_text="Hero"),
        voice_hints=["Shop now"],
        snippets=BrandSnippets(ctas=["Shop now"]),
    )

    data = profile.to_dict()

    assert data["logoUrl"] == "https://acme.com/logo.png"
    assert data["heroImage"] == {"url": "https://acme.com/hero.jpg", "altText": "Hero"}
    assert data["voiceHints"] == ["Shop now"]
    assert data["snippets"] == {"ctas": ["Shop now"]}
    assert data["fonts"]["sourceUrl"] is None

def test_to_json_round_trip():
    profile = BrandProfile(
        name="Café Ünïcode",
        website="https://acme.com/",
        catalog=[Product(title="Mug", url="https://acme.com/p/mug", price="$10.00")],
    )

    payload = json.loads(profile.to_json())

    assert payload["name"] == "Café Ünïcode"
    assert payload["catalog"][0]["price"] == "$10.00"
    assert BrandProfile.model_validate(payload).catalog[0].title == "Mug"
