import pytest

from brand_ingest.pipeline.fallback import build_fallback_profile, fallback_name


@pytest.mark.parametrize("raw, name", [
    ("https://www.acme.com/shop", "acme.com"),
    ("acme.co.uk", "acme.co.uk"),
    ("http://localhost:8080", "localhost"),
    ("", "Unknown Brand"),
    ("http://[::1", "Unknown Brand"),
])
def test_fallback_name(raw, name):
    assert fallback_name(raw) == name

def test_fallback_profile_is_valid_and_empty():
    profile = build_fallback_profile("www.acme.com")

    assert profile.name == "acme.com"
    assert profile.website == "https://www.acme.com"
    assert profile.logo_url == ""
    assert profile.hero_image is None
    assert profile.catalog == []
    assert profile.voice_hints == []
    assert (profile.colors.primary, profile.colors.background, profile.colors.text) == (
        "#111111", "#FFFFFF", "#111111"
    )
    assert profile.fonts.heading == profile.fonts.body == "Arial, sans-serif"

def test_fallback_profile_without_input():
    profile = build_fallback_profile(None)

    assert profile.name == "Unknown Brand"
    assert profile.website == "https://unknown.invalid/"

def test_fallback_profile_serializes_camel_case():
    data = build_fallback_profile("acme.com").to_dict()

    assert data["logoUrl"] == ""
    assert data["heroImage"] is None
    assert data["voiceHints"] == []
    assert data["snippets"] == {}
