"""
Unit tests for the homepage brand asset extractors: name, logo, hero image.
"""

import pytest

from brand_ingest.extractors.brand_name import clean_title, extract_brand_name, name_from_hostname
from brand_ingest.extractors.dom import parse_html
from brand_ingest.extractors.hero_image import extract_hero_image, is_hero_image_url
from brand_ingest.extractors.logo import extract_logo, favicon_url, is_valid_logo_url

BASE = "https://acme.com/"

# =============================================================================
# Brand name
# =============================================================================

def test_brand_name_from_og_site_name(homepage_soup):
    assert extract_brand_name(homepage_soup, "https://mybrand.com/") == "MyBrand"

def test_brand_name_from_title():
    soup = parse_html("<title>Acme Coffee - Home</title>")
    assert extract_brand_name(soup, BASE) == "Acme Coffee"

def test_brand_name_from_hostname():
    soup = parse_html("<html><body></body></html>")
    assert extract_brand_name(soup, "https://www.acme-coffee.com/") == "Acme-coffee"

def test_brand_name_overlong_site_name_ignored():
    soup = parse_html(f'<meta property="og:site_name" content="{"x" * 80}"><title>Acme</title>')
    assert extract_brand_name(soup, BASE) == "Acme"

@pytest.mark.parametrize("title, expected", [
    ("Acme | Official Store", "Acme"),
    ("Acme Coffee - Home", "Acme Coffee"),
    ("Acme - Great coffee beans for everyone", "Acme"),
    ("Acme", "Acme"),
])
def test_clean_title(title, expected):
    assert clean_title(title) == expected

def test_name_from_hostname_unparsable():
    assert name_from_hostname("") == "Unknown Brand"

# =============================================================================
# Logo
# =============================================================================

def test_logo_from_schema_organization(homepage_soup):
    assert extract_logo(homepage_soup, "https://mybrand.com/", "MyBrand") == "https://mybrand.com/static/logo.png"

def test_logo_from_header_img():
    soup = parse_html("""
        <header><a href="/"><img class="header__logo" src="/assets/acme-mark.svg" alt="Acme"></a></header>
        <main><img src="/assets/banner-summer.jpg" class="hero"></main>
    """)
    assert extract_logo(soup, BASE, "Acme") == "https://acme.com/assets/acme-mark.svg"

def test_logo_rejects_banner_candidates_and_uses_favicon():
    soup = parse_html("""
        <html><head><link rel="apple-touch-icon" href="/apple-touch-icon.png"></head>
        <body><div class="logo"><img src="/img/hero-banner-logo.jpg"></div></body></html>
    """)
    assert extract_logo(soup, BASE) == "https://acme.com/apple-touch-icon.png"

def test_logo_last_resort_favicon_ico():
    soup = parse_html("<html><body><p>nothing</p></body></html>")
    assert extract_logo(soup, BASE) == "https://acme.com/favicon.ico"
    assert favicon_url(soup, BASE) == "https://acme.com/favicon.ico"

@pytest.mark.parametrize("url, expected", [
    ("https://acme.com/logo.svg", True),
    ("https://acme.com/product-shot.png", False),
    ("https://acme.com/slide-1.jpg", False),
    ("/logo.svg", False),
    ("", False),
])
def test_is_valid_logo_url(url, expected):
    assert is_valid_logo_url(url) is expected

# =============================================================================
# Hero image
# =============================================================================

def test_hero_from_hero_section(homepage_soup):
    hero = extract_hero_image(homepage_soup, "https://mybrand.com/", "MyBrand")
    assert hero.url == "https://mybrand.com/static/hero-banner.jpg"
    assert hero.alt_text == "Morning pour"

def test_hero_from_og_image_with_generated_alt():
    soup = parse_html('<meta property="og:image" content="https://cdn.acme.com/featured-hero.jpg">')
    hero = extract_hero_image(soup, BASE, "Acme")
    assert hero.url == "https://cdn.acme.com/featured-hero.jpg"
    assert hero.alt_text == "Acme hero image"

def test_hero_ignores_logos_and_small_images():
    soup = parse_html("""
        <img class="logo" src="/logo.png">
        <img src="/icons/cart.png" width="24" height="24">
    """)
    assert extract_hero_image(soup, BASE) is None

def test_hero_from_picture_source():
    soup = parse_html("""
        <div class="carousel">
          <picture class="banner">
            <source srcset="https://cdn.acme.com/spring-1600.webp 1600w">
            <img src="https://cdn.acme.com/spring-800.jpg" alt="Spring collection">
          </picture>
        </div>
    """)
    hero = extract_hero_image(soup, BASE)
    assert hero.url == "https://cdn.acme.com/spring-1600.webp"
    assert hero.alt_text == "Spring collection"

@pytest.mark.parametrize("url, expected", [
    ("https://acme.com/a.jpg?w=1600", True),
    ("https://acme.com/images/spring", True),
    ("https://res.cloudinary.com/acme/spring", True),
    ("https://acme.com/page", False),
    ("data:image/png;base64,xx", False),
])
def test_is_hero_image_url(url, expected):
    assert is_hero_image_url(url) is expected
