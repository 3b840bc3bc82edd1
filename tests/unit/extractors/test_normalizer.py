import pytest

from brand_ingest.extractors.normalizer import (
    finalize_catalog,
    is_valid_image_url,
    merge_and_dedupe_products,
)
from brand_ingest.models.schemas import Product, ProductCandidate


@pytest.mark.parametrize("url", [
    "https://cdn.shop.com/mug.jpg",
    "https://cdn.shop.com/mug.JPEG?v=12",
    "https://cdn.shop.com/mug.webp",
    "https://cdn.shop.com/mug.avif",
    "https://shop.com/products/mug",
    "https://cdn.shop.com/product-images/12345",
    "https://cdn.shop.com/products/logo-mug.png",
])
def test_valid_image_urls(url):
    assert is_valid_image_url(url)

@pytest.mark.parametrize("url", [
    None,
    "",
    "/mug.jpg",
    "ftp://cdn.shop.com/mug.jpg",
    "https://cdn.shop.com/logo.png",
    "https://cdn.shop.com/placeholder.png",
    "https://cdn.shop.com/1x1.gif",
    "https://cdn.shop.com/spacer.gif",
    "https://cdn.shop.com/cart-icon.png",
    "https://cdn.shop.com/page",
])
def test_invalid_image_urls(url):
    assert not is_valid_image_url(url)

def candidate(title, url="https://a.com/p/1", **kwargs):
    kwargs.setdefault("image", "https://a.com/cdn/item.jpg")
    return ProductCandidate(title=title, url=url, **kwargs)

def test_merge_keeps_first_occurrence():
    first = [candidate("Mug", price="$10.00")]
    second = [candidate("MUG", price="$12.00"), candidate("Mug", url="https://a.com/p/2")]

    merged = merge_and_dedupe_products(first, second)

    assert [(p.title, p.price, p.url) for p in merged] == [
        ("Mug", "$10.00", "https://a.com/p/1"),
        ("Mug", "N/A", "https://a.com/p/2"),
    ]

def test_finalize_catalog_caps_and_freezes():
    candidates = [candidate(f"Item {i}", url=f"https://a.com/p/{i}") for i in range(12)]

    catalog = finalize_catalog(candidates, limit=20)

    assert len(catalog) == 8
    assert all(isinstance(p, Product) for p in catalog)
    assert len({p.id for p in catalog}) == 8

def test_finalize_catalog_respects_smaller_limit():
    candidates = [candidate(f"Item {i}", url=f"https://a.com/p/{i}") for i in range(5)]
    assert [p.title for p in finalize_catalog(candidates, limit=3)] == ["Item 0", "Item 1", "Item 2"]

def test_finalize_catalog_drops_products_without_usable_image():
    candidates = [
        candidate("No image", url="https://a.com/p/0", image=""),
        candidate("Logo only", url="https://a.com/p/1", image="https://a.com/logo.png"),
        *[candidate(f"Item {i}", url=f"https://a.com/p/{i}") for i in range(2, 12)],
    ]

    catalog = finalize_catalog(candidates)

    assert len(catalog) == 8
    assert catalog[0].title == "Item 2"
    assert all(p.image.startswith("https://") for p in catalog)
