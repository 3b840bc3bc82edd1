"""
Voice snippet extraction: headlines, calls to action and tagline.
"""

from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup, Tag

from brand_ingest.extractors.dom import class_and_id, select_all, text_of
from brand_ingest.models.schemas import MAX_SNIPPET_ITEMS, MAX_VOICE_HINTS, BrandSnippets, cap_unique

CTA_SELECTOR = "button, a.button, a.btn, .cta, a[class*=btn-], a[class*=button-]"
TAGLINE_SELECTOR = ".tagline, .slogan, .subtitle, [class*=tagline], [class*=slogan]"

HINT_HEADLINES = 3
HINT_CTAS = 3
UNBIASED_HEADLINE_LIMIT = 3


@dataclass
class VoiceSnippets:
    """Voice hints plus the structured snippets they were built from."""

    voice_hints: list[str] = field(default_factory=list)
    snippets: BrandSnippets = field(default_factory=BrandSnippets)


def _in_hero(element: Tag) -> bool:
    parent = element.parent
    ident = class_and_id(parent) if isinstance(parent, Tag) else ""
    return "hero" in ident or "banner" in ident


def extract_headlines(soup: BeautifulSoup) -> list[str]:
    """
    Up to five h1/h2 texts. Headlines inside hero/banner containers are
    always kept; other headlines only while fewer than three were found.
    """
    headlines: list[str] = []
    for heading in soup.find_all(["h1", "h2"]):
        text = text_of(heading)
        if not 5 < len(text) < 200 or text in headlines:
            continue
        if _in_hero(heading) or len(headlines) < UNBIASED_HEADLINE_LIMIT:
            headlines.append(text)
    return headlines[:MAX_SNIPPET_ITEMS]


def extract_ctas(soup: BeautifulSoup) -> list[str]:
    ctas: list[str] = []
    for element in select_all(soup, CTA_SELECTOR):
        text = text_of(element)
        if 2 < len(text) < 50 and text not in ctas:
            ctas.append(text)
    return ctas[:MAX_SNIPPET_ITEMS]


def extract_tagline(soup: BeautifulSoup) -> Optional[str]:
    for element in select_all(soup, TAGLINE_SELECTOR):
        text = text_of(element)
        if 5 < len(text) < 150:
            return text
    return None


def extract_voice(soup: BeautifulSoup) -> VoiceSnippets:
    """Tagline first, then three headlines and three CTAs, deduplicated, at most ten hints."""
    headlines = extract_headlines(soup)
    ctas = extract_ctas(soup)
    tagline = extract_tagline(soup)

    hints = ([tagline] if tagline else []) + headlines[:HINT_HEADLINES] + ctas[:HINT_CTAS]
    return VoiceSnippets(
        voice_hints=cap_unique(hints, MAX_VOICE_HINTS),
        snippets=BrandSnippets(tagline=tagline, headlines=headlines, ctas=ctas),
    )
