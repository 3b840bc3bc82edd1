"""
Locale-aware price parsing.

Turns the free-form price text found on merchant pages ("From $79.99",
"99,99 €", "USD 1,299.00", "$99 - $149") into one display string made of a
currency prefix and the amount as written on the page.

Features:
    - Noise phrase stripping ("from", "starting at", "as low as")
    - Range collapsing to the first value
    - Priority-ordered currency pattern table (symbol > suffix > ISO code)
    - Decimal/thousands separator disambiguation
    - Plausibility bound (0 < value < 10,000,000)

Example:
    >>> clean_and_extract_price("From $79.99")
    '$79.99'
    >>> clean_and_extract_price("99,99 €")
    '€99,99'
    >>> clean_and_extract_price("call us") is None
    True
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Union

# =============================================================================
# Constants
# =============================================================================

MAX_PLAUSIBLE_PRICE = 10_000_000

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
    "KRW": "₩",
    "BRL": "R$",
    "RUB": "₽",
    "TRY": "₺",
    "ILS": "₪",
    "THB": "฿",
    "VND": "₫",
    "PHP": "₱",
    "UAH": "₴",
    "NGN": "₦",
    "PLN": "zł",
}

ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND"})

ISO_CODES = (
    "USD", "EUR", "GBP", "JPY", "INR", "CAD", "AUD", "NZD", "CHF", "SEK",
    "NOK", "DKK", "PLN", "CZK", "HUF", "BRL", "MXN", "CNY", "HKD", "SGD",
    "KRW", "RUB", "TRY", "ZAR", "ILS", "AED", "SAR", "THB", "VND", "PHP",
)

# Longest symbols first so "R$" is tried before "$"
PREFIX_SYMBOLS = (
    "US$", "CA$", "AU$", "NZ$", "HK$", "MX$", "R$", "C$", "A$", "S$",
    "$", "€", "£", "¥", "₹", "₩", "₽", "₺", "₪", "฿", "₫", "₱", "₴", "₦",
)

SUFFIX_SYMBOLS = ("€", "£", "zł", "kr", "Kč", "₽", "₺", "₫", "Ft", "lei")

AMOUNT = r"(\d+(?:[.,]\d+)*)"

NOISE_PATTERN = re.compile(
    r"\b(?:starting\s+(?:at|from)|starts\s+at|as\s+low\s+as|from|now|only|sale\s+price|price)\b:?",
    re.IGNORECASE,
)

RANGE_PATTERN = re.compile(r"\s+(?:-|–|—|to)\s+|(?<=\d)\s*[-–—]\s*(?=\D{0,4}\d)", re.IGNORECASE)


@dataclass(frozen=True)
class PricePattern:
    """One row of the currency pattern table."""

    regex: re.Pattern
    score: int
    # Index of the group holding the currency marker, None for bare numbers
    currency_group: Optional[int]
    amount_group: int
    kind: str


def _build_patterns() -> list[PricePattern]:
    iso = "|".join(ISO_CODES)
    patterns: list[PricePattern] = []

    prefix = "|".join(re.escape(s) for s in PREFIX_SYMBOLS)
    patterns.append(PricePattern(
        regex=re.compile(rf"({prefix})\s?{AMOUNT}"),
        score=100, currency_group=1, amount_group=2, kind="symbol",
    ))

    suffix = "|".join(re.escape(s) for s in SUFFIX_SYMBOLS)
    patterns.append(PricePattern(
        regex=re.compile(rf"{AMOUNT}\s?({suffix})(?![A-Za-z])"),
        score=80, currency_group=2, amount_group=1, kind="symbol",
    ))

    patterns.append(PricePattern(
        regex=re.compile(rf"\b({iso})\s?{AMOUNT}", re.IGNORECASE),
        score=70, currency_group=1, amount_group=2, kind="code",
    ))

    patterns.append(PricePattern(
        regex=re.compile(rf"{AMOUNT}\s?({iso})\b", re.IGNORECASE),
        score=60, currency_group=2, amount_group=1, kind="code",
    ))

    patterns.append(PricePattern(
        regex=re.compile(AMOUNT),
        score=10, currency_group=None, amount_group=1, kind="bare",
    ))
    return patterns


PRICE_PATTERNS = _build_patterns()


# =============================================================================
# Amount Parsing
# =============================================================================

def parse_amount(text: str) -> Optional[float]:
    """
    Parse a numeric amount with locale-aware separators.

    Rules:
        - Both "." and "," present: the right-most one is the decimal mark.
        - Only ",": a single comma followed by exactly two digits is a
          decimal comma, otherwise commas group thousands.
        - Only ".": several dots group thousands, a single dot is decimal.
    """
    if not text:
        return None
    s = text.strip()
    has_dot, has_comma = "." in s, "," in s

    if has_dot and has_comma:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif has_comma:
        head, _, tail = s.rpartition(",")
        if s.count(",") == 1 and len(tail) == 2:
            s = f"{head}.{tail}"
        else:
            s = s.replace(",", "")
    elif has_dot and s.count(".") > 1:
        s = s.replace(".", "")

    try:
        return float(s)
    except ValueError:
        return None


def is_plausible(value: Optional[float]) -> bool:
    return value is not None and 0 < value < MAX_PLAUSIBLE_PRICE


def currency_prefix(marker: str) -> str:
    """Display prefix for a symbol or ISO code."""
    code = marker.upper()
    if code in CURRENCY_SYMBOLS:
        return CURRENCY_SYMBOLS[code]
    if code in ISO_CODES:
        return f"{code} "
    return marker


def _strip_noise(raw: str) -> str:
    text = raw.replace("\xa0", " ").replace(" ", " ")
    text = NOISE_PATTERN.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


def _first_of_range(text: str) -> str:
    parts = RANGE_PATTERN.split(text, maxsplit=1)
    head = parts[0].strip()
    return head if re.search(r"\d", head) else text


# =============================================================================
# Public API
# =============================================================================

def clean_and_extract_price(raw: Any, currency: Optional[str] = None) -> Optional[str]:
    """
    Extract a display price from free-form text.

    Args:
        raw: Price text (numbers are accepted too).
        currency: Optional ISO code used when the text has no currency marker.

    Returns:
        Currency-prefixed amount, the bare amount when no currency is known,
        or None when nothing parses to a plausible positive value.
    """
    if raw is None:
        return None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return format_price(raw, currency)
    if not isinstance(raw, str) or not raw.strip():
        return None

    text = _first_of_range(_strip_noise(raw))
    if not text:
        return None

    for pattern in PRICE_PATTERNS:
        for match in pattern.regex.finditer(text):
            amount_text = match.group(pattern.amount_group)
            if not is_plausible(parse_amount(amount_text)):
                continue
            if pattern.currency_group is not None:
                return f"{currency_prefix(match.group(pattern.currency_group))}{amount_text}"
            if currency:
                return f"{currency_prefix(currency)}{amount_text}"
            return amount_text
    return None


def format_price(value: Union[str, int, float, None], currency: Optional[str] = None) -> Optional[str]:
    """
    Format a structured-data price (number or numeric string) for display.

    Example:
        >>> format_price("49.99", "USD")
        '$49.99'
        >>> format_price(1500, "JPY")
        '¥1,500'
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        if not re.fullmatch(r"\s*\d+(?:\.\d+)?\s*", value):
            return clean_and_extract_price(value, currency)
        number: Optional[float] = float(value)
    else:
        number = float(value)
    if not is_plausible(number):
        return None

    code = (currency or "").strip().upper()
    decimals = 0 if code in ZERO_DECIMAL_CURRENCIES else 2
    amount = f"{number:,.{decimals}f}"
    if not code:
        return amount
    return f"{currency_prefix(code)}{amount}"
