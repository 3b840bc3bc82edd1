"""
URL normalization and SSRF protection.

Every URL the pipeline fetches (browser navigations, sub-requests and search
requests) passes through ``assert_public_hostname`` first.

Example:
    >>> url = normalize_url("example.com/shop#top")
    >>> url
    'https://example.com/shop'
    >>> assert_public_hostname(url)
"""

import ipaddress
import re
import socket
from typing import Optional, Union
from urllib.parse import urljoin, urlsplit, urlunsplit

from brand_ingest.utils.retry import BlockedUrlError, InvalidUrlError

BLOCKED_HOSTNAMES = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1"})

PRIVATE_IPV4_PATTERNS = (
    re.compile(r"^10\."),
    re.compile(r"^172\.(1[6-9]|2\d|3[01])\."),
    re.compile(r"^192\.168\."),
    re.compile(r"^169\.254\."),
)

PRIVATE_IPV6_PREFIXES = ("fc", "fd", "fe80")

DANGEROUS_SCHEMES = ("file:", "javascript:", "data:")
ALLOWED_SCHEMES = ("http", "https")
SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
OTHER_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
# Dotted, shorthand, decimal, hex and octal IPv4 forms the browser accepts
NUMERIC_HOST_PATTERN = re.compile(r"^(0x[0-9a-f]*|\d+)(\.(0x[0-9a-f]*|\d+)){0,3}\.?$", re.IGNORECASE)


def normalize_url(raw: str) -> str:
    """
    Normalize user input into an absolute http(s) URL without fragment.

    Raises:
        InvalidUrlError: For empty input, dangerous schemes, non-http(s)
            schemes or URLs without a host.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidUrlError("URL is required")

    candidate = raw.strip()
    if candidate.lower().startswith(DANGEROUS_SCHEMES):
        raise InvalidUrlError(f"Unsupported URL scheme: {candidate.split(':', 1)[0]}")

    if not SCHEME_PATTERN.match(candidate):
        if OTHER_SCHEME_PATTERN.match(candidate):
            raise InvalidUrlError(f"Unsupported URL scheme: {candidate.split(':', 1)[0]}")
        candidate = f"https://{candidate}"

    try:
        parts = urlsplit(candidate)
        # Accessing port validates it
        parts.port
    except ValueError as e:
        raise InvalidUrlError(f"Invalid URL: {raw.strip()}", cause=e) from e

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidUrlError(f"Unsupported URL scheme: {parts.scheme}")
    if not parts.hostname:
        raise InvalidUrlError(f"URL has no host: {raw.strip()}")

    path = parts.path or "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc, path, parts.query, ""))


def _hostname(url: str) -> str:
    try:
        host = urlsplit(url).hostname or ""
    except ValueError as e:
        raise InvalidUrlError(f"Invalid URL: {url}", cause=e) from e
    return host.strip("[]").lower()


def canonical_ip(host: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    """
    Parse an IP literal the way the browser does, or None for a DNS name.

    ``127.1``, ``2130706433``, ``0x7f000001`` and ``0177.0.0.1`` all map to
    ``127.0.0.1``; IPv4-mapped IPv6 addresses map to their IPv4 form.
    """
    if ":" in host:
        try:
            address = ipaddress.IPv6Address(host.split("%", 1)[0])
        except ValueError:
            return None
        return address.ipv4_mapped or address
    if not NUMERIC_HOST_PATTERN.match(host):
        return None
    try:
        return ipaddress.IPv4Address(socket.inet_aton(host.rstrip(".")))
    except OSError:
        return None


def is_blocked_hostname(hostname: str) -> bool:
    """Whether a bare hostname targets loopback or a private network."""
    host = hostname.strip("[]").lower()
    if not host or host in BLOCKED_HOSTNAMES:
        return True
    if any(pattern.match(host) for pattern in PRIVATE_IPV4_PATTERNS):
        return True
    if ":" in host and host.startswith(PRIVATE_IPV6_PREFIXES):
        return True
    address = canonical_ip(host)
    if address is not None:
        return address.is_private or address.is_loopback or address.is_link_local or address.is_unspecified
    return False


def assert_public_hostname(url: str) -> None:
    """
    Reject URLs whose host is loopback, private or link-local.

    Raises:
        BlockedUrlError: If the host is not publicly routable.
    """
    host = _hostname(url)
    if is_blocked_hostname(host):
        raise BlockedUrlError(f"Blocked hostname: {host or '<empty>'}")


def is_public_url(url: str) -> bool:
    """Non-raising variant: http(s) URL with a public host."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return False
    return not is_blocked_hostname(parts.hostname or "")


def is_same_origin(url: str, base: str) -> bool:
    """Compare scheme, host and port of two URLs."""
    try:
        a, b = urlsplit(url), urlsplit(base)
        return (a.scheme, a.hostname, a.port) == (b.scheme, b.hostname, b.port)
    except ValueError:
        return False


def resolve_url(href: Optional[str], base: str) -> Optional[str]:
    """Resolve ``href`` against ``base``; None for empty or non-http(s) links."""
    if not href or not isinstance(href, str):
        return None
    href = href.strip()
    if not href or href.startswith("#") or href.lower().startswith(DANGEROUS_SCHEMES + ("mailto:", "tel:")):
        return None
    try:
        resolved = urljoin(base, href)
        parts = urlsplit(resolved)
    except ValueError:
        return None
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.hostname:
        return None
    return resolved


def hostname_of(url: str) -> str:
    """Lower-cased hostname, empty string if unparseable."""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""
