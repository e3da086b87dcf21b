"""URL validation with SSRF protection.

Blocks non-HTTP schemes, well-known internal hostnames and literal IP
addresses inside private or reserved ranges. Hostnames are not resolved
here, so DNS names that point at internal addresses pass this check.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from urllib.parse import urlsplit

import httpx

from field_scraper.errors import ScraperError, SecurityError, ValidationError
from field_scraper.models import Failure, UrlCheck

logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2048

ALLOWED_SCHEMES = frozenset({"http", "https"})

BLOCKED_HOSTNAMES = frozenset({
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "metadata.google.internal",
    "169.254.169.254",
})

PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
)

_UNSAFE_CHARS = re.compile(r"[\s\x00-\x1f\x7f]")


class UrlSecurityValidator:
    """Validates caller URLs before any network work happens."""

    def validate(self, raw_url: str | None) -> UrlCheck:
        try:
            url = check_url(raw_url)
        except ScraperError as exc:
            logger.info("Rejected URL %r: %s", raw_url, exc)
            return UrlCheck(error=Failure.from_exception(exc))
        return UrlCheck(url=url)


def check_url(raw_url: str | None) -> str:
    """Return the URL if it is safe to fetch, otherwise raise."""
    url = (raw_url or "").strip()
    if not url:
        raise ValidationError("URL cannot be blank")
    if len(url) > MAX_URL_LENGTH:
        raise ValidationError(f"URL too long (max {MAX_URL_LENGTH} characters)")

    if _UNSAFE_CHARS.search(url):
        raise ValidationError("Invalid URL format: contains whitespace or control characters")
    try:
        parts = urlsplit(url)
        parts.port  # noqa: B018 - raises on an out-of-range port
    except ValueError as exc:
        raise ValidationError(f"Invalid URL format: {exc}") from exc

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise ValidationError(f"URL scheme '{scheme}' not allowed. Must be HTTP or HTTPS")

    host = parts.hostname or ""
    if not host:
        raise ValidationError("URL must have a host")

    # the same host check the HTTP client applies, IDNA encoding included
    try:
        httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ValidationError(f"Invalid URL format: {exc}") from exc

    # "localhost." is the fully-qualified form of "localhost"
    if host.endswith("."):
        host = host[:-1]

    if host.lower() in BLOCKED_HOSTNAMES:
        raise SecurityError(f"Access to host '{host}' is not allowed")

    if is_private_address(host):
        raise SecurityError(f"Access to private IP address '{host}' is not allowed")

    return url


def is_private_address(host: str) -> bool:
    """True when *host* is a literal IP inside one of the blocked ranges."""
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False

    mapped = getattr(address, "ipv4_mapped", None)
    if mapped is not None:
        address = mapped
    return any(address.version == net.version and address in net for net in PRIVATE_NETWORKS)
