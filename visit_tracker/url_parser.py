import ipaddress
import re
from typing import NamedTuple
from urllib.parse import urlsplit

from .config import MAX_URL_LENGTH
from .results import Result

SCHEME_REGEX = re.compile(r'^[A-Za-z][A-Za-z0-9+.-]*$')
HOSTNAME_REGEX = re.compile(r'^[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)*\.?$')
WHITESPACE_REGEX = re.compile(r'[\s\x00-\x1f\x7f]')


class ParsedUrl(NamedTuple):
    url: str
    domain: str
    path: str


def _extract_host(netloc: str) -> str:
    """Host part of a netloc as supplied: userinfo and port removed, case untouched."""
    host = netloc.rpartition('@')[2]
    if host.startswith('['):
        end = host.find(']')
        return host[:end + 1] if end != -1 else ''
    return host.partition(':')[0]


def _is_valid_host(host: str) -> bool:
    if not host:
        return False
    if host.startswith('['):
        try:
            ipaddress.IPv6Address(host[1:-1])
        except ValueError:
            return False
        return True
    return bool(HOSTNAME_REGEX.match(host))


def parse_url(raw: str) -> Result[ParsedUrl]:
    """
    Split a page URL into the (domain, path) pair visits are grouped by.

    The path keeps the query string ("/search?q=x") and falls back to "/" when
    the URL has no path. Fragments are dropped.

    Args:
        raw: URL as sent by the tracking snippet

    Returns:
        Result holding a ParsedUrl, or an INVALID_ARGUMENT failure
    """
    if not isinstance(raw, str) or not raw or WHITESPACE_REGEX.search(raw):
        return Result.failure(f"Invalid URL: {raw}")

    try:
        parts = urlsplit(raw)
        # Accessing .port validates it (raises ValueError when out of range or not numeric)
        parts.port
    except ValueError:
        return Result.failure(f"Invalid URL: {raw}")

    host = _extract_host(parts.netloc)
    if not SCHEME_REGEX.match(parts.scheme) or not _is_valid_host(host):
        return Result.failure(f"Invalid URL: {raw}")

    if len(raw) > MAX_URL_LENGTH:
        return Result.failure(f"URL too long (max {MAX_URL_LENGTH} characters)")

    path = parts.path or '/'
    if parts.query:
        path = f"{path}?{parts.query}"

    return Result.success(ParsedUrl(url=raw, domain=host, path=path))
