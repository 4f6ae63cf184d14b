import ipaddress
import logging
from typing import Mapping, Optional

from .config import DEFAULT_CLIENT_IP

log = logging.getLogger("VisitTracker.IpExtractor")

# Checked in order; the first syntactically valid address wins
PROXY_HEADERS = ('X-Forwarded-For', 'X-Real-IP')


def is_valid_ip(value: Optional[str]) -> bool:
    """Strict IPv4/IPv6 syntax check. No surrounding whitespace, no ports, no zone ids."""
    if not isinstance(value, str) or not value or value != value.strip() or '%' in value:
        return False
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def extract_client_ip(headers: Mapping[str, str], remote: Optional[str] = None) -> str:
    """
    Pick the visitor address from proxy headers, then the peer address.

    Only the first entry of X-Forwarded-For is considered (the client end of
    the proxy chain). Ingestion never fails on an unusable address: when no
    candidate is valid the DEFAULT_CLIENT_IP sentinel is returned.

    Args:
        headers: Case-insensitive request headers (aiohttp's CIMultiDictProxy works)
        remote: Address of the directly connected peer, if known

    Returns:
        A valid IP address string
    """
    candidates = []
    for header in PROXY_HEADERS:
        value = headers.get(header)
        if value:
            candidates.append(value.split(',')[0].strip())
    if remote:
        candidates.append(remote.strip())

    for candidate in candidates:
        if is_valid_ip(candidate):
            return candidate
        log.debug(f"Skipping unusable client address candidate: '{candidate}'")

    return DEFAULT_CLIENT_IP
