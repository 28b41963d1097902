"""Rate limiting for the Socia backend.

X-Forwarded-For is honoured only when the direct peer is one of the
trusted proxy networks from settings, so clients cannot spoof their key.
"""

import ipaddress
import logging
from functools import lru_cache

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings

logger = logging.getLogger("socia.rate_limit")

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


def parse_networks(cidrs: list[str]) -> list[Network]:
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr.strip(), strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr!r}")
    return networks


@lru_cache
def trusted_networks() -> tuple[Network, ...]:
    return tuple(parse_networks(get_settings().trusted_proxy_cidrs))


def is_trusted_proxy(ip_str: str, networks=None) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    if networks is None:
        networks = trusted_networks()
    return any(addr in network for network in networks)


def get_client_ip(request) -> str:
    """Client IP, using the leftmost X-Forwarded-For entry behind a trusted proxy."""
    direct_ip = get_remote_address(request)
    if is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            client_ip = forwarded_for.split(",")[0].strip()
            if client_ip:
                return client_ip
    return direct_ip


limiter = Limiter(key_func=get_client_ip)
