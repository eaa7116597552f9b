"""
IPv4 / IPv6 helpers: client IP resolution behind proxies, classification
and display formatting.

Proxy headers are taken at face value. Anyone can send X-Forwarded-For, so
the resolved address is informational only and must not be used for access
control.
"""
from __future__ import annotations

import ipaddress
from typing import Dict, Mapping, Optional

UNKNOWN_IP = "unknown"

# checked in order, first valid address wins
CLIENT_IP_HEADERS = (
    "cf-connecting-ip",      # Cloudflare
    "x-real-ip",             # nginx
    "x-forwarded-for",
    "x-forwarded",
    "x-cluster-client-ip",
    "forwarded-for",
    "forwarded",
)


def _parse(ip: Optional[str]):
    if not ip:
        return None
    try:
        return ipaddress.ip_address(ip.strip())
    except ValueError:
        return None


def is_valid_ip(ip: Optional[str]) -> bool:
    return _parse(ip) is not None


def is_ipv4(ip: Optional[str]) -> bool:
    return isinstance(_parse(ip), ipaddress.IPv4Address)


def is_ipv6(ip: Optional[str]) -> bool:
    return isinstance(_parse(ip), ipaddress.IPv6Address)


def is_loopback_ip(ip: Optional[str]) -> bool:
    addr = _parse(ip)
    return bool(addr and addr.is_loopback)


def is_private_ip(ip: Optional[str]) -> bool:
    addr = _parse(ip)
    if addr is None or addr.is_loopback:
        return False
    return addr.is_private and not addr.is_reserved


def is_reserved_ip(ip: Optional[str]) -> bool:
    addr = _parse(ip)
    if addr is None:
        return False
    return bool(
        addr.is_loopback
        or addr.is_reserved
        or addr.is_link_local
        or addr.is_multicast
        or addr.is_unspecified
    )


def is_public_ip(ip: Optional[str]) -> bool:
    addr = _parse(ip)
    return bool(addr and addr.is_global)


def _first_token(value: str) -> str:
    token = value.split(",")[0].strip()
    # RFC 7239: Forwarded: for=1.2.3.4;proto=https
    if "=" in token:
        for part in token.split(";"):
            key, _, val = part.partition("=")
            if key.strip().lower() == "for":
                token = val.strip().strip('"')
                break
    if token.startswith("[") and "]" in token:
        token = token[1:token.index("]")]
    return token


def resolve_client_ip(headers: Mapping[str, str], remote_addr: Optional[str] = None) -> str:
    """
    Best guess of the client address.

    Header names are matched case-insensitively. Comma separated values
    contribute their first entry only. Falls back to the raw remote address,
    then to "unknown".
    """
    lowered = {k.lower(): v for k, v in headers.items()}

    for name in CLIENT_IP_HEADERS:
        raw = lowered.get(name)
        if not raw:
            continue
        candidate = _first_token(raw)
        if is_valid_ip(candidate):
            return candidate

    if remote_addr:
        return remote_addr
    return UNKNOWN_IP


def format_ip(ip: Optional[str]) -> str:
    addr = _parse(ip)
    if addr is None:
        return ip or "Unknown IP"
    # compressed form for IPv6, unchanged for IPv4
    return str(addr)


def ip_info(ip: Optional[str]) -> Dict[str, str]:
    addr = _parse(ip)
    if addr is None:
        return {
            "type": "Invalid",
            "version": "Unknown",
            "scope": "Invalid",
            "description": "Invalid IP Address",
            "formatted": ip or "Unknown IP",
        }

    if addr.is_loopback:
        scope, description = "Loopback", "Localhost/Loopback"
    elif is_reserved_ip(ip):
        scope, description = "Reserved", "Reserved Address"
    elif is_private_ip(ip):
        scope, description = "Private", "Private Network"
    else:
        scope, description = "Public", "Public Internet"

    return {
        "type": scope,
        "version": f"IPv{addr.version}",
        "scope": scope,
        "description": description,
        "formatted": str(addr),
    }


def anonymize_ip(ip: str) -> str:
    addr = _parse(ip)
    if isinstance(addr, ipaddress.IPv4Address):
        return str(ipaddress.ip_network(f"{addr}/24", strict=False).network_address)
    if isinstance(addr, ipaddress.IPv6Address):
        return str(ipaddress.ip_network(f"{addr}/64", strict=False).network_address)
    return ip


def in_same_subnet(ip1: str, ip2: str, cidr: int = 24) -> bool:
    a, b = _parse(ip1), _parse(ip2)
    if a is None or b is None or a.version != b.version:
        return False
    net = ipaddress.ip_network(f"{a}/{cidr}", strict=False)
    return b in net


def ip_ranges(ip: str) -> Dict[str, str]:
    addr = _parse(ip)
    if isinstance(addr, ipaddress.IPv4Address):
        return {
            "class_a": str(ipaddress.ip_network(f"{addr}/8", strict=False)),
            "class_b": str(ipaddress.ip_network(f"{addr}/16", strict=False)),
            "class_c": str(ipaddress.ip_network(f"{addr}/24", strict=False)),
        }
    if isinstance(addr, ipaddress.IPv6Address):
        return {
            "prefix_64": str(ipaddress.ip_network(f"{addr}/64", strict=False)),
            "prefix_48": str(ipaddress.ip_network(f"{addr}/48", strict=False)),
            "prefix_32": str(ipaddress.ip_network(f"{addr}/32", strict=False)),
        }
    return {}
