"""
Host address discovery for the post-install summary.
"""

import ipaddress
import re
from typing import List, Optional

# RFC 1918 ranges only; CGNAT and link-local addresses are not reachable LAN URLs
PRIVATE_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
]

_INET_RE = re.compile(r"\binet (\d{1,3}(?:\.\d{1,3}){3})")


def is_private_ipv4(value: str) -> bool:
    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return False
    return address.version == 4 and any(address in net for net in PRIVATE_NETWORKS)


def host_ipv4_addresses(transport) -> List[str]:
    """List the host's IPv4 addresses (hostname -I, else ip addr)."""
    output, code = transport.run_command(["hostname", "-I"])
    candidates = output.split() if code == 0 else []

    if not candidates:
        output, code = transport.run_shell("ip -4 -o addr show 2>/dev/null")
        candidates = _INET_RE.findall(output) if code == 0 else []

    return candidates


def private_ipv4(transport) -> Optional[str]:
    """First private IPv4 address of the host, or None."""
    for candidate in host_ipv4_addresses(transport):
        if is_private_ipv4(candidate):
            return candidate
    return None
