"""Client identity resolution for rate limiting.

A request is attributed either to an authenticated principal (``user:<id>``)
or to its network address (``ip:<address>``). Addresses are normalised so
that alternative spellings of one client cannot obtain separate budgets:

- IPv4-mapped IPv6 (``::ffff:1.2.3.4``) collapses to the IPv4 form.
- IPv6 addresses collapse to their /N network (default /56), since a single
  subscriber usually controls a whole prefix.
- Textual variants (``2001:DB8::1`` vs ``2001:db8:0::1``) compress to one
  canonical form.
"""

from __future__ import annotations

import hashlib
import ipaddress
from dataclasses import dataclass

UNKNOWN_ADDRESS = "unknown"


@dataclass(frozen=True)
class ClientIdentity:
    """Who a request is counted against.

    Attributes:
        kind: ``"user"`` for authenticated principals, ``"ip"`` otherwise.
        value: Principal id or normalised address.
    """

    kind: str
    value: str

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.value}"

    @property
    def key_hash(self) -> str:
        """Hash of the identity key for logging without exposing it."""
        return hashlib.sha256(self.key.encode()).hexdigest()[:16]


def normalize_address(address: str | None, *, ipv6_subnet: int = 56) -> str:
    """Return the canonical rate-limit form of a client address.

    Args:
        address: Raw peer address (may be None when unknown).
        ipv6_subnet: Prefix length IPv6 addresses are reduced to.

    Returns:
        Canonical address string; unparsable input is returned stripped.

    Examples:
        >>> normalize_address("::ffff:10.0.0.1")
        '10.0.0.1'
        >>> normalize_address("2001:db8:abcd:12ff::1")
        '2001:db8:abcd:1200::/56'
    """
    if not address:
        return UNKNOWN_ADDRESS

    candidate = address.strip()
    # Zone ids (fe80::1%eth0) and bracketed forms are not part of the address
    candidate = candidate.strip("[]").split("%", 1)[0]
    try:
        parsed = ipaddress.ip_address(candidate)
    except ValueError:
        return candidate or UNKNOWN_ADDRESS

    if isinstance(parsed, ipaddress.IPv6Address):
        mapped = parsed.ipv4_mapped
        if mapped is not None:
            return str(mapped)
        network = ipaddress.IPv6Network(f"{parsed}/{ipv6_subnet}", strict=False)
        return network.with_prefixlen

    return str(parsed)


def address_identity(address: str | None, *, ipv6_subnet: int = 56) -> ClientIdentity:
    return ClientIdentity(kind="ip", value=normalize_address(address, ipv6_subnet=ipv6_subnet))


def principal_identity(principal_id: str) -> ClientIdentity:
    return ClientIdentity(kind="user", value=principal_id)
