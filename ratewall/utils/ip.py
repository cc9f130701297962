"""Client address helpers."""
from __future__ import annotations

from starlette.requests import Request

MAPPED_IPV4_PREFIX = "::ffff:"


def normalize_ip(ip: str | None) -> str:
    """Collapse equivalent spellings of an address onto one table key.

    IPv4-mapped IPv6 addresses (``::ffff:203.0.113.5``) are reduced to the
    plain IPv4 form so both representations share ban, whitelist and counter
    state.
    """

    value = (ip or "").strip().lower()
    if value.startswith(MAPPED_IPV4_PREFIX) and "." in value:
        value = value[len(MAPPED_IPV4_PREFIX):]
    return value or "unknown"


def client_ip(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Return the normalized address of the caller."""

    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",", 1)[0].strip()
        if first_hop:
            return normalize_ip(first_hop)
    return normalize_ip(request.client.host if request.client else None)
