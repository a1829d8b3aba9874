"""Utility helpers shared by the scan detector modules."""

from __future__ import annotations

import ipaddress
from typing import Union

ALERT_TEMPLATE = "{src} may have attempted a port scan attack on {dst} ({count} packets sent)."


def format_ip(value: Union[bytes, bytearray, str]) -> str:
    """Convert a raw IP buffer into a printable, dot-joined string of byte values."""
    if isinstance(value, (bytes, bytearray)):
        return ".".join(str(b & 0xFF) for b in value)
    return str(value)


def parse_ip(text: str) -> bytes:
    """Return the packed bytes of an IPv4 or IPv6 address in conventional notation."""
    return ipaddress.ip_address(text).packed


__all__ = ["ALERT_TEMPLATE", "format_ip", "parse_ip"]
