"""IP address value type used as the endpoints of a connection key."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from enum import Enum, unique
from typing import Union

from .utils import format_ip, parse_ip


@unique
class AddressFamily(Enum):
    IPV4 = 4
    IPV6 = 6

    @property
    def size(self) -> int:
        return 4 if self is AddressFamily.IPV4 else 16


@dataclass(frozen=True)
class Address:
    """An IPv4 (4 bytes) or IPv6 (16 bytes) address, compared exactly as decoded.

    IPv4-mapped IPv6 addresses keep their IPv6 tag, so ``::ffff:1.2.3.4`` and
    ``1.2.3.4`` are distinct values.
    """

    family: AddressFamily
    packed: bytes

    def __post_init__(self) -> None:
        packed = bytes(self.packed)
        if len(packed) != self.family.size:
            raise ValueError(
                f"{self.family.name} address needs {self.family.size} bytes, got {len(packed)}"
            )
        object.__setattr__(self, "packed", packed)

    # Constructors --------------------------------------------------------
    @classmethod
    def v4(cls, packed: bytes) -> "Address":
        return cls(AddressFamily.IPV4, packed)

    @classmethod
    def v6(cls, packed: bytes) -> "Address":
        return cls(AddressFamily.IPV6, packed)

    @classmethod
    def from_string(cls, text: str) -> "Address":
        packed = parse_ip(text)
        family = AddressFamily.IPV4 if len(packed) == 4 else AddressFamily.IPV6
        return cls(family, packed)

    # Rendering -----------------------------------------------------------
    def to_ip_address(self) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address]:
        if self.family is AddressFamily.IPV4:
            return ipaddress.IPv4Address(self.packed)
        return ipaddress.IPv6Address(self.packed)

    def __str__(self) -> str:
        return format_ip(self.packed)


__all__ = ["Address", "AddressFamily"]
