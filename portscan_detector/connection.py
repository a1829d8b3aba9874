"""Directed source/destination pair used as the unit of aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .address import Address

if TYPE_CHECKING:  # pragma: no cover
    from .frame_decoder import IpHeaderInfo


@dataclass(frozen=True)
class ConnectionKey:
    src: Address
    dst: Address

    @classmethod
    def from_ip_header(cls, header: "IpHeaderInfo") -> "ConnectionKey":
        return cls(src=header.src, dst=header.dst)

    def reversed(self) -> "ConnectionKey":
        return ConnectionKey(src=self.dst, dst=self.src)


__all__ = ["ConnectionKey"]
