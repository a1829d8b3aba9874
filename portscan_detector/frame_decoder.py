"""Decode captured frames down to the IP endpoints and the TCP flags.

Decoding is shallow: the link layer is walked far enough to find
an IPv4 or IPv6 header, the IP header is validated against the captured bytes,
and a TCP header is decoded when the IP layer announces one. Anything else is
reported as absent rather than as an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import dpkt

from .address import Address, AddressFamily

# Link-layer header types (pcap LINKTYPE_* values)
LINKTYPE_NULL = dpkt.pcap.DLT_NULL
LINKTYPE_ETHERNET = dpkt.pcap.DLT_EN10MB
LINKTYPE_RAW = 101
LINKTYPE_RAW_BSD = (12, 14)
LINKTYPE_LOOP = 108
LINKTYPE_LINUX_SLL = dpkt.pcap.DLT_LINUX_SLL

IPV6_HEADER_LEN = 40
IPV6_FRAGMENT_HEADER = 44

# BSD loopback address families; AF_INET6 differs per platform.
LOOPBACK_AF_INET = 2
LOOPBACK_AF_INET6 = frozenset({24, 28, 30})


class FrameDecodeError(ValueError):
    """Raised when a frame is malformed, as opposed to merely carrying no IP layer."""


@dataclass(frozen=True)
class IpHeaderInfo:
    src: Address
    dst: Address
    family: AddressFamily

    def __post_init__(self) -> None:
        if self.src.family is not self.family or self.dst.family is not self.family:
            raise ValueError("IP header addresses must match the header's address family")


@dataclass(frozen=True)
class TransportInfo:
    """TCP header fields relevant to scan detection."""

    src_port: int
    dst_port: int
    flags: int

    @property
    def rst(self) -> bool:
        return bool(self.flags & dpkt.tcp.TH_RST)

    @property
    def syn(self) -> bool:
        return bool(self.flags & dpkt.tcp.TH_SYN)


@dataclass(frozen=True)
class DecodedFrame:
    ip: Optional[IpHeaderInfo] = None
    transport: Optional[TransportInfo] = None

    @property
    def is_tcp_reset(self) -> bool:
        return self.transport is not None and self.transport.rst


NO_IP_FRAME = DecodedFrame()


# ----------------------------------------------------------------------
# Link layer
# ----------------------------------------------------------------------
def _unpack_link(link_cls, frame: bytes, name: str):
    try:
        return link_cls(frame)
    except (dpkt.UnpackError, ValueError, IndexError) as exc:
        raise FrameDecodeError(f"truncated or invalid {name} header ({len(frame)} bytes)") from exc


def _split_ethernet(frame: bytes) -> Tuple[Optional[int], bytes]:
    eth = _unpack_link(dpkt.ethernet.Ethernet, frame, "Ethernet")
    # dpkt keeps the outer type in `type`; the payload type is on the last tag.
    eth_type = eth.type
    offset = eth.__hdr_len__
    for tag in getattr(eth, "vlan_tags", ()):
        if not isinstance(tag, dpkt.ethernet.VLANtag8021Q):
            return None, b""
        eth_type = tag.type
        offset += tag.__hdr_len__
    return _family_for_eth_type(eth_type), frame[offset:]


def _split_linux_sll(frame: bytes) -> Tuple[Optional[int], bytes]:
    sll = _unpack_link(dpkt.sll.SLL, frame, "Linux cooked")
    return _family_for_eth_type(sll.ethtype), frame[sll.__hdr_len__:]


def _split_loopback(frame: bytes) -> Tuple[Optional[int], bytes]:
    # dpkt normalizes the host-order family to its BSD value.
    loop = _unpack_link(dpkt.loopback.Loopback, frame, "loopback")
    payload = frame[loop.__hdr_len__:]
    if loop.family == LOOPBACK_AF_INET:
        return 4, payload
    if loop.family in LOOPBACK_AF_INET6:
        return 6, payload
    return None, payload


def _split_raw(frame: bytes) -> Tuple[Optional[int], bytes]:
    if not frame:
        raise FrameDecodeError("empty raw IP frame")
    version = frame[0] >> 4
    if version not in (4, 6):
        raise FrameDecodeError(f"raw IP frame has version {version}")
    return version, frame


def _family_for_eth_type(eth_type: int) -> Optional[int]:
    if eth_type == dpkt.ethernet.ETH_TYPE_IP:
        return 4
    if eth_type == dpkt.ethernet.ETH_TYPE_IP6:
        return 6
    return None


_LINK_SPLITTERS: Dict[int, Callable[[bytes], Tuple[Optional[int], bytes]]] = {
    LINKTYPE_ETHERNET: _split_ethernet,
    LINKTYPE_LINUX_SLL: _split_linux_sll,
    LINKTYPE_NULL: _split_loopback,
    LINKTYPE_LOOP: _split_loopback,
    LINKTYPE_RAW: _split_raw,
}
for _alias in LINKTYPE_RAW_BSD:
    _LINK_SPLITTERS[_alias] = _split_raw

SUPPORTED_LINK_TYPES = frozenset(_LINK_SPLITTERS)


def is_supported_link_type(link_type: int) -> bool:
    return link_type in _LINK_SPLITTERS


# ----------------------------------------------------------------------
# Network and transport layers
# ----------------------------------------------------------------------
def _decode_ipv4(buf: bytes) -> DecodedFrame:
    try:
        packet = dpkt.ip.IP(buf)
    except dpkt.UnpackError as exc:
        raise FrameDecodeError("truncated or invalid IPv4 header") from exc

    if packet.v != 4:
        raise FrameDecodeError(f"IPv4 frame carries IP version {packet.v}")
    header_len = packet.hl << 2
    if packet.len < header_len or packet.len > len(buf):
        raise FrameDecodeError(
            f"IPv4 total length {packet.len} contradicts header length {header_len} "
            f"and captured length {len(buf)}"
        )

    header = IpHeaderInfo(
        src=Address.v4(packet.src),
        dst=Address.v4(packet.dst),
        family=AddressFamily.IPV4,
    )
    if packet.p != dpkt.ip.IP_PROTO_TCP or packet.offset:
        return DecodedFrame(ip=header)
    return DecodedFrame(ip=header, transport=_decode_tcp(packet.data))


def _decode_ipv6(buf: bytes) -> DecodedFrame:
    try:
        packet = dpkt.ip6.IP6(buf)
    except dpkt.UnpackError as exc:
        raise FrameDecodeError("truncated or invalid IPv6 header") from exc

    if packet.v != 6:
        raise FrameDecodeError(f"IPv6 frame carries IP version {packet.v}")
    if packet.plen > len(buf) - IPV6_HEADER_LEN:
        raise FrameDecodeError(
            f"IPv6 payload length {packet.plen} exceeds captured payload "
            f"{len(buf) - IPV6_HEADER_LEN}"
        )

    header = IpHeaderInfo(
        src=Address.v6(packet.src),
        dst=Address.v6(packet.dst),
        family=AddressFamily.IPV6,
    )
    if IPV6_FRAGMENT_HEADER in packet.extension_hdrs:
        return DecodedFrame(ip=header)
    # dpkt sets `p` only when the header chain names a payload protocol; ESP does not.
    if getattr(packet, "p", None) != dpkt.ip.IP_PROTO_TCP:
        return DecodedFrame(ip=header)
    return DecodedFrame(ip=header, transport=_decode_tcp(packet.data))


def _decode_tcp(segment) -> Optional[TransportInfo]:
    # dpkt leaves the payload as raw bytes when the TCP header fails to unpack,
    # e.g. a first fragment cut inside the TCP header.
    if not isinstance(segment, dpkt.tcp.TCP):
        return None
    return TransportInfo(src_port=segment.sport, dst_port=segment.dport, flags=segment.flags)


_IP_DECODERS: Dict[int, Callable[[bytes], DecodedFrame]] = {
    4: _decode_ipv4,
    6: _decode_ipv6,
}


# ----------------------------------------------------------------------
class FrameDecoder:
    """Decodes raw frames captured with a fixed link-layer header type."""

    def __init__(self, link_type: int = LINKTYPE_ETHERNET) -> None:
        if not is_supported_link_type(link_type):
            raise ValueError(f"Unsupported link-layer header type: {link_type}")
        self.link_type = link_type
        self._split = _LINK_SPLITTERS[link_type]

    def decode(self, raw_frame: bytes) -> DecodedFrame:
        """Return the decoded frame, or raise :class:`FrameDecodeError` if malformed.

        Frames whose link layer carries something other than IPv4/IPv6 decode
        to a frame with ``ip`` set to ``None``.
        """
        version, payload = self._split(bytes(raw_frame))
        if version is None:
            return NO_IP_FRAME
        return _IP_DECODERS[version](payload)


def decode(raw_frame: bytes, link_type: int = LINKTYPE_ETHERNET) -> DecodedFrame:
    return FrameDecoder(link_type).decode(raw_frame)


__all__ = [
    "DecodedFrame",
    "FrameDecodeError",
    "FrameDecoder",
    "IpHeaderInfo",
    "LINKTYPE_ETHERNET",
    "LINKTYPE_LINUX_SLL",
    "LINKTYPE_LOOP",
    "LINKTYPE_NULL",
    "LINKTYPE_RAW",
    "SUPPORTED_LINK_TYPES",
    "TransportInfo",
    "decode",
    "is_supported_link_type",
]
