from __future__ import annotations

import socket

import dpkt
import pytest

SRC_MAC = b"\xaa\xbb\xcc\xdd\xee\xff"
DST_MAC = b"\x11\x22\x33\x44\x55\x66"


def _tcp(flags: int, sport: int, dport: int, payload: bytes) -> dpkt.tcp.TCP:
    tcp = dpkt.tcp.TCP(sport=sport, dport=dport, seq=1, flags=flags, win=1024)
    tcp.data = payload
    return tcp


def build_ipv4_packet(
    src: str,
    dst: str,
    *,
    flags: int = dpkt.tcp.TH_SYN,
    sport: int = 40000,
    dport: int = 80,
    payload: bytes = b"",
    udp: bool = False,
) -> dpkt.ip.IP:
    if udp:
        transport = dpkt.udp.UDP(sport=sport, dport=dport, ulen=8 + len(payload))
        transport.data = payload
        proto = dpkt.ip.IP_PROTO_UDP
    else:
        transport = _tcp(flags, sport, dport, payload)
        proto = dpkt.ip.IP_PROTO_TCP
    ip = dpkt.ip.IP(
        src=socket.inet_aton(src),
        dst=socket.inet_aton(dst),
        p=proto,
        ttl=64,
        len=20 + len(transport),
        id=1,
    )
    ip.v = 4
    ip.hl = 5
    ip.data = transport
    return ip


def build_ipv6_packet(
    src: str,
    dst: str,
    *,
    flags: int = dpkt.tcp.TH_SYN,
    sport: int = 40000,
    dport: int = 80,
) -> dpkt.ip6.IP6:
    tcp = _tcp(flags, sport, dport, b"")
    ip6 = dpkt.ip6.IP6(
        src=socket.inet_pton(socket.AF_INET6, src),
        dst=socket.inet_pton(socket.AF_INET6, dst),
        nxt=dpkt.ip.IP_PROTO_TCP,
        hlim=64,
        plen=len(tcp),
    )
    ip6.data = tcp
    return ip6


def build_ethernet_frame(ip_packet, eth_type: int = dpkt.ethernet.ETH_TYPE_IP) -> bytes:
    ethernet = dpkt.ethernet.Ethernet(
        dst=DST_MAC,
        src=SRC_MAC,
        type=eth_type,
        data=ip_packet,
    )
    return bytes(ethernet)


def build_arp_frame() -> bytes:
    return build_ethernet_frame(
        b"\x00\x01\x08\x00\x06\x04\x00\x01" + b"\x00" * 20,
        eth_type=dpkt.ethernet.ETH_TYPE_ARP,
    )


def write_pcap(path, frames, *, linktype: int = dpkt.pcap.DLT_EN10MB) -> None:
    with path.open("wb") as fh:
        writer = dpkt.pcap.Writer(fh, linktype=linktype)
        for index, frame in enumerate(frames):
            writer.writepkt(frame, ts=1.0 + index * 0.001)


@pytest.fixture
def ipv4_frame():
    def _build(src: str, dst: str, **kwargs) -> bytes:
        return build_ethernet_frame(build_ipv4_packet(src, dst, **kwargs))

    return _build


@pytest.fixture
def ipv6_frame():
    def _build(src: str, dst: str, **kwargs) -> bytes:
        return build_ethernet_frame(
            build_ipv6_packet(src, dst, **kwargs), eth_type=dpkt.ethernet.ETH_TYPE_IP6
        )

    return _build


@pytest.fixture
def arp_frame() -> bytes:
    return build_arp_frame()


@pytest.fixture
def pcap_file(tmp_path):
    def _write(frames, name: str = "capture.pcap", **kwargs):
        path = tmp_path / name
        write_pcap(path, frames, **kwargs)
        return path

    return _write


@pytest.fixture
def ipv4_bytes():
    def _build(src: str, dst: str, **kwargs) -> bytes:
        return bytes(build_ipv4_packet(src, dst, **kwargs))

    return _build


@pytest.fixture
def ipv6_bytes():
    def _build(src: str, dst: str, **kwargs) -> bytes:
        return bytes(build_ipv6_packet(src, dst, **kwargs))

    return _build
