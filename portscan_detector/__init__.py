"""Offline port scan detection over pcap/pcapng captures."""

from .address import Address, AddressFamily
from .connection import ConnectionKey
from .frame_decoder import (
    DecodedFrame,
    FrameDecodeError,
    FrameDecoder,
    IpHeaderInfo,
    TransportInfo,
    decode,
)
from .capture_reader import CaptureOpenError, CaptureReader, open_capture
from .aggregator import AggregationTable, Aggregator, aggregate
from .reporter import AlertLine, report
from .cli import ScanResult, ScanStats, scan_capture

__all__ = [
    "Address",
    "AddressFamily",
    "ConnectionKey",
    "DecodedFrame",
    "FrameDecodeError",
    "FrameDecoder",
    "IpHeaderInfo",
    "TransportInfo",
    "decode",
    "CaptureOpenError",
    "CaptureReader",
    "open_capture",
    "AggregationTable",
    "Aggregator",
    "aggregate",
    "AlertLine",
    "report",
    "ScanResult",
    "ScanStats",
    "scan_capture",
]
