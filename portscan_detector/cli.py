"""Command-line entry point flagging possible port scans in a capture file."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, TextIO, Union

from .aggregator import AggregationTable, Aggregator
from .capture_reader import CaptureOpenError, CaptureReader
from .frame_decoder import FrameDecodeError, FrameDecoder
from .reporter import MAX_THRESHOLD, AlertLine, report, validate_threshold, write_alerts

logger = logging.getLogger(__name__)


@dataclass
class ScanStats:
    total_frames: int = 0
    malformed_frames: int = 0
    no_ip_frames: int = 0
    reset_frames: int = 0
    counted_frames: int = 0
    truncated: bool = False


@dataclass
class ScanResult:
    table: AggregationTable
    alerts: List[AlertLine] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)


def scan_capture(capture_path: Union[str, Path], threshold: int) -> ScanResult:
    """Run the whole pipeline over one capture file.

    Malformed frames are skipped and counted; only a capture that cannot be
    opened raises (:class:`CaptureOpenError`).
    """
    validate_threshold(threshold)
    stats = ScanStats()
    aggregator = Aggregator()

    with CaptureReader(capture_path) as reader:
        assert reader.link_type is not None
        decoder = FrameDecoder(reader.link_type)
        for raw_frame in reader:
            stats.total_frames += 1
            try:
                frame = decoder.decode(raw_frame)
            except FrameDecodeError:
                stats.malformed_frames += 1
                logger.debug("Skipping malformed frame #%d", stats.total_frames, exc_info=True)
                continue
            aggregator.add_frame(frame)
        stats.truncated = reader.truncated

    stats.no_ip_frames = aggregator.no_ip_frames
    stats.reset_frames = aggregator.reset_frames
    stats.counted_frames = aggregator.counted_frames

    table = aggregator.finish()
    return ScanResult(table=table, alerts=report(table, threshold), stats=stats)


def _threshold(value: str) -> int:
    try:
        return validate_threshold(int(value))
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"expected an integer between 0 and {MAX_THRESHOLD}, got {value!r}"
        ) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Flag source/destination pairs with suspiciously many packets in a capture.",
    )
    parser.add_argument(
        "capture_path",
        type=Path,
        help="Path to a pcap or pcapng capture file.",
    )
    parser.add_argument(
        "threshold",
        type=_threshold,
        help="Alarm threshold: pairs with more packets than this are reported.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Log level for diagnostic output on stderr (default: WARNING).",
    )
    return parser


def main(argv: Optional[List[str]] = None, stdout: Optional[TextIO] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        result = scan_capture(args.capture_path, args.threshold)
    except CaptureOpenError as exc:
        logger.error(str(exc))
        return 1

    write_alerts(result.alerts, stdout if stdout is not None else sys.stdout)

    stats = result.stats
    logger.info(
        "Finished %s: frames=%d, counted=%d, resets=%d, non-ip=%d, malformed=%d, alerts=%d",
        args.capture_path.name,
        stats.total_frames,
        stats.counted_frames,
        stats.reset_frames,
        stats.no_ip_frames,
        stats.malformed_frames,
        len(result.alerts),
    )
    if stats.malformed_frames:
        logger.warning("Skipped %d malformed frames", stats.malformed_frames)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
