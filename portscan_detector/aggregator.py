"""Per-connection packet counting over a stream of decoded frames."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, Iterable, Iterator, Tuple

from .connection import ConnectionKey
from .frame_decoder import DecodedFrame

logger = logging.getLogger(__name__)


class AggregationTable:
    """Mapping of connection keys to packet counters.

    Every key present has a counter of at least one. Iteration follows the
    order in which keys were first seen. Increments and merges are serialized
    so partial tables built by separate workers can be merged safely.
    """

    __slots__ = ("_counts", "_lock")

    def __init__(self) -> None:
        self._counts: Dict[ConnectionKey, int] = {}
        self._lock = Lock()

    def increment(self, key: ConnectionKey, amount: int = 1) -> int:
        if amount < 1:
            raise ValueError("amount must be a positive integer")
        with self._lock:
            count = self._counts.get(key, 0) + amount
            self._counts[key] = count
            return count

    def merge(self, other: "AggregationTable") -> None:
        for key, count in other.items():
            self.increment(key, count)

    def items(self) -> Iterator[Tuple[ConnectionKey, int]]:
        with self._lock:
            snapshot = list(self._counts.items())
        return iter(snapshot)

    def as_dict(self) -> Dict[ConnectionKey, int]:
        with self._lock:
            return dict(self._counts)

    def total_packets(self) -> int:
        return sum(self._counts.values())

    def __getitem__(self, key: ConnectionKey) -> int:
        return self._counts[key]

    def __contains__(self, key: object) -> bool:
        return key in self._counts

    def __iter__(self) -> Iterator[ConnectionKey]:
        return iter(list(self._counts))

    def __len__(self) -> int:
        return len(self._counts)

    def __repr__(self) -> str:
        return f"AggregationTable({len(self._counts)} connections)"


class Aggregator:
    def __init__(self) -> None:
        self._init_state()

    def _init_state(self) -> None:
        self.table = AggregationTable()
        self.no_ip_frames = 0
        self.reset_frames = 0
        self.counted_frames = 0

    # ------------------------------------------------------------------
    def add_frame(self, frame: DecodedFrame) -> bool:
        """Account for one decoded frame; return whether it was counted."""
        if frame.ip is None:
            self.no_ip_frames += 1
            return False

        # TCP resets are answers from the scanned host.
        if frame.is_tcp_reset:
            self.reset_frames += 1
            return False

        self.table.increment(ConnectionKey.from_ip_header(frame.ip))
        self.counted_frames += 1
        return True

    def add_frames(self, frames: Iterable[DecodedFrame]) -> None:
        for frame in frames:
            self.add_frame(frame)

    def finish(self) -> AggregationTable:
        """Hand off the finished table and start a fresh one.

        The frame counters are left untouched so callers can still report them.
        """
        table = self.table
        self.table = AggregationTable()
        logger.debug(
            "Aggregated %d frames into %d connections (%d without IP, %d resets skipped)",
            self.counted_frames,
            len(table),
            self.no_ip_frames,
            self.reset_frames,
        )
        return table


def aggregate(frames: Iterable[DecodedFrame]) -> AggregationTable:
    aggregator = Aggregator()
    aggregator.add_frames(frames)
    return aggregator.finish()


__all__ = ["AggregationTable", "Aggregator", "aggregate"]
