"""Threshold rule turning an aggregation table into port scan alerts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, TextIO

from .address import Address
from .aggregator import AggregationTable
from .utils import ALERT_TEMPLATE

MAX_THRESHOLD = 2**32 - 1


@dataclass(frozen=True)
class AlertLine:
    src: Address
    dst: Address
    count: int

    def render(self) -> str:
        return ALERT_TEMPLATE.format(src=self.src, dst=self.dst, count=self.count)

    def __str__(self) -> str:
        return self.render()


def validate_threshold(threshold: int) -> int:
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise ValueError(f"threshold must be an integer, got {threshold!r}")
    if not 0 <= threshold <= MAX_THRESHOLD:
        raise ValueError(f"threshold must be between 0 and {MAX_THRESHOLD}, got {threshold}")
    return threshold


def report(table: AggregationTable, threshold: int) -> List[AlertLine]:
    """Return an alert for every connection whose count is strictly above *threshold*.

    Alerts are ordered by descending count; connections with equal counts keep
    the order in which they first appeared in the capture.
    """
    validate_threshold(threshold)
    alerts = [
        AlertLine(src=key.src, dst=key.dst, count=count)
        for key, count in table.items()
        if count > threshold
    ]
    alerts.sort(key=lambda alert: alert.count, reverse=True)
    return alerts


def write_alerts(alerts: List[AlertLine], stream: TextIO) -> int:
    for alert in alerts:
        stream.write(alert.render() + "\n")
    return len(alerts)


__all__ = ["AlertLine", "MAX_THRESHOLD", "report", "validate_threshold", "write_alerts"]
