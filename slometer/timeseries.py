"""Hourly latency trend series over a trailing window."""

from math import floor
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .models import ChartPoint, MetricPoint, SLODefinition
from .normalize import now_ms

HOUR_MS = 60 * 60 * 1000
PERCENTILES = ("p50", "p95", "p99")


def build_hourly_latency_series(
    metrics: Iterable[MetricPoint],
    now: Optional[float] = None,
    buckets: int = 24,
) -> Dict[str, List[ChartPoint]]:
    """
    Average p50/p95/p99 per hourly bucket over the trailing window ending at ``now``.

    The window starts ``buckets - 1`` hours before ``now``. Samples outside
    ``[start, now]`` are ignored and empty buckets read 0.
    """
    if now is None:
        now = now_ms()
    start = now - (buckets - 1) * HOUR_MS

    sums = [{"p50": 0.0, "p95": 0.0, "p99": 0.0} for _ in range(buckets)]
    counts = [0] * buckets

    for metric in metrics:
        if metric.timestamp < start or metric.timestamp > now:
            continue
        offset = floor((metric.timestamp - start) / HOUR_MS)
        if offset < 0 or offset >= buckets:
            continue
        bucket = sums[offset]
        bucket["p50"] += metric.p50
        bucket["p95"] += metric.p95
        bucket["p99"] += metric.p99
        counts[offset] += 1

    return {
        percentile: [
            ChartPoint(
                x=start + index * HOUR_MS,
                y=sums[index][percentile] / counts[index] if counts[index] else 0.0,
            )
            for index in range(buckets)
        ]
        for percentile in PERCENTILES
    }


def build_latency_targets(
    series: Mapping[str, Sequence[ChartPoint]],
    definitions: Mapping[str, SLODefinition],
    key_operations: Iterable[str],
) -> Dict[str, List[ChartPoint]]:
    """Reference lines at the mean target of the displayed key operations."""
    slos = [definitions[operation] for operation in key_operations if operation in definitions]
    means = {
        "p50": _mean(slo.p50_target for slo in slos),
        "p95": _mean(slo.p95_target for slo in slos),
        "p99": _mean(slo.p99_target for slo in slos),
    }
    xs = [point.x for point in series.get("p50", [])]
    return {percentile: [ChartPoint(x=x, y=means[percentile]) for x in xs] for percentile in PERCENTILES}


def append_trend_point(trend: Sequence[ChartPoint], point: ChartPoint, cap: int = 24) -> List[ChartPoint]:
    """Return the trend with ``point`` appended, keeping only the newest ``cap`` entries."""
    return [*trend, point][-cap:]


def _mean(values: Iterable[float]) -> float:
    items = list(values)
    return sum(items) / max(len(items), 1)
