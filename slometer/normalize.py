"""Coercion of loosely-typed telemetry records into canonical value types.

Records arrive as field bags from two places: the in-process snapshot provider
and the remote document stream. Nothing in this module raises on bad input;
every coercion degrades to a safe default and records without a resolvable
operation name are dropped.
"""

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from .models import CacheStatsState, MetricPoint, MetricSource, Severity, ViolationPoint

logger = logging.getLogger(__name__)

OPERATION_ALIASES = {
    "firebase_get_checkins_remote": "checkin_query",
    "firebase_get_checkins_for_user": "checkin_query",
    "firebase_get_approved_checkins": "checkin_query",
    "place_intelligence_build": "place_intelligence",
    "b2bGetSpotData": "b2b_spot_data",
    "b2b_get_spot_data": "b2b_spot_data",
    "checkin_create_remote": "checkin_create",
}

SEVERITIES = ("low", "medium", "high", "critical")


def now_ms() -> float:
    return time.time() * 1000


def to_number(value: Any, fallback: float = 0.0) -> float:
    """Coerce a number or numeric string, falling back on anything else."""
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else fallback
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return fallback
        return parsed if math.isfinite(parsed) else fallback
    return fallback


def to_millis(value: Any) -> float:
    """
    Resolve a timestamp-like value to epoch milliseconds.

    Accepts epoch milliseconds, datetimes, objects exposing ``to_millis()`` or
    ``toMillis()``, objects or mappings carrying ``seconds`` and ISO-8601
    strings. Returns 0 when the value cannot be resolved.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp() * 1000

    for attr in ("to_millis", "toMillis"):
        converter = getattr(value, attr, None)
        if callable(converter):
            try:
                return to_number(converter())
            except Exception:
                logger.debug("timestamp converter %s failed", attr, exc_info=True)
                return 0.0

    seconds = value.get("seconds") if isinstance(value, Mapping) else getattr(value, "seconds", None)
    if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
        return to_number(seconds) * 1000

    if isinstance(value, str):
        return _parse_iso_millis(value)
    return 0.0


def _parse_iso_millis(value: str) -> float:
    text = value.strip()
    if not text:
        return 0.0
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp() * 1000


def normalize_operation_name(operation: str) -> str:
    trimmed = operation.strip()
    if not trimmed:
        return trimmed
    return OPERATION_ALIASES.get(trimmed, trimmed)


def normalize_error_rate(value: float) -> float:
    """
    Normalize an error rate to a fraction.

    Values above 1 are whole-number percentages and are divided by 100 (the
    result is not re-clamped). Negative and non-finite values become 0.
    """
    if not math.isfinite(value):
        return 0.0
    if value > 1:
        return value / 100
    if value < 0:
        return 0.0
    return value


def normalize_severity(value: Any) -> Severity:
    severity = value.strip().lower() if isinstance(value, str) else "medium"
    return severity if severity in SEVERITIES else "medium"


def parse_metric_record(
    data: Mapping[str, Any],
    source: MetricSource,
    ingested_at: float,
    record_id: Optional[str] = None,
) -> Optional[MetricPoint]:
    """Map one raw record to a MetricPoint, or None when it names no operation."""
    raw_operation = _first_string(data, "operation", "name")
    operation = normalize_operation_name(raw_operation)
    if not operation:
        logger.debug("dropping %s metric record without operation: %r", source, record_id)
        return None

    if source == "local":
        # Local snapshots are point-in-time readouts.
        timestamp = ingested_at
    else:
        timestamp = to_millis(data.get("timestamp")) or to_millis(data.get("updatedAt")) or ingested_at

    return MetricPoint(
        id=record_id or f"{source}-{operation}",
        operation=operation,
        count=to_number(data.get("count")),
        error_count=to_number(data.get("errorCount")),
        error_rate=normalize_error_rate(to_number(data.get("errorRate"))),
        avg_ms=to_number(data.get("avgMs")),
        p50=_latency(data, "p50"),
        p95=_latency(data, "p95"),
        p99=_latency(data, "p99"),
        max_ms=to_number(data.get("maxMs")),
        last_ms=to_number(data.get("lastMs")),
        timestamp=timestamp,
        source=source,
    )


def parse_metric_records(
    records: Sequence[Mapping[str, Any]],
    source: MetricSource,
    ingested_at: float,
) -> list[MetricPoint]:
    points = []
    for record in records:
        if not isinstance(record, Mapping):
            logger.debug("dropping non-mapping %s metric record: %r", source, record)
            continue
        point = parse_metric_record(record, source, ingested_at)
        if point is not None:
            points.append(point)
    return points


def parse_violation_record(
    data: Mapping[str, Any],
    record_id: str,
    ingested_at: float,
) -> ViolationPoint:
    operation = normalize_operation_name(str(data.get("operation") or data.get("name") or "unknown"))
    return ViolationPoint(
        id=record_id,
        operation=operation,
        type=str(data.get("type") or data.get("metric") or "slo"),
        timestamp=to_millis(data.get("timestamp")) or ingested_at,
        severity=normalize_severity(data.get("severity")),
    )


def parse_cache_stats(data: Mapping[str, Any]) -> CacheStatsState:
    return CacheStatsState(
        hits=to_number(data.get("hits")),
        misses=to_number(data.get("misses")),
        evictions=to_number(data.get("evictions")),
        size=to_number(data.get("size")),
        avg_hit_rate=to_number(data.get("avgHitRate")),
    )


def _first_string(data: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            return value
    return ""


def _latency(data: Mapping[str, Any], key: str) -> float:
    value = data.get(key)
    if value is None:
        value = data.get(f"{key}Ms")
    return to_number(value)
