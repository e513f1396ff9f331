from datetime import datetime, timezone
from types import SimpleNamespace

from slometer.normalize import (
    normalize_error_rate,
    normalize_operation_name,
    normalize_severity,
    parse_cache_stats,
    parse_metric_record,
    parse_metric_records,
    parse_violation_record,
    to_millis,
    to_number,
)


def test_normalize_error_rate_rules():
    assert normalize_error_rate(150) == 1.5
    assert normalize_error_rate(5) == 0.05
    assert normalize_error_rate(0.5) == 0.5
    assert normalize_error_rate(1.0) == 1.0
    assert normalize_error_rate(0) == 0
    assert normalize_error_rate(-3) == 0
    assert normalize_error_rate(float("nan")) == 0


def test_operation_aliases_resolve_and_are_idempotent():
    assert normalize_operation_name("firebase_get_checkins_for_user") == "checkin_query"
    assert normalize_operation_name("b2bGetSpotData") == "b2b_spot_data"
    assert normalize_operation_name("  custom_op  ") == "custom_op"
    assert normalize_operation_name("   ") == ""

    for name in ["checkin_query", "firebase_get_approved_checkins", "place_intelligence_build", "other"]:
        once = normalize_operation_name(name)
        assert normalize_operation_name(once) == once


def test_to_number_never_raises():
    assert to_number(12) == 12.0
    assert to_number(" 12.5 ") == 12.5
    assert to_number("abc") == 0
    assert to_number(None, 7) == 7
    assert to_number(float("inf")) == 0
    assert to_number("nan", 3) == 3
    assert to_number(True) == 0
    assert to_number([1, 2]) == 0


def test_to_millis_accepts_supported_shapes():
    class Stamp:
        def toMillis(self):
            return 4200

    class BrokenStamp:
        def to_millis(self):
            raise RuntimeError("bad clock")

    iso = datetime(2026, 1, 1, tzinfo=timezone.utc)

    assert to_millis(1000) == 1000
    assert to_millis(Stamp()) == 4200
    assert to_millis(BrokenStamp()) == 0
    assert to_millis({"seconds": 2, "nanoseconds": 0}) == 2000
    assert to_millis(SimpleNamespace(seconds=3)) == 3000
    assert to_millis("2026-01-01T00:00:00Z") == iso.timestamp() * 1000
    assert to_millis(iso) == iso.timestamp() * 1000
    assert to_millis("not a date") == 0
    assert to_millis(None) == 0
    assert to_millis(object()) == 0


def test_parse_metric_record_drops_records_without_operation():
    assert parse_metric_record({"count": 3}, "remote", ingested_at=1.0) is None
    assert parse_metric_record({"operation": "   "}, "remote", ingested_at=1.0) is None
    assert parse_metric_record({"operation": 42}, "remote", ingested_at=1.0) is None


def test_parse_metric_record_coerces_remote_fields():
    metric = parse_metric_record(
        {
            "name": "b2bGetSpotData",
            "count": "10",
            "errorCount": 1,
            "errorRate": 5,
            "p50": "120",
            "p95Ms": 300,
            "p99": "oops",
            "timestamp": {"seconds": 100},
        },
        "remote",
        ingested_at=999.0,
        record_id="doc-1",
    )

    assert metric is not None
    assert metric.id == "doc-1"
    assert metric.operation == "b2b_spot_data"
    assert metric.count == 10
    assert metric.error_rate == 0.05
    assert metric.p50 == 120
    assert metric.p95 == 300
    assert metric.p99 == 0
    assert metric.timestamp == 100_000
    assert metric.source == "remote"


def test_remote_timestamp_falls_back_to_updated_at_then_ingestion():
    with_updated = parse_metric_record({"operation": "x", "updatedAt": 500}, "remote", ingested_at=999.0)
    without = parse_metric_record({"operation": "x", "timestamp": "garbage"}, "remote", ingested_at=999.0)

    assert with_updated.timestamp == 500
    assert without.timestamp == 999.0


def test_local_records_are_stamped_at_ingestion():
    metrics = parse_metric_records(
        [
            {"name": "checkin_create_remote", "p50Ms": 10, "p95Ms": 20, "p99Ms": 30, "updatedAt": 5},
            {"count": 1},
        ],
        "local",
        ingested_at=777.0,
    )

    assert len(metrics) == 1
    assert metrics[0].operation == "checkin_create"
    assert metrics[0].timestamp == 777.0
    assert metrics[0].id == "local-checkin_create"
    assert (metrics[0].p50, metrics[0].p95, metrics[0].p99) == (10, 20, 30)


def test_local_snapshot_skips_entries_that_are_not_records():
    metrics = parse_metric_records([None, "user_query", 42, ["name"], {"name": "user_query"}], "local", ingested_at=5.0)

    assert [metric.operation for metric in metrics] == ["user_query"]


def test_parse_violation_record_normalizes_severity_and_labels():
    high = parse_violation_record(
        {"name": "firebase_get_checkins_remote", "metric": "p95", "severity": "HIGH", "timestamp": 50},
        "v1",
        ingested_at=1.0,
    )
    fallback = parse_violation_record({"severity": "catastrophic"}, "v2", ingested_at=9.0)

    assert high.operation == "checkin_query"
    assert high.type == "p95"
    assert high.severity == "high"
    assert high.timestamp == 50
    assert fallback.operation == "unknown"
    assert fallback.type == "slo"
    assert fallback.severity == "medium"
    assert fallback.timestamp == 9.0


def test_normalize_severity_defaults_to_medium():
    assert normalize_severity("critical") == "critical"
    assert normalize_severity(" Low ") == "low"
    assert normalize_severity(None) == "medium"
    assert normalize_severity(3) == "medium"


def test_parse_cache_stats_passes_values_through():
    stats = parse_cache_stats({"hits": 8, "misses": "2", "evictions": None, "size": 4, "avgHitRate": 0.8})

    assert stats.hits == 8
    assert stats.misses == 2
    assert stats.evictions == 0
    assert stats.avg_hit_rate == 0.8
