import pytest

from slometer.models import ChartPoint, MetricPoint, SLODefinition
from slometer.timeseries import HOUR_MS, append_trend_point, build_hourly_latency_series, build_latency_targets

NOW = 100 * HOUR_MS
WINDOW_START = NOW - 23 * HOUR_MS


def _metric(timestamp, p50, p95=None, p99=None):
    return MetricPoint(
        id=f"m-{timestamp}",
        operation="checkin_query",
        count=1,
        error_count=0,
        error_rate=0.0,
        avg_ms=p50,
        p50=p50,
        p95=p95 if p95 is not None else p50 * 2,
        p99=p99 if p99 is not None else p50 * 3,
        max_ms=p50,
        last_ms=p50,
        timestamp=timestamp,
        source="remote",
    )


def test_series_have_one_chronological_entry_per_hour():
    series = build_hourly_latency_series([], now=NOW)

    for key in ("p50", "p95", "p99"):
        points = series[key]
        assert len(points) == 24
        assert points[0].x == WINDOW_START
        assert [point.x for point in points] == [WINDOW_START + idx * HOUR_MS for idx in range(24)]
        assert all(point.y == 0 for point in points)


def test_samples_in_the_same_hour_are_averaged():
    metrics = [
        _metric(WINDOW_START + HOUR_MS // 2, 100),
        _metric(WINDOW_START + HOUR_MS // 4, 200),
        _metric(NOW, 40),
    ]

    series = build_hourly_latency_series(metrics, now=NOW)

    assert series["p50"][0].y == 150
    assert series["p95"][0].y == 300
    assert series["p99"][0].y == 450
    assert series["p50"][23].y == 40
    assert all(point.y == 0 for point in series["p50"][1:23])


def test_samples_outside_the_window_are_ignored():
    metrics = [
        _metric(WINDOW_START - 1, 500),
        _metric(NOW + 1, 500),
        _metric(NOW - 48 * HOUR_MS, 500),
    ]

    series = build_hourly_latency_series(metrics, now=NOW)

    assert all(point.y == 0 for key in series for point in series[key])


def test_targets_average_key_operations():
    definitions = {
        "a": SLODefinition("a", "A", p50_target=100, p95_target=400, p99_target=800, error_rate_target=0.01),
        "b": SLODefinition("b", "B", p50_target=300, p95_target=600, p99_target=1200, error_rate_target=0.01),
    }
    series = build_hourly_latency_series([], now=NOW)

    targets = build_latency_targets(series, definitions, ["a", "b", "not_configured"])

    assert len(targets["p50"]) == 24
    assert {point.y for point in targets["p50"]} == {200}
    assert {point.y for point in targets["p95"]} == {500}
    assert {point.y for point in targets["p99"]} == {1000}
    assert [point.x for point in targets["p99"]] == [point.x for point in series["p50"]]
    assert {point.y for point in build_latency_targets(series, definitions, [])["p50"]} == {0}


def test_trend_keeps_newest_points():
    trend = []
    for idx in range(30):
        trend = append_trend_point(trend, ChartPoint(x=idx, y=idx * 2), cap=24)

    assert len(trend) == 24
    assert trend[0].x == 6
    assert trend[-1] == ChartPoint(x=29, y=58)


def test_offsets_follow_floor_division():
    metrics = [_metric(WINDOW_START + 5 * HOUR_MS - 1, 10), _metric(WINDOW_START + 5 * HOUR_MS, 30)]

    series = build_hourly_latency_series(metrics, now=NOW)

    assert series["p50"][4].y == pytest.approx(10)
    assert series["p50"][5].y == pytest.approx(30)
