"""Snapshot assembly over the scheduler's per-source state slots."""

from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from .analytics import (
    build_key_operation_rows,
    compute_compliance_summary,
    compute_error_budgets,
    compute_error_rate_rows,
    derive_violations,
    merge_latest_by_operation,
    rank_slow_operations,
    select_bulk_source,
    select_violations,
    summarize_error_budgets,
)
from .config import Settings
from .models import CacheStatsState, ChartPoint, DashboardSnapshot, MetricPoint, SLODefinition, ViolationPoint
from .normalize import now_ms
from .slo_config import SLO_DEFINITIONS
from .timeseries import build_hourly_latency_series, build_latency_targets


@dataclass
class TelemetryState:
    """Independent slots written by the poll loop and the subscriptions."""

    remote_metrics: List[MetricPoint] = field(default_factory=list)
    local_metrics: List[MetricPoint] = field(default_factory=list)
    violations: List[ViolationPoint] = field(default_factory=list)
    cache_stats: CacheStatsState = field(default_factory=CacheStatsState)
    cache_hit_rate: float = 0.0
    cache_trend: List[ChartPoint] = field(default_factory=list)
    loading: bool = True
    error_message: Optional[str] = None
    last_updated: float = field(default_factory=now_ms)


class DashboardService:
    """Facade that derives a full dashboard snapshot from the current state."""

    def __init__(
        self,
        definitions: Optional[Mapping[str, SLODefinition]] = None,
        key_operations: Optional[Sequence[str]] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.definitions = SLO_DEFINITIONS if definitions is None else definitions
        self.key_operations = tuple(key_operations) if key_operations is not None else self.settings.key_operations

    def build_snapshot(self, state: TelemetryState, now: Optional[float] = None) -> DashboardSnapshot:
        latest = merge_latest_by_operation(state.remote_metrics, state.local_metrics)
        rows = build_key_operation_rows(latest, self.definitions, self.key_operations)

        series = build_hourly_latency_series(
            select_bulk_source(state.remote_metrics, state.local_metrics),
            now=now,
            buckets=self.settings.trend_buckets,
        )
        derived = derive_violations(rows, limit=self.settings.violation_display_limit)
        budgets = compute_error_budgets(state.remote_metrics, self.definitions)

        return DashboardSnapshot(
            latest_by_operation=latest,
            key_operations=rows,
            compliance_summary=compute_compliance_summary(latest, self.definitions),
            latency_series=series,
            latency_targets=build_latency_targets(series, self.definitions, self.key_operations),
            error_rates=compute_error_rate_rows(rows),
            violations=select_violations(
                state.violations,
                derived,
                self.definitions,
                limit=self.settings.violation_display_limit,
            ),
            slow_operations=rank_slow_operations(latest, self.definitions, limit=self.settings.slow_operations_limit),
            error_budgets=budgets,
            error_budget_summary=summarize_error_budgets(budgets),
            cache_stats=state.cache_stats,
            cache_hit_rate=state.cache_hit_rate,
            cache_trend=tuple(state.cache_trend),
            error_message=state.error_message,
            loading=state.loading,
            last_updated=state.last_updated,
        )
