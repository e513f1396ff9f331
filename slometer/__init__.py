"""SLOMeter - telemetry aggregation and SLO compliance for operational dashboards."""

from .analytics import (
    calculate_slo_compliance,
    compliance_state,
    compute_compliance_summary,
    compute_error_budget,
    derive_violations,
    merge_latest_by_operation,
    rank_slow_operations,
    select_bulk_source,
    select_violations,
    summarize_error_budgets,
)
from .config import Settings
from .errors import AccessDeniedError, SLOMeterError
from .normalize import normalize_error_rate, normalize_operation_name, parse_metric_record
from .scheduler import RefreshScheduler
from .service import DashboardService, TelemetryState
from .timeseries import build_hourly_latency_series

__all__ = [
    "AccessDeniedError",
    "DashboardService",
    "RefreshScheduler",
    "SLOMeterError",
    "Settings",
    "TelemetryState",
    "build_hourly_latency_series",
    "calculate_slo_compliance",
    "compliance_state",
    "compute_compliance_summary",
    "compute_error_budget",
    "derive_violations",
    "merge_latest_by_operation",
    "normalize_error_rate",
    "normalize_operation_name",
    "parse_metric_record",
    "rank_slow_operations",
    "select_bulk_source",
    "select_violations",
    "summarize_error_budgets",
]

__version__ = "0.1.0"
