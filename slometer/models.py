"""Core value types shared by the telemetry pipeline."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence

MetricSource = Literal["remote", "local"]
Severity = Literal["low", "medium", "high", "critical"]
ComplianceState = Literal["green", "yellow", "red", "unknown"]
Priority = Literal["critical", "high", "medium"]


@dataclass(frozen=True)
class MetricPoint:
    """One observation (possibly an aggregate) for an operation."""

    id: str
    operation: str
    count: float
    error_count: float
    error_rate: float
    avg_ms: float
    p50: float
    p95: float
    p99: float
    max_ms: float
    last_ms: float
    timestamp: float
    source: MetricSource


@dataclass(frozen=True)
class SLODefinition:
    """Latency and error-rate targets for a monitored operation."""

    operation: str
    display_name: str
    p50_target: float
    p95_target: float
    p99_target: float
    error_rate_target: float
    description: str = ""
    error_budget: float = 0.0
    priority: Priority = "medium"


@dataclass(frozen=True)
class ViolationPoint:
    """A breach of one dimension of an operation's SLO."""

    id: str
    operation: str
    type: str
    timestamp: float
    severity: Severity


@dataclass(frozen=True)
class CacheStatsState:
    hits: float = 0
    misses: float = 0
    evictions: float = 0
    size: float = 0
    avg_hit_rate: float = 0.0


@dataclass(frozen=True)
class ChartPoint:
    x: float
    y: float


@dataclass(frozen=True)
class DashboardSnapshot:
    """Everything the presentation layer needs for one render."""

    latest_by_operation: Dict[str, MetricPoint]
    key_operations: List[Dict[str, Any]]
    compliance_summary: Dict[str, Any]
    latency_series: Dict[str, List[ChartPoint]]
    latency_targets: Dict[str, List[ChartPoint]]
    error_rates: List[Dict[str, Any]]
    violations: List[Dict[str, Any]]
    slow_operations: List[Dict[str, Any]]
    error_budgets: List[Dict[str, Any]]
    error_budget_summary: Dict[str, int]
    cache_stats: CacheStatsState
    cache_hit_rate: float
    cache_trend: Sequence[ChartPoint] = field(default_factory=tuple)
    error_message: Optional[str] = None
    loading: bool = True
    last_updated: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-ready representation of the snapshot."""
        payload = asdict(self)
        payload["cache_trend"] = [asdict(point) for point in self.cache_trend]
        return payload
