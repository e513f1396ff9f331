"""Pure functions merging metric sources and evaluating them against SLOs."""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .models import ComplianceState, MetricPoint, SLODefinition, Severity, ViolationPoint

DIMENSIONS = ("p50", "p95", "p99", "errorRate")

DIMENSION_SEVERITY: Dict[str, Severity] = {
    "p50": "medium",
    "p95": "high",
    "p99": "high",
    "errorRate": "critical",
}

# p95 and error rate dominate the score.
COMPLIANCE_WEIGHTS = {
    "p50": 0.1,
    "p95": 0.4,
    "p99": 0.2,
    "errorRate": 0.3,
}

_ID_SUFFIX = {"p50": "p50", "p95": "p95", "p99": "p99", "errorRate": "error"}


def merge_latest_by_operation(
    remote: Iterable[MetricPoint],
    local: Iterable[MetricPoint],
) -> Dict[str, MetricPoint]:
    """
    Keep the freshest point per operation across both sources.

    Ties on timestamp keep the remote point.
    """
    merged = sorted([*remote, *local], key=lambda metric: metric.timestamp, reverse=True)
    latest: Dict[str, MetricPoint] = {}
    for metric in merged:
        if metric.operation not in latest:
            latest[metric.operation] = metric
    return latest


def select_bulk_source(
    remote: Sequence[MetricPoint],
    local: Sequence[MetricPoint],
) -> Sequence[MetricPoint]:
    """Prefer the remote stream, falling back to local only when it is empty."""
    return remote if len(remote) > 0 else local


def breached_dimensions(metric: MetricPoint, slo: Optional[SLODefinition]) -> List[str]:
    if slo is None:
        return []
    breaches = []
    if metric.p50 > slo.p50_target:
        breaches.append("p50")
    if metric.p95 > slo.p95_target:
        breaches.append("p95")
    if metric.p99 > slo.p99_target:
        breaches.append("p99")
    if metric.error_rate > slo.error_rate_target:
        breaches.append("errorRate")
    return breaches


def count_metric_failures(metric: MetricPoint, slo: Optional[SLODefinition]) -> int:
    return len(breached_dimensions(metric, slo))


def is_slo_violation(metric: MetricPoint, slo: Optional[SLODefinition]) -> bool:
    return count_metric_failures(metric, slo) > 0


def compliance_state(metric: Optional[MetricPoint], slo: Optional[SLODefinition]) -> ComplianceState:
    if metric is None:
        return "unknown"
    failures = count_metric_failures(metric, slo)
    if failures == 0:
        return "green"
    if failures <= 2:
        return "yellow"
    return "red"


def calculate_slo_compliance(metric: MetricPoint, slo: Optional[SLODefinition]) -> float:
    """
    Weighted, target-relative compliance in [0, 1].

    Each dimension scores 1 at or below its target and ``target / value``
    above it, so the score keeps falling as a breach worsens. Without an SLO
    the operation is treated as compliant.
    """
    if slo is None:
        return 1.0
    scores = {
        "p50": _dimension_score(metric.p50, slo.p50_target),
        "p95": _dimension_score(metric.p95, slo.p95_target),
        "p99": _dimension_score(metric.p99, slo.p99_target),
        "errorRate": _dimension_score(metric.error_rate, slo.error_rate_target),
    }
    return sum(scores[dimension] * COMPLIANCE_WEIGHTS[dimension] for dimension in DIMENSIONS)


def compliance_percent(fraction: float) -> int:
    return round(fraction * 100)


def compute_compliance_summary(
    latest: Mapping[str, MetricPoint],
    definitions: Mapping[str, SLODefinition],
) -> Dict:
    """Count monitored operations with data and how many have no breached dimension."""
    with_data = [
        (definitions[operation], latest[operation])
        for operation in definitions
        if operation in latest
    ]
    total = len(with_data)
    compliant_count = sum(1 for slo, metric in with_data if not is_slo_violation(metric, slo))

    return {
        "total": total,
        "compliant_count": compliant_count,
        "violation_count": max(0, total - compliant_count),
        "percentage": round(compliant_count / total * 100) if total > 0 else 0,
    }


def build_key_operation_rows(
    latest: Mapping[str, MetricPoint],
    definitions: Mapping[str, SLODefinition],
    key_operations: Iterable[str],
) -> List[Dict]:
    """Evaluate each key operation that has an SLO against its latest metric."""
    rows = []
    for operation in key_operations:
        slo = definitions.get(operation)
        if slo is None:
            continue
        metric = latest.get(operation)
        rows.append(
            {
                "operation": operation,
                "display_name": slo.display_name,
                "metric": metric,
                "slo": slo,
                "state": compliance_state(metric, slo),
                "compliance": (
                    compliance_percent(calculate_slo_compliance(metric, slo)) if metric is not None else None
                ),
            }
        )
    return rows


def compute_error_rate_rows(rows: Iterable[Dict]) -> List[Dict]:
    """Error rate per key operation as a percentage, flagged when over target."""
    result = []
    for row in rows:
        metric: Optional[MetricPoint] = row["metric"]
        slo: SLODefinition = row["slo"]
        result.append(
            {
                "operation": row["operation"],
                "display_name": slo.display_name,
                "error_rate_pct": (metric.error_rate if metric else 0.0) * 100,
                "violation": metric.error_rate > slo.error_rate_target if metric else False,
            }
        )
    return result


def derive_violations(rows: Iterable[Dict], limit: int = 20) -> List[ViolationPoint]:
    """One violation per breached dimension of each key operation with data."""
    violations = []
    for row in rows:
        metric: Optional[MetricPoint] = row["metric"]
        if metric is None:
            continue
        for dimension in breached_dimensions(metric, row["slo"]):
            violations.append(
                ViolationPoint(
                    id=f"{row['operation']}-{_ID_SUFFIX[dimension]}-{_format_ms(metric.timestamp)}",
                    operation=row["operation"],
                    type=dimension,
                    timestamp=metric.timestamp,
                    severity=DIMENSION_SEVERITY[dimension],
                )
            )
    return _most_recent(violations, limit)


def select_violations(
    persisted: Sequence[ViolationPoint],
    derived: Sequence[ViolationPoint],
    definitions: Mapping[str, SLODefinition],
    limit: int = 20,
) -> List[Dict]:
    """Surface persisted violations when any exist, otherwise the derived ones."""
    chosen = persisted if len(persisted) > 0 else derived
    result = []
    for violation in _most_recent(chosen, limit):
        slo = definitions.get(violation.operation)
        result.append(
            {
                "id": violation.id,
                "operation": violation.operation,
                "display_name": slo.display_name if slo else violation.operation,
                "type": violation.type,
                "timestamp": violation.timestamp,
                "severity": violation.severity,
            }
        )
    return result


def rank_slow_operations(
    latest: Mapping[str, MetricPoint],
    definitions: Mapping[str, SLODefinition],
    limit: int = 10,
) -> List[Dict]:
    """Rank monitored operations by descending p95."""
    rows = []
    for operation, metric in latest.items():
        slo = definitions.get(operation)
        if slo is None:
            continue
        rows.append(
            {
                "operation": operation,
                "display_name": slo.display_name,
                "p95": metric.p95,
                "target": slo.p95_target,
                "compliance": compliance_percent(calculate_slo_compliance(metric, slo)),
                "violation": metric.p95 > slo.p95_target,
            }
        )
    rows.sort(key=lambda row: row["p95"], reverse=True)
    return rows[:limit]


def compute_error_budget(
    metrics: Iterable[MetricPoint],
    slo: SLODefinition,
    since: Optional[float] = None,
) -> Dict:
    """
    Share of the error budget consumed by an operation's recorded requests.

    Requests and errors are summed over every metric for the operation newer
    than ``since``. Consumption is the actual error rate over the budget,
    capped at 1.
    """
    total_requests = 0.0
    total_errors = 0.0
    for metric in metrics:
        if metric.operation != slo.operation:
            continue
        if since is not None and metric.timestamp <= since:
            continue
        total_requests += metric.count
        total_errors += metric.error_count

    actual_error_rate = total_errors / total_requests if total_requests > 0 else 0.0
    if slo.error_budget > 0:
        budget_consumed = min(1.0, actual_error_rate / slo.error_budget)
    else:
        budget_consumed = 1.0 if actual_error_rate > 0 else 0.0
    budget_remaining = max(0.0, 1.0 - budget_consumed)

    return {
        "operation": slo.operation,
        "display_name": slo.display_name,
        "budget_remaining": budget_remaining,
        "budget_consumed": budget_consumed,
        "status": _budget_status(budget_remaining),
        "actual_error_rate": actual_error_rate,
        "target_error_rate": slo.error_rate_target,
        "error_budget": slo.error_budget,
        "total_requests": total_requests,
        "total_errors": total_errors,
    }


def compute_error_budgets(
    metrics: Sequence[MetricPoint],
    definitions: Mapping[str, SLODefinition],
    since: Optional[float] = None,
) -> List[Dict]:
    return [compute_error_budget(metrics, slo, since=since) for slo in definitions.values()]


def summarize_error_budgets(budgets: Iterable[Dict]) -> Dict:
    """Count error budgets per status."""
    summary = {"healthy": 0, "warning": 0, "critical": 0, "total": 0}
    for budget in budgets:
        summary[budget["status"]] += 1
        summary["total"] += 1
    return summary


def _budget_status(budget_remaining: float) -> str:
    if budget_remaining > 0.5:
        return "healthy"
    if budget_remaining > 0.1:
        return "warning"
    return "critical"


def _dimension_score(value: float, target: float) -> float:
    if value <= target:
        return 1.0
    if target <= 0:
        return 0.0
    return target / value


def _most_recent(violations: Iterable[ViolationPoint], limit: int) -> List[ViolationPoint]:
    return sorted(violations, key=lambda violation: violation.timestamp, reverse=True)[:limit]


def _format_ms(timestamp: float) -> str:
    return str(int(timestamp)) if float(timestamp).is_integer() else str(timestamp)
