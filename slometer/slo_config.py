"""Static SLO targets for every monitored operation."""

from typing import Dict, List, Mapping, Optional

from .models import SLODefinition

KEY_OPERATIONS = ("checkin_query", "b2b_spot_data", "place_intelligence", "checkin_create")


def _slo(operation: str, display_name: str, description: str, p50: float, p95: float, p99: float,
         error_rate: float, error_budget: float, priority: str) -> SLODefinition:
    return SLODefinition(
        operation=operation,
        display_name=display_name,
        description=description,
        p50_target=p50,
        p95_target=p95,
        p99_target=p99,
        error_rate_target=error_rate,
        error_budget=error_budget,
        priority=priority,
    )


# Latency targets are milliseconds, error rates are fractions (0.01 = 1%).
SLO_DEFINITIONS: Dict[str, SLODefinition] = {
    slo.operation: slo
    for slo in (
        # Database queries
        _slo("checkin_query", "Check-in Query", "Check-in queries (feed, spot details)",
             200, 500, 1000, 0.01, 0.005, "critical"),
        _slo("schema_fallback", "Schema Migration Fallback", "Queries with primary to legacy schema fallback",
             300, 800, 1500, 0.001, 0.0005, "high"),
        _slo("user_query", "User Profile Query", "User data fetching (profiles, friends, stats)",
             150, 400, 800, 0.01, 0.005, "high"),
        _slo("spot_query", "Spot Query", "Spot data fetching and search",
             200, 600, 1200, 0.02, 0.01, "high"),
        # B2B API
        _slo("b2b_spot_data", "B2B Spot Data API", "B2B endpoint for spot data retrieval",
             400, 1000, 2000, 0.05, 0.025, "high"),
        _slo("b2b_nearby_spots", "B2B Nearby Spots API", "B2B endpoint for geospatial queries",
             500, 1200, 2500, 0.05, 0.025, "high"),
        _slo("b2b_rate_limiting", "B2B Rate Limiting", "Transaction for rate limit enforcement",
             100, 300, 600, 0.001, 0.0005, "critical"),
        # External APIs
        _slo("place_intelligence", "Place Intelligence", "Foursquare/Yelp/OSM data aggregation",
             600, 1500, 3000, 0.02, 0.01, "medium"),
        _slo("place_intelligence_outcome_link", "Intel Outcome Link",
             "Link check-in outcomes to recent intelligence predictions",
             250, 700, 1400, 0.05, 0.025, "medium"),
        _slo("place_intelligence_calibration_abs_error", "Intel Abs Error",
             "Absolute prediction error score recorded per linked outcome",
             10, 22, 35, 0.2, 0.1, "medium"),
        _slo("foursquare_api", "Foursquare API", "Foursquare API calls",
             400, 1000, 2000, 0.05, 0.025, "medium"),
        _slo("yelp_api", "Yelp API", "Yelp API calls",
             400, 1000, 2000, 0.05, 0.025, "medium"),
        # Cache
        _slo("cache_hit", "Cache Hit", "Successful cache lookups",
             10, 50, 100, 0.001, 0.0005, "medium"),
        _slo("cache_miss", "Cache Miss", "Cache misses requiring fallback fetch",
             200, 500, 1000, 0.01, 0.005, "medium"),
        # Images
        _slo("image_upload", "Image Upload", "Photo uploads to object storage",
             1000, 3000, 5000, 0.02, 0.01, "high"),
        _slo("image_optimization", "Image Optimization", "Client-side image compression and resizing",
             300, 800, 1500, 0.01, 0.005, "medium"),
        # User actions
        _slo("checkin_create", "Check-in Creation", "Creating a new check-in with metrics",
             500, 1200, 2500, 0.005, 0.0025, "critical"),
        _slo("metrics_submit", "Metrics Submission", "Submitting utility metrics (WiFi, noise, etc.)",
             400, 1000, 2000, 0.01, 0.005, "high"),
    )
}


def get_slo(
    operation: str,
    definitions: Optional[Mapping[str, SLODefinition]] = None,
) -> Optional[SLODefinition]:
    """Return the SLO for an operation, or None when it is not monitored."""
    table = SLO_DEFINITIONS if definitions is None else definitions
    return table.get(operation)


def slos_by_priority(
    definitions: Optional[Mapping[str, SLODefinition]] = None,
) -> Dict[str, List[SLODefinition]]:
    table = SLO_DEFINITIONS if definitions is None else definitions
    grouped: Dict[str, List[SLODefinition]] = {"critical": [], "high": [], "medium": []}
    for slo in table.values():
        grouped.setdefault(slo.priority, []).append(slo)
    return grouped


def total_slo_count(definitions: Optional[Mapping[str, SLODefinition]] = None) -> int:
    table = SLO_DEFINITIONS if definitions is None else definitions
    return len(table)
