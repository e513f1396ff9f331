"""Runtime settings for the refresh scheduler and snapshot builder."""

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional, Tuple

from .slo_config import KEY_OPERATIONS

ENV_PREFIX = "SLOMETER_"


def _parse_tuple(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in str(value).split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    refresh_interval_seconds: float = 15.0
    metrics_collection: str = "performanceMetrics"
    violations_collection: str = "sloViolations"
    metrics_window_hours: int = 24
    metrics_limit: int = 500
    violations_limit: int = 20
    cache_trend_cap: int = 24
    violation_display_limit: int = 20
    slow_operations_limit: int = 10
    trend_buckets: int = 24
    key_operations: Tuple[str, ...] = KEY_OPERATIONS

    def __post_init__(self) -> None:
        if self.refresh_interval_seconds <= 0:
            raise ValueError("refresh_interval_seconds must be > 0")
        for name in (
            "metrics_window_hours",
            "metrics_limit",
            "violations_limit",
            "cache_trend_cap",
            "violation_display_limit",
            "slow_operations_limit",
            "trend_buckets",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str],
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "Settings":
        """Build settings from defaults, explicit overrides, then SLOMETER_* variables."""
        values: dict[str, Any] = dict(overrides or {})
        defaults = cls()
        for field in fields(cls):
            env_key = ENV_PREFIX + field.name.upper()
            if env_key not in env:
                continue
            raw = env[env_key]
            current = getattr(defaults, field.name)
            if isinstance(current, int):
                values[field.name] = int(raw)
            elif isinstance(current, float):
                values[field.name] = float(raw)
            elif isinstance(current, tuple):
                values[field.name] = _parse_tuple(raw)
            else:
                values[field.name] = raw
        return cls(**values)
