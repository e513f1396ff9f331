"""Port definitions for the collaborators the refresh scheduler talks to."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence


@dataclass(frozen=True)
class Document:
    """One record of a document-stream snapshot."""

    id: str
    data: Mapping[str, Any]


SnapshotCallback = Callable[[Sequence[Document]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class TelemetrySnapshotProvider(Protocol):
    """In-process counters per operation; each call is a full replacement."""

    def fetch_snapshot(self) -> Awaitable[Sequence[Mapping[str, Any]]]:
        """Return the current local telemetry entries."""


class CacheStatsProvider(Protocol):
    """Local cache subsystem statistics."""

    def get_cache_stats(self) -> Awaitable[Mapping[str, Any]]:
        """Return hits, misses, evictions, size and avgHitRate."""

    def get_cache_hit_rate(self) -> float:
        """Return the current hit rate as a fraction."""


class DocumentStream(Protocol):
    """Live query over a document collection."""

    def subscribe(
        self,
        collection: str,
        *,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        since: Optional[float] = None,
        order_by: str = "timestamp",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> Unsubscribe:
        """
        Deliver the entire matching result set to ``on_snapshot`` whenever it changes.

        ``since`` filters on ``order_by`` (epoch milliseconds, exclusive).
        Stream-level failures go to ``on_error``. Returns an unsubscribe
        function.
        """


class AccessChecker(Protocol):
    """Decides whether a session may view telemetry."""

    def check_access(self, session: Any) -> Awaitable[bool]:
        """Resolve to True when access is granted."""
