"""Refresh loop feeding the telemetry pipeline from local and remote sources.

Two mechanisms run side by side on one event loop: a sequential poll of the
local snapshot provider and two live document-stream subscriptions. Each
writes its own slot of :class:`TelemetryState`; everything derived from the
slots is recomputed by :class:`DashboardService` on read.
"""

import asyncio
import contextlib
import logging
from typing import Any, AsyncIterator, Callable, Optional, Sequence

from .config import Settings
from .errors import AccessDeniedError
from .models import ChartPoint, DashboardSnapshot
from .normalize import (
    now_ms,
    parse_cache_stats,
    parse_metric_record,
    parse_metric_records,
    parse_violation_record,
    to_number,
)
from .ports import (
    AccessChecker,
    CacheStatsProvider,
    Document,
    DocumentStream,
    ErrorCallback,
    SnapshotCallback,
    TelemetrySnapshotProvider,
    Unsubscribe,
)
from .service import DashboardService, TelemetryState
from .timeseries import HOUR_MS, append_trend_point

logger = logging.getLogger(__name__)

LOCAL_REFRESH_ERROR = "Failed to refresh local telemetry snapshot."


class _Subscription:
    """Unsubscribe handle that tolerates being closed before it is attached."""

    def __init__(self, collection: str):
        self.collection = collection
        self.closed = False
        self._unsubscribe: Optional[Unsubscribe] = None

    def attach(self, unsubscribe: Unsubscribe) -> None:
        self._unsubscribe = unsubscribe
        if self.closed:
            self._release()

    def close(self) -> None:
        self.closed = True
        self._release()

    def _release(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()


class RefreshScheduler:
    """Owns the poll loop and subscriptions for one dashboard consumer."""

    def __init__(
        self,
        telemetry: TelemetrySnapshotProvider,
        cache_stats: CacheStatsProvider,
        stream: DocumentStream,
        access: AccessChecker,
        settings: Optional[Settings] = None,
        service: Optional[DashboardService] = None,
        clock: Callable[[], float] = now_ms,
    ):
        self.telemetry = telemetry
        self.cache_stats = cache_stats
        self.stream = stream
        self.access = access
        self.settings = settings or Settings()
        self.service = service or DashboardService(settings=self.settings)
        self._clock = clock

        self.state = TelemetryState(last_updated=clock())
        self.access_status = "checking"
        self._active = False
        self._closed = False
        self._poll_task: Optional[asyncio.Task] = None
        self._metrics_sub = _Subscription(self.settings.metrics_collection)
        self._violations_sub = _Subscription(self.settings.violations_collection)

    @property
    def active(self) -> bool:
        return self._active

    async def start(self, session: Any) -> None:
        """
        Check access, then start the poll loop and both subscriptions.

        Raises:
            AccessDeniedError: when there is no session or access is refused.
        """
        if self._active:
            return
        allowed = await self._verify_access(session)
        if self._closed:
            return
        if not allowed:
            self.access_status = "denied"
            raise AccessDeniedError("session is not allowed to view telemetry")

        self.access_status = "allowed"
        self._active = True
        logger.info("starting telemetry refresh every %ss", self.settings.refresh_interval_seconds)

        self._poll_task = asyncio.create_task(self._poll_loop())

        since = self._clock() - self.settings.metrics_window_hours * HOUR_MS
        self._subscribe(
            self._metrics_sub,
            on_snapshot=self._on_metrics_snapshot,
            on_error=self._on_metrics_error,
            since=since,
            limit=self.settings.metrics_limit,
        )
        self._subscribe(
            self._violations_sub,
            on_snapshot=self._on_violations_snapshot,
            on_error=self._on_violations_error,
            limit=self.settings.violations_limit,
        )

    async def stop(self) -> None:
        """Cancel the poll loop and release both subscriptions."""
        was_active = self._active
        self._active = False
        self._closed = True

        task, self._poll_task = self._poll_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._metrics_sub.close()
        self._violations_sub.close()
        if was_active:
            logger.info("telemetry refresh stopped")

    @contextlib.asynccontextmanager
    async def running(self, session: Any) -> AsyncIterator["RefreshScheduler"]:
        await self.start(session)
        try:
            yield self
        finally:
            await self.stop()

    def snapshot(self, now: Optional[float] = None) -> DashboardSnapshot:
        return self.service.build_snapshot(self.state, now=self._clock() if now is None else now)

    async def refresh_local(self) -> None:
        """Replace the local metrics with a fresh snapshot and sample the cache hit rate."""
        try:
            entries = await self.telemetry.fetch_snapshot()
            if not self._active:
                return
            now = self._clock()
            self.state.local_metrics = parse_metric_records(entries, "local", now)

            stats = await self.cache_stats.get_cache_stats()
            rate = to_number(self.cache_stats.get_cache_hit_rate())
            if not self._active:
                return
            self.state.cache_stats = parse_cache_stats(stats)
            self.state.cache_hit_rate = rate
            self.state.cache_trend = append_trend_point(
                self.state.cache_trend,
                ChartPoint(x=now, y=rate * 100),
                cap=self.settings.cache_trend_cap,
            )
        except Exception:
            logger.warning("local telemetry refresh failed", exc_info=True)
            if self._active:
                self.state.error_message = LOCAL_REFRESH_ERROR

    async def _poll_loop(self) -> None:
        while self._active:
            await self.refresh_local()
            await asyncio.sleep(self.settings.refresh_interval_seconds)

    async def _verify_access(self, session: Any) -> bool:
        if session is None:
            return False
        try:
            return bool(await self.access.check_access(session))
        except Exception:
            logger.warning("access check failed", exc_info=True)
            return False

    def _subscribe(
        self,
        subscription: _Subscription,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        since: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> None:
        try:
            unsubscribe = self.stream.subscribe(
                subscription.collection,
                on_snapshot=on_snapshot,
                on_error=on_error,
                since=since,
                order_by="timestamp",
                descending=True,
                limit=limit,
            )
        except Exception as exc:
            on_error(exc)
            return
        subscription.attach(unsubscribe)

    def _on_metrics_snapshot(self, documents: Sequence[Document]) -> None:
        if not self._active or self._metrics_sub.closed:
            return
        now = self._clock()
        metrics = []
        for document in documents:
            metric = parse_metric_record(document.data or {}, "remote", now, record_id=document.id)
            if metric is not None:
                metrics.append(metric)
        self.state.remote_metrics = metrics
        self.state.last_updated = now
        self.state.loading = False

    def _on_metrics_error(self, error: Exception) -> None:
        if not self._active or self._metrics_sub.closed:
            return
        self._fail_subscription(self._metrics_sub, error)
        self.state.loading = False

    def _on_violations_snapshot(self, documents: Sequence[Document]) -> None:
        if not self._active or self._violations_sub.closed:
            return
        now = self._clock()
        self.state.violations = [
            parse_violation_record(document.data or {}, document.id, now) for document in documents
        ]

    def _on_violations_error(self, error: Exception) -> None:
        if not self._active or self._violations_sub.closed:
            return
        self._fail_subscription(self._violations_sub, error)

    def _fail_subscription(self, subscription: _Subscription, error: Exception) -> None:
        logger.warning("subscription to %s failed: %s", subscription.collection, error)
        self.state.error_message = f"Unable to subscribe to {subscription.collection}."
        subscription.close()
