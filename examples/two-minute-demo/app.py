"""Two-minute SLOMeter demo: FastAPI backend over in-memory telemetry sources."""

from contextlib import asynccontextmanager
from random import Random
from typing import Any, AsyncIterator, Dict, List

from fastapi import FastAPI

from slometer import RefreshScheduler, Settings
from slometer.normalize import now_ms
from slometer.ports import Document
from slometer.timeseries import HOUR_MS

RNG = Random(42)
DEMO_SESSION = {"uid": "demo-admin", "admin": True}


class DemoTelemetry:
    async def fetch_snapshot(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": name,
                "count": RNG.randint(20, 80),
                "errorRate": RNG.uniform(0, 0.04),
                "p50Ms": base,
                "p95Ms": base * RNG.uniform(2.0, 3.0),
                "p99Ms": base * RNG.uniform(3.5, 5.0),
            }
            for name, base in (
                ("firebase_get_checkins_remote", 160),
                ("checkin_create_remote", 420),
                ("user_query", 90),
            )
        ]


class DemoCache:
    async def get_cache_stats(self) -> Dict[str, Any]:
        return {"hits": 840, "misses": 160, "evictions": 12, "size": 230, "avgHitRate": 0.84}

    def get_cache_hit_rate(self) -> float:
        return RNG.uniform(0.75, 0.9)


class DemoStream:
    """Delivers one fixed 24-hour history per collection."""

    def subscribe(self, collection, *, on_snapshot, on_error, since=None, order_by="timestamp",
                  descending=True, limit=None):
        on_snapshot(_demo_documents(collection, limit))
        return lambda: None


class DemoAccess:
    async def check_access(self, session) -> bool:
        return bool(session and session.get("admin"))


def _demo_documents(collection: str, limit) -> List[Document]:
    if collection != "performanceMetrics":
        return []
    now = now_ms()
    documents = []
    for idx in range(min(limit or 200, 200)):
        operation = ("b2bGetSpotData", "place_intelligence_build", "checkin_query")[idx % 3]
        base = {"b2bGetSpotData": 380, "place_intelligence_build": 650, "checkin_query": 190}[operation]
        documents.append(
            Document(
                id=f"demo-{idx}",
                data={
                    "operation": operation,
                    "p50": max(10, RNG.gauss(base, 40)),
                    "p95": max(20, RNG.gauss(base * 2.4, 90)),
                    "p99": max(30, RNG.gauss(base * 4, 150)),
                    "errorRate": RNG.choice([0.2, 0.5, 1, 3]),
                    "timestamp": now - idx * 7 * 60 * 1000,
                },
            )
        )
    return [document for document in documents if document.data["timestamp"] > now - 24 * HOUR_MS]


scheduler = RefreshScheduler(
    telemetry=DemoTelemetry(),
    cache_stats=DemoCache(),
    stream=DemoStream(),
    access=DemoAccess(),
    settings=Settings(refresh_interval_seconds=15.0),
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    async with scheduler.running(DEMO_SESSION):
        yield


app = FastAPI(title="SLOMeter Two-Minute Demo", version="0.1.0", lifespan=lifespan)


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "demo": "slometer-two-minute", "refreshing": scheduler.active}


@app.get("/api/dashboard")
def dashboard() -> dict:
    return scheduler.snapshot().to_dict()
