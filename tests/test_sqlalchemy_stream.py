import asyncio
import json

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from slometer.adapters import SQLAlchemyDocumentStream
from slometer.errors import UnknownCollectionError


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'telemetry.db'}",
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        conn.execute(
            text(
                """
                CREATE TABLE performance_metrics (
                    id TEXT PRIMARY KEY,
                    operation TEXT,
                    p95 REAL,
                    timestamp REAL,
                    payload TEXT
                )
                """
            )
        )
        conn.execute(
            text(
                """
                INSERT INTO performance_metrics (id, operation, p95, timestamp, payload) VALUES
                ('m1', 'checkin_query', 300, 100, NULL),
                ('m2', 'user_query', 350, 200, '{"errorRate": 0.5, "operation": "ignored"}'),
                ('m3', 'spot_query', 400, 300, 'not json')
                """
            )
        )
    yield sessionmaker(bind=engine)
    engine.dispose()


def _insert(factory, doc_id, timestamp):
    with factory() as db:
        db.execute(
            text("INSERT INTO performance_metrics (id, operation, p95, timestamp) VALUES (:id, 'x', 1, :ts)"),
            {"id": doc_id, "ts": timestamp},
        )
        db.commit()


async def _wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        assert asyncio.get_running_loop().time() < deadline, "condition not met in time"
        await asyncio.sleep(0.01)


def test_fetch_documents_filters_orders_and_limits(session_factory):
    stream = SQLAlchemyDocumentStream(session_factory)

    documents = stream.fetch_documents("performance_metrics", since=100, limit=5)

    assert [document.id for document in documents] == ["m3", "m2"]
    assert documents[1].data["errorRate"] == 0.5
    assert documents[1].data["operation"] == "user_query"
    assert "payload" not in documents[0].data

    ascending = stream.fetch_documents("performance_metrics", descending=False, limit=2)
    assert [document.id for document in ascending] == ["m1", "m2"]


def test_subscribe_redelivers_full_snapshot_on_change(session_factory):
    async def scenario():
        stream = SQLAlchemyDocumentStream(session_factory, poll_interval_seconds=0.01)
        snapshots, errors = [], []

        unsubscribe = stream.subscribe(
            "performanceMetrics",
            on_snapshot=snapshots.append,
            on_error=errors.append,
            since=0,
            limit=500,
        )
        await _wait_for(lambda: len(snapshots) == 1)
        await asyncio.sleep(0.05)
        assert len(snapshots) == 1

        await asyncio.to_thread(_insert, session_factory, "m4", 400)
        await _wait_for(lambda: len(snapshots) == 2)
        assert [document.id for document in snapshots[1]] == ["m4", "m3", "m2", "m1"]

        unsubscribe()
        await asyncio.to_thread(_insert, session_factory, "m5", 500)
        await asyncio.sleep(0.05)
        assert len(snapshots) == 2
        assert errors == []

    asyncio.run(scenario())


def test_query_failure_reports_error_and_ends_subscription(session_factory):
    async def scenario():
        stream = SQLAlchemyDocumentStream(
            session_factory,
            tables={"sloViolations": "missing_table"},
            poll_interval_seconds=0.01,
        )
        snapshots, errors = [], []

        stream.subscribe("sloViolations", on_snapshot=snapshots.append, on_error=errors.append)
        await _wait_for(lambda: len(errors) == 1)
        await asyncio.sleep(0.05)

        assert len(errors) == 1
        assert snapshots == []

    asyncio.run(scenario())


def test_unknown_collection_and_unsafe_order_are_rejected(session_factory):
    async def scenario():
        stream = SQLAlchemyDocumentStream(session_factory)
        with pytest.raises(UnknownCollectionError):
            stream.subscribe("nope", on_snapshot=print, on_error=print)
        with pytest.raises(ValueError):
            stream.subscribe("performanceMetrics", on_snapshot=print, on_error=print, order_by="timestamp; DROP")

    asyncio.run(scenario())


def test_payload_column_is_decoded():
    from slometer.adapters.sqlalchemy_stream import _parse_payload

    assert _parse_payload(json.dumps({"p99": 10})) == {"p99": 10}
    assert _parse_payload("[1, 2]") == {}
    assert _parse_payload(None) == {}
