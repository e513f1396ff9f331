"""SQLAlchemy document-stream adapter for SLOMeter."""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..errors import UnknownCollectionError
from ..ports import Document, ErrorCallback, SnapshotCallback, Unsubscribe

logger = logging.getLogger(__name__)

DEFAULT_TABLES = {
    "performanceMetrics": "performance_metrics",
    "sloViolations": "slo_violations",
}


class SQLAlchemyDocumentStream:
    """Polls relational tables and re-delivers the full result set whenever it changes."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        tables: Optional[Mapping[str, str]] = None,
        poll_interval_seconds: float = 5.0,
    ):
        self.session_factory = session_factory
        self.tables = dict(DEFAULT_TABLES if tables is None else tables)
        self.poll_interval_seconds = poll_interval_seconds

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
        table = self.tables.get(collection)
        if table is None:
            raise UnknownCollectionError(collection)
        if not order_by.isidentifier():
            raise ValueError(f"invalid order_by column: {order_by!r}")

        task = asyncio.get_running_loop().create_task(
            self._watch(table, on_snapshot, on_error, since, order_by, descending, limit)
        )

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    def fetch_documents(
        self,
        table: str,
        since: Optional[float] = None,
        order_by: str = "timestamp",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Document]:
        query = f"SELECT * FROM {table}"
        params: Dict[str, Any] = {}
        if since is not None:
            query += f" WHERE {order_by} > :since"
            params["since"] = since
        query += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            query += " LIMIT :limit"
            params["limit"] = limit

        with self.session_factory() as db:
            rows = db.execute(text(query), params).fetchall()
        return [_row_to_document(row._mapping) for row in rows]

    async def _watch(
        self,
        table: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        since: Optional[float],
        order_by: str,
        descending: bool,
        limit: Optional[int],
    ) -> None:
        previous: Optional[List[Document]] = None
        while True:
            try:
                documents = await asyncio.to_thread(
                    self.fetch_documents, table, since, order_by, descending, limit
                )
            except Exception as exc:
                logger.warning("polling %s failed", table, exc_info=True)
                on_error(exc)
                return
            if documents != previous:
                previous = documents
                on_snapshot(documents)
            await asyncio.sleep(self.poll_interval_seconds)


def _row_to_document(mapping: Mapping[str, Any]) -> Document:
    data = dict(mapping)
    doc_id = data.pop("id", None)
    payload = _parse_payload(data.pop("payload", None))
    for key, value in payload.items():
        data.setdefault(key, value)
    return Document(id=str(doc_id) if doc_id is not None else "", data=data)


def _parse_payload(raw_payload) -> Dict[str, Any]:
    if raw_payload is None:
        return {}
    if isinstance(raw_payload, str):
        try:
            raw_payload = json.loads(raw_payload)
        except json.JSONDecodeError:
            return {}
    if isinstance(raw_payload, dict):
        return raw_payload
    return {}
