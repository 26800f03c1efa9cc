from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
import json
import threading
from typing import Any, Iterable, Optional

from app.core.config import settings
from app.core.errors import DocumentConflict, DocumentNotFound, StorePermissionError
from app.db.connection import fetch_all, fetch_one, run_transaction

REGISTRATIONS = "registrations"
RAFFLE_ITEMS = "raffle_items"
WINNERS = "winners"
SETTINGS = "settings"
ADMINS = "admins"


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


# Placeholder replaced by the store with its own clock when a write commits.
SERVER_TIMESTAMP = _ServerTimestamp()


def document_path(collection: str, doc_id: Optional[str] = None) -> str:
    return collection if doc_id is None else f"{collection}/{doc_id}"


class WriteBatch:
    """Ordered list of writes that a store applies all-or-nothing."""

    def __init__(self) -> None:
        self.operations: list[tuple[str, str, str, Optional[dict]]] = []

    def set(self, collection: str, doc_id: str, data: dict) -> "WriteBatch":
        self.operations.append(("set", collection, doc_id, dict(data)))
        return self

    def create(self, collection: str, doc_id: str, data: dict) -> "WriteBatch":
        self.operations.append(("create", collection, doc_id, dict(data)))
        return self

    def update(self, collection: str, doc_id: str, data: dict) -> "WriteBatch":
        self.operations.append(("update", collection, doc_id, dict(data)))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self.operations.append(("delete", collection, doc_id, None))
        return self

    def paths(self) -> list[str]:
        return [document_path(collection, doc_id) for _, collection, doc_id, _ in self.operations]

    def __len__(self) -> int:
        return len(self.operations)


class DocumentStore:
    """Keyed JSON documents grouped in named collections.

    Backends implement ``get``, ``list``, ``get_many`` and ``commit``; the
    single document writes are one-operation batches.
    """

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        raise NotImplementedError

    def list(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict]:
        raise NotImplementedError

    def get_many(self, collection: str, doc_ids: Iterable[str]) -> list[dict]:
        raise NotImplementedError

    def commit(self, batch: WriteBatch) -> None:
        raise NotImplementedError

    def batch(self) -> WriteBatch:
        return WriteBatch()

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self.commit(WriteBatch().set(collection, doc_id, data))

    def create(self, collection: str, doc_id: str, data: dict) -> None:
        self.commit(WriteBatch().create(collection, doc_id, data))

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        self.commit(WriteBatch().update(collection, doc_id, data))

    def delete(self, collection: str, doc_id: str) -> None:
        self.commit(WriteBatch().delete(collection, doc_id))


def _with_id(doc_id: str, data: dict) -> dict:
    return {**data, "id": doc_id}


def _stamp(data: dict, now: Any) -> dict:
    return {key: (now if value is SERVER_TIMESTAMP else value) for key, value in data.items()}


def _sort_key(value: Any) -> tuple:
    # None sorts first, then values grouped by type so mixed fields never compare.
    if value is None:
        return (0, "")
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    return (3, value if isinstance(value, (str, datetime)) else str(value))


class MemoryDocumentStore(DocumentStore):
    def __init__(self, denied_collections: Iterable[str] = ()) -> None:
        self._collections: dict[str, dict[str, dict]] = {}
        self._lock = threading.Lock()
        self._last_timestamp: Optional[datetime] = None
        self.denied_collections = set(denied_collections)

    def _server_now(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            return _with_id(doc_id, copy.deepcopy(data)) if data is not None else None

    def list(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict]:
        with self._lock:
            docs = [
                _with_id(doc_id, copy.deepcopy(data))
                for doc_id, data in self._collections.get(collection, {}).items()
            ]
        if order_by:
            docs.sort(key=lambda doc: (_sort_key(doc.get(order_by)), doc["id"]), reverse=descending)
        return docs

    def get_many(self, collection: str, doc_ids: Iterable[str]) -> list[dict]:
        wanted = set(doc_ids)
        with self._lock:
            documents = self._collections.get(collection, {})
            return [
                _with_id(doc_id, copy.deepcopy(documents[doc_id]))
                for doc_id in sorted(wanted)
                if doc_id in documents
            ]

    def commit(self, batch: WriteBatch) -> None:
        with self._lock:
            staged = {name: dict(docs) for name, docs in self._collections.items()}
            now = self._server_now()
            for operation, collection, doc_id, data in batch.operations:
                path = document_path(collection, doc_id)
                if collection in self.denied_collections:
                    raise StorePermissionError(path, operation, data)
                documents = staged.setdefault(collection, {})
                if operation == "create" and doc_id in documents:
                    raise DocumentConflict(path)
                if operation == "update":
                    if doc_id not in documents:
                        raise DocumentNotFound(path)
                    documents[doc_id] = {**documents[doc_id], **copy.deepcopy(_stamp(data, now))}
                elif operation == "delete":
                    documents.pop(doc_id, None)
                else:
                    documents[doc_id] = copy.deepcopy(_stamp(data, now))
            self._collections = staged


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {value.__class__.__name__} is not JSON serializable")


def _dumps(data: dict) -> str:
    return json.dumps(data, default=_json_default)


def _loads(value: Any) -> dict:
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return dict(value or {})


class PostgresDocumentStore(DocumentStore):
    """Documents persisted as JSONB rows in the ``documents`` table."""

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        row = fetch_one(
            "SELECT id, data FROM documents WHERE collection = %s AND id = %s",
            (collection, doc_id),
            path=document_path(collection, doc_id),
            operation="get",
        )
        if not row:
            return None
        return _with_id(row["id"], _loads(row["data"]))

    def list(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict]:
        sql = "SELECT id, data FROM documents WHERE collection = %s"
        params: tuple = (collection,)
        if order_by:
            direction = "DESC" if descending else "ASC"
            sql += f" ORDER BY data -> %s {direction}, id {direction}"
            params = (collection, order_by)
        rows = fetch_all(sql, params, path=document_path(collection), operation="list")
        return [_with_id(row["id"], _loads(row["data"])) for row in rows]

    def get_many(self, collection: str, doc_ids: Iterable[str]) -> list[dict]:
        ids = sorted(set(doc_ids))
        if not ids:
            return []
        rows = fetch_all(
            "SELECT id, data FROM documents WHERE collection = %s AND id = ANY(%s) ORDER BY id",
            (collection, ids),
            path=document_path(collection),
            operation="list",
        )
        return [_with_id(row["id"], _loads(row["data"])) for row in rows]

    def commit(self, batch: WriteBatch) -> None:
        if not batch.operations:
            return
        paths = batch.paths()
        operation_names = {op for op, _, _, _ in batch.operations}
        batch_operation = operation_names.pop() if len(operation_names) == 1 else "write"

        def _handler(conn):
            cur = conn.cursor()
            cur.execute("SELECT now()")
            now = cur.fetchone()[0]
            for operation, collection, doc_id, data in batch.operations:
                path = document_path(collection, doc_id)
                if operation == "delete":
                    cur.execute(
                        "DELETE FROM documents WHERE collection = %s AND id = %s",
                        (collection, doc_id),
                    )
                    continue
                payload = _dumps(_stamp(data, now))
                if operation == "set":
                    cur.execute(
                        """
                        INSERT INTO documents (collection, id, data)
                        VALUES (%s, %s, %s::jsonb)
                        ON CONFLICT (collection, id)
                        DO UPDATE SET data = EXCLUDED.data, updated_at = now()
                        """,
                        (collection, doc_id, payload),
                    )
                elif operation == "create":
                    cur.execute(
                        """
                        INSERT INTO documents (collection, id, data)
                        VALUES (%s, %s, %s::jsonb)
                        ON CONFLICT (collection, id) DO NOTHING
                        """,
                        (collection, doc_id, payload),
                    )
                    if cur.rowcount != 1:
                        cur.close()
                        raise DocumentConflict(path)
                else:
                    cur.execute(
                        """
                        UPDATE documents
                        SET data = data || %s::jsonb, updated_at = now()
                        WHERE collection = %s AND id = %s
                        """,
                        (payload, collection, doc_id),
                    )
                    if cur.rowcount != 1:
                        cur.close()
                        raise DocumentNotFound(path)
            cur.close()

        run_transaction(_handler, path=paths[0] if len(paths) == 1 else "batch", operation=batch_operation)


_STORE: Optional[DocumentStore] = None
_STORE_LOCK = threading.Lock()


def build_store() -> DocumentStore:
    if settings.store_backend == "memory":
        return MemoryDocumentStore()
    return PostgresDocumentStore()


def default_store() -> DocumentStore:
    global _STORE
    if _STORE is not None:
        return _STORE
    with _STORE_LOCK:
        if _STORE is None:
            _STORE = build_store()
        return _STORE
