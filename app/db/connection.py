from __future__ import annotations

from contextlib import contextmanager
import threading
from typing import Callable, Iterator, Optional

import pg8000.dbapi as pgapi

from app.core.config import db_configured, settings
from app.core.errors import DocumentConflict, StoreError, StorePermissionError, StoreUnavailable
from app.db.schema import ensure_schema

_DB_LOCAL = threading.local()
_SCHEMA_READY = False
_SCHEMA_LOCK = threading.Lock()

INSUFFICIENT_PRIVILEGE = "42501"
UNIQUE_VIOLATION = "23505"


def _sqlstate(exc: Exception) -> Optional[str]:
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0].get("C")
    return None


@contextmanager
def translate_errors(path: str, operation: str) -> Iterator[None]:
    """Map driver failures onto the store error taxonomy."""
    try:
        yield
    except StoreError:
        raise
    except pgapi.DatabaseError as exc:
        code = _sqlstate(exc)
        if code == INSUFFICIENT_PRIVILEGE:
            raise StorePermissionError(path, operation) from exc
        if code == UNIQUE_VIOLATION:
            raise DocumentConflict(path) from exc
        raise StoreUnavailable(str(exc)) from exc
    except (pgapi.InterfaceError, OSError, RuntimeError) as exc:
        raise StoreUnavailable(str(exc)) from exc


def _connect():
    if not db_configured():
        raise RuntimeError("Database configuration is missing")
    return pgapi.connect(
        host=settings.db_host,
        port=settings.db_port,
        database=settings.db_name,
        user=settings.db_user,
        password=settings.db_password,
    )


def _migrate_once(conn) -> None:
    global _SCHEMA_READY
    if not settings.auto_migrate or _SCHEMA_READY:
        return
    with _SCHEMA_LOCK:
        if not _SCHEMA_READY:
            ensure_schema(conn)
            _SCHEMA_READY = True


def _is_alive(conn) -> bool:
    try:
        cur = conn.cursor()
        cur.execute("SELECT 1")
        cur.close()
    except pgapi.Error:
        return False
    return True


def get_conn():
    """Per-thread autocommit connection used for reads."""
    conn = getattr(_DB_LOCAL, "conn", None)
    if conn is None or not _is_alive(conn):
        conn = _connect()
        conn.autocommit = True
        _DB_LOCAL.conn = conn
    _migrate_once(conn)
    return conn


def fetch_all(sql: str, params: tuple = (), path: str = "", operation: str = "list") -> list[dict]:
    with translate_errors(path, operation):
        cur = get_conn().cursor()
        try:
            cur.execute(sql, params)
            rows = cur.fetchall()
            columns = [col[0] for col in cur.description]
        finally:
            cur.close()
    return [dict(zip(columns, row)) for row in rows]


def fetch_one(sql: str, params: tuple = (), path: str = "", operation: str = "get") -> Optional[dict]:
    rows = fetch_all(sql, params, path=path, operation=operation)
    return rows[0] if rows else None


def run_transaction(handler: Callable, path: str = "", operation: str = "write"):
    """Run ``handler(conn)`` on a fresh connection and commit, or roll back on failure."""
    with translate_errors(path, operation):
        conn = _connect()
        try:
            conn.autocommit = False
            _migrate_once(conn)
            result = handler(conn)
            conn.commit()
            return result
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
