from __future__ import annotations

from datetime import datetime, timezone
import logging

from fastapi import HTTPException

from app.core.config import settings
from app.core.errors import StoreError
from app.db.connection import get_conn, translate_errors
from app.db.schema import ensure_schema

logger = logging.getLogger(__name__)


def run_migrations() -> dict:
    if settings.store_backend == "memory":
        return {"status": "skipped", "applied_at": datetime.now(timezone.utc)}
    try:
        with translate_errors("documents", "migrate"):
            ensure_schema(get_conn())
    except StoreError as exc:
        logger.exception("Migration run failed")
        raise HTTPException(status_code=500, detail="Migration failed. Check logs.") from exc
    return {"status": "ok", "applied_at": datetime.now(timezone.utc)}
