from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import HTTPException

from app.core.errors import DocumentConflict, store_errors
from app.core.security import hash_password, issue_token
from app.db.store import ADMINS, SERVER_TIMESTAMP, DocumentStore, document_path
from app.models.schemas import AdminLogin, AdminRegister

logger = logging.getLogger(__name__)


def _admin_out(doc: dict) -> dict:
    return {
        "id": doc["id"],
        "name": doc["name"],
        "email": doc["email"],
        "created_at": doc["created_at"],
    }


def has_admins(store: DocumentStore) -> bool:
    with store_errors(ADMINS, "list"):
        return bool(store.list(ADMINS))


def get_admin(store: DocumentStore, email: str) -> Optional[dict]:
    key = email.strip().lower()
    with store_errors(document_path(ADMINS, key), "get"):
        return store.get(ADMINS, key)


def register_admin(store: DocumentStore, payload: AdminRegister) -> dict:
    email = payload.email.strip().lower()
    salt = secrets.token_bytes(16)
    data = {
        "name": payload.name,
        "email": email,
        "password_hash": hash_password(payload.password, salt),
        "password_salt": salt.hex(),
        "created_at": SERVER_TIMESTAMP,
    }
    with store_errors(document_path(ADMINS, email), "create", {"email": email}):
        try:
            store.create(ADMINS, email, data)
        except DocumentConflict as exc:
            raise HTTPException(status_code=409, detail="Email already registered") from exc
    logger.info("Admin %s registered", email)
    return _admin_out(get_admin(store, email))


def login_admin(store: DocumentStore, payload: AdminLogin) -> dict:
    row = get_admin(store, payload.email)
    if not row:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    salt = bytes.fromhex(row["password_salt"])
    password_hash = hash_password(payload.password, salt)
    if not secrets.compare_digest(row["password_hash"], password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {
        "admin": _admin_out(row),
        "access_token": issue_token(row["email"]),
        "token_type": "bearer",
    }
