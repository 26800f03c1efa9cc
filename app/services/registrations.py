from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import HTTPException
from pydantic import ValidationError

from app.core.config import settings
from app.core.errors import DocumentConflict, store_errors
from app.db.store import REGISTRATIONS, SERVER_TIMESTAMP, SETTINGS, DocumentStore, document_path
from app.models.schemas import Registration, RegistrationCreate

logger = logging.getLogger(__name__)

REGISTRATION_SETTINGS_ID = "registration"
REGISTRATION_SORT_KEYS = ("created_at", "full_name", "email")


def field_errors(exc: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "form"
        errors.setdefault(field, []).append(error["msg"])
    return errors


def success_redirect_url(full_name: str, existing: bool) -> str:
    params = {"name": full_name}
    if existing:
        params["existing"] = "true"
    return f"{settings.registration_success_url}?{urlencode(params)}"


def get_registration_status(store: DocumentStore) -> bool:
    path = document_path(SETTINGS, REGISTRATION_SETTINGS_ID)
    with store_errors(path, "get"):
        doc = store.get(SETTINGS, REGISTRATION_SETTINGS_ID)
    if doc is None:
        return True
    return bool(doc.get("is_open", True))


def set_registration_status(store: DocumentStore, is_open: bool) -> dict:
    data = {"is_open": is_open}
    with store_errors(document_path(SETTINGS, REGISTRATION_SETTINGS_ID), "update", data):
        store.set(SETTINGS, REGISTRATION_SETTINGS_ID, data)
    logger.info("Registration is now %s", "open" if is_open else "closed")
    return {
        "success": True,
        "message": f"Registration is now {'open' if is_open else 'closed'}.",
        "is_open": is_open,
    }


def get_registration(store: DocumentStore, email: str) -> Optional[Registration]:
    key = email.strip().lower()
    with store_errors(document_path(REGISTRATIONS, key), "get"):
        doc = store.get(REGISTRATIONS, key)
    return Registration(**doc) if doc else None


def list_registrations(store: DocumentStore) -> list[Registration]:
    with store_errors(REGISTRATIONS, "list"):
        docs = store.list(REGISTRATIONS, order_by="created_at", descending=True)
    return [Registration(**doc) for doc in docs]


def search_registrations(
    store: DocumentStore,
    search: Optional[str] = None,
    sort: str = "created_at",
    direction: str = "desc",
    offset: int = 0,
    limit: int = 50,
) -> dict:
    if sort not in REGISTRATION_SORT_KEYS:
        raise HTTPException(status_code=400, detail="Invalid sort key")
    registrations = list_registrations(store)
    if search:
        needle = search.lower()
        registrations = [
            reg
            for reg in registrations
            if needle in reg.full_name.lower() or needle in reg.email.lower()
        ]
    if sort == "created_at":
        registrations.sort(key=lambda reg: reg.created_at, reverse=direction == "desc")
    else:
        registrations.sort(
            key=lambda reg: str(getattr(reg, sort)).lower(), reverse=direction == "desc"
        )
    return {
        "total": len(registrations),
        "offset": offset,
        "limit": limit,
        "registrations": registrations[offset : offset + limit],
    }


def register(store: DocumentStore, payload: RegistrationCreate) -> dict:
    """Register an attendee once per email.

    A repeated email is not an error: the stored record wins and its name is
    reported back with ``status == "existing"``.
    """
    if not get_registration_status(store):
        raise HTTPException(status_code=403, detail="Sorry, registration is currently closed.")

    email = payload.email.strip().lower()
    existing = get_registration(store, email)
    if existing is None:
        data = {
            "full_name": payload.full_name.strip(),
            "email": email,
            "created_at": SERVER_TIMESTAMP,
        }
        with store_errors(document_path(REGISTRATIONS, email), "create", data):
            try:
                store.create(REGISTRATIONS, email, data)
            except DocumentConflict:
                # lost a race with a concurrent registration for the same email
                existing = get_registration(store, email)
                if existing is None:
                    raise
    if existing is not None:
        logger.info("Repeat registration for %s", email)
        return {
            "status": "existing",
            "full_name": existing.full_name,
            "redirect_url": success_redirect_url(existing.full_name, existing=True),
        }
    logger.info("New registration for %s", email)
    return {
        "status": "created",
        "full_name": data["full_name"],
        "redirect_url": success_redirect_url(data["full_name"], existing=False),
    }
