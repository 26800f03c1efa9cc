from typing import Optional

from fastapi import Depends, Header, HTTPException

from app.core.config import store_configured
from app.core.security import verify_token
from app.db.store import DocumentStore, default_store
from app.services.auth import get_admin


def require_db() -> None:
    if not store_configured():
        raise HTTPException(status_code=500, detail="Database is not configured")


def get_store() -> DocumentStore:
    require_db()
    return default_store()


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def optional_admin(
    authorization: Optional[str] = Header(None),
    store: DocumentStore = Depends(get_store),
) -> Optional[dict]:
    token = _bearer_token(authorization)
    if token is None:
        return None
    email = verify_token(token)
    if email is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    admin = get_admin(store, email)
    if admin is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return admin


def require_admin(admin: Optional[dict] = Depends(optional_admin)) -> dict:
    if admin is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return admin
