from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from app.api.dependencies import get_store, optional_admin
from app.db.store import DocumentStore
from app.models.schemas import AdminLogin, AdminOut, AdminRegister, LoginResponse
from app.services import auth

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AdminOut, status_code=201)
def register(
    payload: AdminRegister,
    store: DocumentStore = Depends(get_store),
    admin: Optional[dict] = Depends(optional_admin),
):
    if admin is None and auth.has_admins(store):
        raise HTTPException(status_code=401, detail="Only admins can create admin accounts")
    return auth.register_admin(store, payload)


@router.post("/login", response_model=LoginResponse)
def login(payload: AdminLogin, store: DocumentStore = Depends(get_store)):
    return auth.login_admin(store, payload)
