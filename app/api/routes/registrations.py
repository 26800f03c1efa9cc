from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Form, HTTPException, Query
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from app.api.dependencies import get_store, require_admin
from app.db.store import DocumentStore
from app.models.schemas import RegistrationCreate, RegistrationPage, RegistrationResult
from app.services import registrations
from app.services.notifications import send_registration_confirmation

router = APIRouter(prefix="/registrations", tags=["registrations"])


def _register(
    payload: RegistrationCreate,
    background_tasks: BackgroundTasks,
    store: DocumentStore,
) -> dict:
    result = registrations.register(store, payload)
    if result["status"] == "created":
        background_tasks.add_task(
            send_registration_confirmation, result["full_name"], payload.email
        )
    return result


@router.post("", response_model=RegistrationResult)
def register(
    payload: RegistrationCreate,
    background_tasks: BackgroundTasks,
    store: DocumentStore = Depends(get_store),
):
    return _register(payload, background_tasks, store)


@router.post("/form", response_class=RedirectResponse, status_code=303)
def register_form(
    background_tasks: BackgroundTasks,
    full_name: str = Form(""),
    email: str = Form(""),
    store: DocumentStore = Depends(get_store),
):
    try:
        payload = RegistrationCreate(full_name=full_name, email=email)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Please review your entries and try again.",
                "errors": registrations.field_errors(exc),
            },
        ) from exc
    result = _register(payload, background_tasks, store)
    return RedirectResponse(result["redirect_url"], status_code=303)


@router.get("", response_model=RegistrationPage, dependencies=[Depends(require_admin)])
def list_registrations(
    search: Optional[str] = Query(None, description="Match on name or email"),
    sort: str = Query("created_at"),
    direction: str = Query("desc", pattern="^(asc|desc)$"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    store: DocumentStore = Depends(get_store),
):
    return registrations.search_registrations(
        store, search=search, sort=sort, direction=direction, offset=offset, limit=limit
    )
