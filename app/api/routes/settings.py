from fastapi import APIRouter, Depends

from app.api.dependencies import get_store, require_admin
from app.db.store import DocumentStore
from app.models.schemas import RegistrationStatus, RegistrationStatusUpdate
from app.services import registrations

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/registration", response_model=RegistrationStatus)
def get_registration_status(store: DocumentStore = Depends(get_store)):
    return {"is_open": registrations.get_registration_status(store)}


@router.put(
    "/registration",
    response_model=RegistrationStatusUpdate,
    dependencies=[Depends(require_admin)],
)
def set_registration_status(payload: RegistrationStatus, store: DocumentStore = Depends(get_store)):
    return registrations.set_registration_status(store, payload.is_open)
