from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_store, require_admin
from app.db.store import DocumentStore
from app.models.schemas import Participant, WinnerPage
from app.services import winners

router = APIRouter(tags=["winners"])


@router.get("/winners", response_model=WinnerPage, dependencies=[Depends(require_admin)])
def list_winners(
    sort: str = Query("round"),
    direction: str = Query("asc", pattern="^(asc|desc)$"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    store: DocumentStore = Depends(get_store),
):
    return winners.winners_page(store, sort=sort, direction=direction, offset=offset, limit=limit)


@router.get("/participants", response_model=list[Participant])
def list_participants(store: DocumentStore = Depends(get_store)):
    return winners.list_participants(store)
