from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from app.api.dependencies import get_store, require_admin
from app.db.store import DocumentStore
from app.models.schemas import BulkImportResult, PrizeFilter, RaffleItem, RaffleItemUpdate
from app.services import raffle_items
from app.services.csv_import import read_raffle_items_csv

router = APIRouter(prefix="/raffle-items", tags=["raffle-items"])


@router.get("", response_model=list[RaffleItem])
def list_items(
    prize_type: Optional[PrizeFilter] = Query(None, description="Filter by prize type"),
    store: DocumentStore = Depends(get_store),
):
    return raffle_items.list_items(store, prize_type)


@router.get("/{item_id}", response_model=RaffleItem)
def get_item(item_id: str, store: DocumentStore = Depends(get_store)):
    return raffle_items.get_item(store, item_id)


@router.post(
    "",
    response_model=RaffleItem,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_item(payload: RaffleItem, store: DocumentStore = Depends(get_store)):
    return raffle_items.create_item(store, payload)


@router.put("/{item_id}", response_model=RaffleItem, dependencies=[Depends(require_admin)])
def replace_item(item_id: str, payload: RaffleItem, store: DocumentStore = Depends(get_store)):
    return raffle_items.update_item(store, item_id, payload)


@router.patch("/{item_id}", response_model=RaffleItem, dependencies=[Depends(require_admin)])
def update_item(item_id: str, payload: RaffleItemUpdate, store: DocumentStore = Depends(get_store)):
    return raffle_items.update_item(store, item_id, payload)


@router.delete("/{item_id}", dependencies=[Depends(require_admin)])
def delete_item(item_id: str, store: DocumentStore = Depends(get_store)):
    return raffle_items.delete_item(store, item_id)


@router.post("/bulk", response_model=BulkImportResult, dependencies=[Depends(require_admin)])
def bulk_import(rows: list[dict[str, Any]], store: DocumentStore = Depends(get_store)):
    return raffle_items.bulk_import(store, rows)


@router.post("/bulk/csv", response_model=BulkImportResult, dependencies=[Depends(require_admin)])
def bulk_import_csv(file: UploadFile = File(...), store: DocumentStore = Depends(get_store)):
    try:
        text = file.file.read().decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded") from exc
    rows, row_numbers = read_raffle_items_csv(text)
    return raffle_items.bulk_import(store, rows, row_numbers)
