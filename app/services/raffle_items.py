from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import HTTPException
from pydantic import ValidationError

from app.core.errors import DocumentConflict, DocumentNotFound, store_errors
from app.db.store import RAFFLE_ITEMS, DocumentStore, document_path
from app.models.schemas import RaffleItem, RaffleItemUpdate
from app.services.csv_import import normalize_row

logger = logging.getLogger(__name__)

# Rows without explicit line numbers are numbered as if the header were line 1.
FIRST_DATA_ROW = 2


def _item_from_doc(doc: dict) -> RaffleItem:
    return RaffleItem(**doc)


def _item_data(item: RaffleItem) -> dict:
    return item.model_dump(exclude={"id"})


def list_items(store: DocumentStore, prize_type: Optional[str] = None) -> list[RaffleItem]:
    with store_errors(RAFFLE_ITEMS, "list"):
        docs = store.list(RAFFLE_ITEMS, order_by="name")
    items = [_item_from_doc(doc) for doc in docs]
    if prize_type and prize_type != "all":
        items = [item for item in items if item.prize_type == prize_type]
    return items


def get_item(store: DocumentStore, item_id: str) -> RaffleItem:
    with store_errors(document_path(RAFFLE_ITEMS, item_id), "get"):
        doc = store.get(RAFFLE_ITEMS, item_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Raffle item not found")
    return _item_from_doc(doc)


def _id_in_use() -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={
            "message": "This Item ID is already in use.",
            "errors": {"id": ["This Item ID must be unique."]},
        },
    )


def create_item(store: DocumentStore, item: RaffleItem) -> RaffleItem:
    path = document_path(RAFFLE_ITEMS, item.id)
    with store_errors(path, "get"):
        existing = store.get(RAFFLE_ITEMS, item.id)
    if existing:
        raise _id_in_use()
    data = _item_data(item)
    with store_errors(path, "create", item.model_dump()):
        try:
            store.create(RAFFLE_ITEMS, item.id, data)
        except DocumentConflict as exc:
            raise _id_in_use() from exc
    logger.info("Raffle item %s created", item.id)
    return item


def update_item(
    store: DocumentStore,
    item_id: str,
    payload: Union[RaffleItem, RaffleItemUpdate],
) -> RaffleItem:
    if isinstance(payload, RaffleItem) and payload.id != item_id:
        raise HTTPException(status_code=400, detail="Item ID cannot be changed")
    data = payload.model_dump(exclude_unset=True, exclude={"id"})
    data = {key: value for key, value in data.items() if value is not None}
    if not data:
        raise HTTPException(status_code=400, detail="No fields to update")
    with store_errors(document_path(RAFFLE_ITEMS, item_id), "update", data):
        try:
            store.update(RAFFLE_ITEMS, item_id, data)
        except DocumentNotFound as exc:
            raise HTTPException(status_code=404, detail="Raffle item not found") from exc
    logger.info("Raffle item %s updated", item_id)
    return get_item(store, item_id)


def delete_item(store: DocumentStore, item_id: str) -> dict:
    # Winners keep their own prize snapshot, so no reference check is needed.
    with store_errors(document_path(RAFFLE_ITEMS, item_id), "delete"):
        store.delete(RAFFLE_ITEMS, item_id)
    logger.info("Raffle item %s deleted", item_id)
    return {"status": "deleted", "item_id": item_id}


def _validation_messages(row_number: int, exc: ValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "row"
        messages.append(f"Row {row_number}: {field}: {error['msg']}")
    return messages


def default_row_numbers(count: int) -> list[int]:
    return [index + FIRST_DATA_ROW for index in range(count)]


def validate_rows(
    rows: list[dict], row_numbers: list[int]
) -> tuple[list[RaffleItem], list[str]]:
    items: list[RaffleItem] = []
    errors: list[str] = []
    for row_number, row in zip(row_numbers, rows):
        try:
            items.append(RaffleItem.model_validate(row))
        except ValidationError as exc:
            errors.extend(_validation_messages(row_number, exc))
    return items, errors


def find_duplicate_rows(items: list[RaffleItem], row_numbers: list[int]) -> list[str]:
    """Report every row whose id appears more than once in the batch."""
    counts: dict[str, int] = {}
    for item in items:
        counts[item.id] = counts.get(item.id, 0) + 1
    return [
        f'Row {row_number}: Duplicate Item ID "{item.id}" found in CSV.'
        for row_number, item in zip(row_numbers, items)
        if counts[item.id] > 1
    ]


def bulk_import(
    store: DocumentStore, rows: list[dict], row_numbers: Optional[list[int]] = None
) -> dict:
    """Insert new catalog items; ``row_numbers`` gives the source line of each row."""
    if not rows:
        raise HTTPException(status_code=400, detail="No data rows found in CSV.")
    if row_numbers is None:
        row_numbers = default_row_numbers(len(rows))

    rows = [normalize_row(row) for row in rows]

    items, errors = validate_rows(rows, row_numbers)
    if errors:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "CSV data is invalid. Please check the format.",
                "errors": errors,
                "inserted_count": 0,
            },
        )

    duplicates = find_duplicate_rows(items, row_numbers)
    if duplicates:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "CSV contains duplicate Item IDs.",
                "errors": duplicates,
                "inserted_count": 0,
            },
        )

    with store_errors(RAFFLE_ITEMS, "list"):
        existing_ids = {doc["id"] for doc in store.get_many(RAFFLE_ITEMS, [item.id for item in items])}

    batch = store.batch()
    skipped: list[str] = []
    for row_number, item in zip(row_numbers, items):
        if item.id in existing_ids:
            skipped.append(
                f'Row {row_number}: Item ID "{item.id}" already exists in the database.'
            )
            continue
        batch.create(RAFFLE_ITEMS, item.id, _item_data(item))

    inserted = len(batch)
    if inserted:
        with store_errors(RAFFLE_ITEMS, "create", [op[2] for op in batch.operations]):
            store.commit(batch)
    logger.info("Bulk import inserted %s item(s), skipped %s", inserted, len(skipped))

    message = "Upload complete." if inserted else "No new items were imported."
    return {"message": message, "inserted_count": inserted, "errors": skipped}
