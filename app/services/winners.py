from __future__ import annotations

from fastapi import HTTPException

from app.core.errors import store_errors
from app.db.store import WINNERS, DocumentStore
from app.models.schemas import Winner
from app.services import registrations

WINNER_SORT_KEYS = ("round", "full_name")


def list_winners(store: DocumentStore) -> list[Winner]:
    with store_errors(WINNERS, "list"):
        docs = store.list(WINNERS, order_by="confirmed_at", descending=True)
    return [Winner(**doc) for doc in docs]


def winners_page(
    store: DocumentStore,
    sort: str = "round",
    direction: str = "asc",
    offset: int = 0,
    limit: int = 50,
) -> dict:
    if sort not in WINNER_SORT_KEYS:
        raise HTTPException(status_code=400, detail="Invalid sort key")
    winners = list_winners(store)
    if sort == "round":
        winners.sort(key=lambda winner: (winner.round, winner.full_name.lower()))
    else:
        winners.sort(key=lambda winner: (winner.full_name.lower(), winner.round))
    if direction == "desc":
        winners.reverse()
    return {
        "total": len(winners),
        "offset": offset,
        "limit": limit,
        "winners": winners[offset : offset + limit],
    }


def list_participants(store: DocumentStore) -> list[dict]:
    """Registrations by name with the prize each one won, if any."""
    prizes = {winner.registration_id: winner for winner in list_winners(store)}
    participants = []
    for reg in sorted(registrations.list_registrations(store), key=lambda reg: reg.full_name.lower()):
        winner = prizes.get(reg.id)
        participants.append(
            {
                "full_name": reg.full_name,
                "prize_name": winner.prize_name if winner else None,
                "prize_type": winner.prize_type if winner else None,
            }
        )
    return participants
