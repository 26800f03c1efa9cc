from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_store, require_admin
from app.db.store import DocumentStore
from app.models.schemas import (
    AssignmentRequest,
    ConfirmResponse,
    DraftRequest,
    PrizeFilter,
    RaffleItem,
    RoundOut,
)
from app.services.raffle_rounds import RaffleRound, rounds

router = APIRouter(prefix="/raffle/round", tags=["raffle"])


def current_round(
    store: DocumentStore = Depends(get_store),
    admin: dict = Depends(require_admin),
) -> RaffleRound:
    return rounds.get(store, admin["email"])


@router.get("", response_model=RoundOut)
def get_round(session: RaffleRound = Depends(current_round)):
    return session.current()


@router.post("/draft", response_model=RoundOut)
def draft(payload: DraftRequest, session: RaffleRound = Depends(current_round)):
    session.draft(payload.count)
    return session.snapshot()


@router.get("/prizes", response_model=list[RaffleItem])
def available_prizes(
    prize_type: PrizeFilter = Query("all"),
    session: RaffleRound = Depends(current_round),
):
    return session.available_prizes(prize_type)


@router.put("/assignments", response_model=RoundOut)
def assign_prize(payload: AssignmentRequest, session: RaffleRound = Depends(current_round)):
    session.assign(payload.registration_id, payload.prize_id)
    return session.snapshot()


@router.post("/reset", response_model=RoundOut)
def reset(session: RaffleRound = Depends(current_round)):
    session.reset()
    return session.current()


@router.post("/confirm", response_model=ConfirmResponse)
def confirm(session: RaffleRound = Depends(current_round)):
    round_number = session.round_number
    winners = session.confirm()
    return {"round": round_number, "winners": winners, "next_round": session.round_number}
