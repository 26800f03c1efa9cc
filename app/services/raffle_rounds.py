"""Raffle round engine.

A round moves through ``idle -> drafted -> confirming -> idle``. The drafted
pool and prize assignments only live in memory, owned by one ``RaffleRound``
per operator, until a confirm writes them as a single batch of winners.
"""

from __future__ import annotations

from enum import Enum
import logging
import random
import threading
from typing import Optional, Sequence, TypeVar

from fastapi import HTTPException

from app.core.errors import DocumentConflict, store_errors
from app.db.store import SERVER_TIMESTAMP, WINNERS, DocumentStore
from app.models.schemas import RaffleItem, Registration, Winner
from app.services import raffle_items, registrations, winners as winners_service

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RoundState(str, Enum):
    IDLE = "idle"
    DRAFTED = "drafted"
    CONFIRMING = "confirming"


def fisher_yates(items: Sequence[T], rng: random.Random) -> list[T]:
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def draft_sample(pool: Sequence[T], count: int, rng: random.Random) -> list[T]:
    if count < 1 or count > len(pool):
        raise ValueError(f"Cannot draft {count} from a pool of {len(pool)}")
    return fisher_yates(pool, rng)[:count]


def next_round_number(past_winners: Sequence[Winner]) -> int:
    return max((winner.round for winner in past_winners), default=0) + 1


def undrafted_pool(
    all_registrations: Sequence[Registration],
    past_winners: Sequence[Winner],
) -> list[Registration]:
    won = {winner.registration_id for winner in past_winners}
    return [reg for reg in all_registrations if reg.id not in won]


def winner_id(round_number: int, registration_id: str) -> str:
    return f"{round_number}-{registration_id}"


class RaffleRound:
    def __init__(self, store: DocumentStore, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.SystemRandom()
        self.state = RoundState.IDLE
        self.round_number = 1
        self.registrations: list[Registration] = []
        self.items: list[RaffleItem] = []
        self.past_winners: list[Winner] = []
        self.draft_pool: list[Registration] = []
        # registration_id -> prize_id
        self.assignments: dict[str, str] = {}
        self._lock = threading.RLock()

    def refresh(self) -> None:
        """Re-read registrations, catalog and winners.

        The round number is only recomputed while idle so that a drafted round
        keeps the number it started with.
        """
        regs = registrations.list_registrations(self.store)
        items = raffle_items.list_items(self.store)
        past = winners_service.list_winners(self.store)
        with self._lock:
            self.registrations = regs
            self.items = items
            self.past_winners = past
            if self.state is RoundState.IDLE:
                self.round_number = next_round_number(past)

    def reload_catalog(self) -> None:
        items = raffle_items.list_items(self.store)
        with self._lock:
            self.items = items

    def undrafted(self) -> list[Registration]:
        return undrafted_pool(self.registrations, self.past_winners)

    def _require_drafted(self) -> None:
        if self.state is RoundState.CONFIRMING:
            raise HTTPException(status_code=409, detail="Round confirmation already in progress")
        if self.state is not RoundState.DRAFTED:
            raise HTTPException(status_code=409, detail="No round in progress")

    def draft(self, count: int) -> list[Registration]:
        self.refresh()
        with self._lock:
            if self.state is not RoundState.IDLE:
                raise HTTPException(
                    status_code=409,
                    detail="A round is already in progress. Reset or confirm it first.",
                )
            pool = self.undrafted()
            if not pool:
                raise HTTPException(status_code=400, detail="There are no undrafted participants left.")
            if count < 1 or count > len(pool):
                raise HTTPException(
                    status_code=400,
                    detail=f"Not enough participants: you can only draw up to {len(pool)} winner(s).",
                )
            self.draft_pool = draft_sample(pool, count, self.rng)
            self.assignments = {}
            self.state = RoundState.DRAFTED
            logger.info("Round %s drafted %s participant(s)", self.round_number, count)
            return list(self.draft_pool)

    def available_prizes(self, prize_filter: str = "all") -> list[RaffleItem]:
        with self._lock:
            assigned = set(self.assignments.values())
            won = {winner.prize_id for winner in self.past_winners}
            available = [
                item for item in self.items if item.id not in assigned and item.id not in won
            ]
        if prize_filter and prize_filter != "all":
            available = [item for item in available if item.prize_type == prize_filter]
        return available

    def assign(self, registration_id: str, prize_id: Optional[str]) -> dict[str, str]:
        if prize_id:
            self.reload_catalog()
        with self._lock:
            self._require_drafted()
            if registration_id not in {reg.id for reg in self.draft_pool}:
                raise HTTPException(
                    status_code=404, detail="Participant is not part of the drafted pool"
                )
            if not prize_id:
                self.assignments.pop(registration_id, None)
                return dict(self.assignments)
            if prize_id not in {item.id for item in self.items}:
                raise HTTPException(status_code=404, detail="Raffle item not found")
            if prize_id in {winner.prize_id for winner in self.past_winners}:
                raise HTTPException(
                    status_code=409, detail="This prize was already awarded in a past round"
                )
            for holder, held in list(self.assignments.items()):
                if held == prize_id and holder != registration_id:
                    del self.assignments[holder]
            self.assignments[registration_id] = prize_id
            return dict(self.assignments)

    def reset(self) -> None:
        with self._lock:
            if self.state is RoundState.CONFIRMING:
                raise HTTPException(status_code=409, detail="Round confirmation already in progress")
            self.draft_pool = []
            self.assignments = {}
            self.state = RoundState.IDLE

    def _build_winners(self) -> list[dict]:
        people = {reg.id: reg for reg in self.draft_pool}
        prizes = {item.id: item for item in self.items}
        docs = []
        for registration_id, prize_id in self.assignments.items():
            person = people[registration_id]
            prize = prizes.get(prize_id)
            if prize is None:
                raise HTTPException(
                    status_code=409, detail=f'Prize "{prize_id}" is no longer in the catalog.'
                )
            docs.append(
                {
                    "id": winner_id(self.round_number, registration_id),
                    "registration_id": registration_id,
                    "full_name": person.full_name,
                    "prize_id": prize.id,
                    "prize_name": prize.name,
                    "prize_type": prize.prize_type,
                    "round": self.round_number,
                }
            )
        return docs

    def _check_not_awarded(self, docs: list[dict]) -> None:
        persisted = winners_service.list_winners(self.store)
        won_prizes = {winner.prize_id for winner in persisted}
        won_people = {winner.registration_id for winner in persisted}
        for doc in docs:
            if doc["prize_id"] in won_prizes:
                raise HTTPException(
                    status_code=409,
                    detail=f'Prize "{doc["prize_id"]}" has already been awarded.',
                )
            if doc["registration_id"] in won_people:
                raise HTTPException(
                    status_code=409,
                    detail=f'{doc["full_name"]} has already won in a previous round.',
                )

    def confirm(self) -> list[Winner]:
        self.reload_catalog()
        with self._lock:
            self._require_drafted()
            if not self.assignments:
                raise HTTPException(status_code=400, detail="No prizes assigned")
            docs = self._build_winners()
            self.state = RoundState.CONFIRMING
            round_number = self.round_number

        try:
            self._check_not_awarded(docs)
            batch = self.store.batch()
            for doc in docs:
                data = {key: value for key, value in doc.items() if key != "id"}
                batch.create(WINNERS, doc["id"], {**data, "confirmed_at": SERVER_TIMESTAMP})
            with store_errors(WINNERS, "create", docs):
                try:
                    self.store.commit(batch)
                except DocumentConflict as exc:
                    raise HTTPException(
                        status_code=409,
                        detail=f"Round {round_number} winners were already recorded.",
                    ) from exc
        except Exception:
            with self._lock:
                self.state = RoundState.DRAFTED
            raise

        with self._lock:
            self.draft_pool = []
            self.assignments = {}
            self.state = RoundState.IDLE
        with store_errors(WINNERS, "list"):
            saved = self.store.get_many(WINNERS, [doc["id"] for doc in docs])
        confirmed = sorted((Winner(**doc) for doc in saved), key=lambda winner: winner.full_name)
        logger.info("Round %s confirmed with %s winner(s)", round_number, len(confirmed))
        try:
            self.refresh()
        except HTTPException as exc:
            logger.warning("Could not reload data after round %s: %s", round_number, exc.detail)
        return confirmed

    def current(self) -> dict:
        if self.state is RoundState.IDLE:
            self.refresh()
        return self.snapshot()

    def snapshot(self) -> dict:
        with self._lock:
            prizes = {item.id: item for item in self.items}
            drafted = []
            for reg in self.draft_pool:
                prize = prizes.get(self.assignments.get(reg.id, ""))
                drafted.append(
                    {
                        "registration_id": reg.id,
                        "full_name": reg.full_name,
                        "prize_id": prize.id if prize else None,
                        "prize_name": prize.name if prize else None,
                        "prize_type": prize.prize_type if prize else None,
                    }
                )
            return {
                "round": self.round_number,
                "state": self.state.value,
                "total_registrations": len(self.registrations),
                "undrafted_count": len(self.undrafted()),
                "drafted": drafted,
            }


class RoundRegistry:
    """One ``RaffleRound`` per operator for the life of the process."""

    def __init__(self) -> None:
        self._rounds: dict[str, RaffleRound] = {}
        self._lock = threading.Lock()

    def get(self, store: DocumentStore, operator: str) -> RaffleRound:
        with self._lock:
            current = self._rounds.get(operator)
            if current is None or current.store is not store:
                current = RaffleRound(store)
                self._rounds[operator] = current
            return current

    def clear(self) -> None:
        with self._lock:
            self._rounds.clear()


rounds = RoundRegistry()
