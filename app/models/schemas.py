from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

PrizeType = Literal["minor", "major", "grand"]
PrizeFilter = Literal["all", "grand", "major", "minor"]


class HealthResponse(BaseModel):
    status: str
    time: datetime


class MigrationRunResponse(BaseModel):
    status: str
    applied_at: datetime


class AdminRegister(BaseModel):
    name: str = Field(..., min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


class AdminLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


class AdminOut(BaseModel):
    id: str
    name: str
    email: EmailStr
    created_at: datetime


class LoginResponse(BaseModel):
    admin: AdminOut
    access_token: str
    token_type: str = "bearer"


class RegistrationCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(..., min_length=2, max_length=120)
    email: EmailStr


class Registration(BaseModel):
    id: str
    full_name: str
    email: EmailStr
    created_at: datetime


class RegistrationResult(BaseModel):
    status: Literal["created", "existing"]
    full_name: str
    redirect_url: str


class RegistrationPage(BaseModel):
    total: int
    offset: int
    limit: int
    registrations: list[Registration]


class RegistrationStatus(BaseModel):
    is_open: bool


class RegistrationStatusUpdate(BaseModel):
    success: bool
    message: str
    is_open: bool


class RaffleItem(BaseModel):
    id: str = Field(..., min_length=1, max_length=120)
    name: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=3, max_length=1000)
    prize_type: PrizeType


class RaffleItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=3, max_length=1000)
    prize_type: Optional[PrizeType] = None


class BulkImportResult(BaseModel):
    message: str
    inserted_count: int
    errors: list[str]


class Winner(BaseModel):
    id: str
    registration_id: str
    full_name: str
    prize_id: str
    prize_name: str
    prize_type: PrizeType
    round: int = Field(..., ge=1)
    confirmed_at: datetime


class WinnerPage(BaseModel):
    total: int
    offset: int
    limit: int
    winners: list[Winner]


class Participant(BaseModel):
    full_name: str
    prize_name: Optional[str] = None
    prize_type: Optional[PrizeType] = None


class DraftRequest(BaseModel):
    count: int = Field(..., ge=1)


class AssignmentRequest(BaseModel):
    registration_id: str
    prize_id: Optional[str] = None


class DraftedParticipant(BaseModel):
    registration_id: str
    full_name: str
    prize_id: Optional[str] = None
    prize_name: Optional[str] = None
    prize_type: Optional[PrizeType] = None


class RoundOut(BaseModel):
    round: int
    state: Literal["idle", "drafted", "confirming"]
    total_registrations: int
    undrafted_count: int
    drafted: list[DraftedParticipant]


class ConfirmResponse(BaseModel):
    round: int
    winners: list[Winner]
    next_round: int
