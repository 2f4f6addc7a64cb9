import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


def _canonical_user_id(value: str) -> str:
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError:
        raise ValueError("to_user_id must be a valid UUID")


class SubmitInterestRequest(BaseModel):
    to_user_id: str = Field(min_length=1)
    group_id: str = Field(min_length=1)

    @field_validator("to_user_id")
    @classmethod
    def normalize_target(cls, value: str) -> str:
        return _canonical_user_id(value)


class SubmitInterestResponse(BaseModel):
    like_id: str
    is_match: bool
    match_id: str | None = None
    message: str


class CancelInterestRequest(BaseModel):
    to_user_id: str = Field(min_length=1)
    group_id: str = Field(min_length=1)

    @field_validator("to_user_id")
    @classmethod
    def normalize_target(cls, value: str) -> str:
        return _canonical_user_id(value)


class CancelInterestResponse(BaseModel):
    message: str
    refunded: int = 0


class InterestStatsResponse(BaseModel):
    sent: int
    received: int
    matches: int
    active_matches: int
    sent_today: int
    daily_remaining: int | None
    credits: int
    is_premium: bool


class SentInterest(BaseModel):
    id: str
    to_user_id: str
    group_id: str
    is_match: bool
    created_at: datetime
    cancelled_at: datetime | None = None


class ReceivedInterest(BaseModel):
    id: str
    group_id: str
    created_at: datetime


class MatchView(BaseModel):
    id: str
    group_id: str
    partner_user_id: str
    status: str
    created_at: datetime
    ended_at: datetime | None = None


class RecommendationView(BaseModel):
    user_id: str
    score: int
    shared_interests: list[str] = Field(default_factory=list)


class GrantCreditsRequest(BaseModel):
    amount: int = Field(gt=0, le=10000)
