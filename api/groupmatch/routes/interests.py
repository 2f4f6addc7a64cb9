from typing import Any

from fastapi import APIRouter, Depends

from ..config import RL_INTEREST_CANCEL_LIMIT, RL_INTEREST_SUBMIT_LIMIT, RL_WINDOW_SECONDS
from ..deps import get_interest_engine, require_actor
from ..schemas import (
    CancelInterestRequest,
    CancelInterestResponse,
    InterestStatsResponse,
    ReceivedInterest,
    SentInterest,
    SubmitInterestRequest,
    SubmitInterestResponse,
)
from ..services.engine import InterestEngine
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()
scaffold_router = APIRouter()

RL_INTEREST_SUBMIT = rate_limit_dependency("interest_submit", RL_INTEREST_SUBMIT_LIMIT, RL_WINDOW_SECONDS)
RL_INTEREST_CANCEL = rate_limit_dependency("interest_cancel", RL_INTEREST_CANCEL_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def interests_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "interests"}


@router.post("/interests", response_model=SubmitInterestResponse, dependencies=[RL_INTEREST_SUBMIT])
def submit_interest(
    payload: SubmitInterestRequest,
    actor_id: str = Depends(require_actor),
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    return engine.submit_interest(actor_id, payload.to_user_id, payload.group_id.strip())


@router.delete("/interests/{like_id}", response_model=CancelInterestResponse, dependencies=[RL_INTEREST_CANCEL])
def cancel_interest(
    like_id: str,
    actor_id: str = Depends(require_actor),
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    return engine.cancel_interest(like_id, actor_id)


@router.post("/interests/cancel", response_model=CancelInterestResponse, dependencies=[RL_INTEREST_CANCEL])
def cancel_interest_for_pair(
    payload: CancelInterestRequest,
    actor_id: str = Depends(require_actor),
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    return engine.cancel_interest_for_pair(actor_id, payload.to_user_id, payload.group_id.strip(), actor_id)


@router.get("/interests/stats", response_model=InterestStatsResponse)
def get_interest_stats(
    actor_id: str = Depends(require_actor),
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    return engine.get_stats(actor_id)


@router.get("/interests/sent")
def list_sent_interests(
    page: int = 1,
    limit: int = 20,
    actor_id: str = Depends(require_actor),
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    rows = engine.list_sent(actor_id, page=page, limit=limit)
    return {"interests": [SentInterest(**r).model_dump() for r in rows], "page": page}


@router.get("/interests/received")
def list_received_interests(
    page: int = 1,
    limit: int = 20,
    actor_id: str = Depends(require_actor),
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    rows = engine.list_received(actor_id, page=page, limit=limit)
    return {"interests": [ReceivedInterest(**r).model_dump() for r in rows], "page": page}
