from typing import Any

from fastapi import APIRouter, Depends

from ..config import RECOMMENDATION_DEFAULT_COUNT
from ..deps import get_interest_engine, require_actor
from ..schemas import MatchView, RecommendationView
from ..services.engine import InterestEngine

router = APIRouter()
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def matches_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "matches"}


@router.get("/matches")
def list_matches(
    group_id: str | None = None,
    page: int = 1,
    limit: int = 20,
    actor_id: str = Depends(require_actor),
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    rows = engine.list_matches(actor_id, group_id=group_id, page=page, limit=limit)
    return {"matches": [MatchView(**r).model_dump() for r in rows], "page": page}


@router.get("/matches/{match_id}")
def get_match(
    match_id: str,
    actor_id: str = Depends(require_actor),
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    return {"match": MatchView(**engine.get_match(match_id, actor_id)).model_dump()}


@router.get("/groups/{group_id}/recommendations")
def get_recommendations(
    group_id: str,
    count: int = RECOMMENDATION_DEFAULT_COUNT,
    actor_id: str = Depends(require_actor),
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    safe_count = max(1, min(50, int(count)))
    rows = engine.recommend(actor_id, group_id, safe_count)
    return {"recommendations": [RecommendationView(**r).model_dump() for r in rows]}
