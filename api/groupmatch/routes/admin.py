from typing import Any

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder

from ..deps import get_db, get_interest_engine, require_admin
from ..schemas import GrantCreditsRequest
from ..services.engine import InterestEngine
from ..services.events import list_interest_events
from ..services.notifications import list_notifications_outbox

router = APIRouter()
scaffold_router = APIRouter()


def _json(data: Any) -> Any:
    return jsonable_encoder(data)


@scaffold_router.get("/health")
def admin_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "admin"}


@router.post("/admin/matches/expire", dependencies=[Depends(require_admin)])
def admin_expire_matches(
    limit: int = 500,
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    expired = engine.expire_matches(limit=max(1, min(5000, int(limit))))
    return {"expired": expired}


@router.get("/admin/notifications/outbox", dependencies=[Depends(require_admin)])
def admin_notifications_outbox(
    status: str = "pending",
    limit: int = 100,
    db=Depends(get_db),
) -> dict[str, Any]:
    rows = list_notifications_outbox(db, status=status, limit=limit)
    return _json({"status": status, "rows": rows, "count": len(rows), "limit": int(limit)})


@router.get("/admin/interest-events", dependencies=[Depends(require_admin)])
def admin_interest_events(
    user_id: str | None = None,
    limit: int = 100,
    db=Depends(get_db),
) -> dict[str, Any]:
    rows = list_interest_events(db, user_id=user_id, limit=limit)
    return _json({"rows": rows, "count": len(rows)})


@router.post("/admin/users/{user_id}/credits", dependencies=[Depends(require_admin)])
def admin_grant_credits(
    user_id: str,
    payload: GrantCreditsRequest,
    engine: InterestEngine = Depends(get_interest_engine),
) -> dict[str, Any]:
    balance = engine.grant_credits(user_id, payload.amount)
    return {"user_id": user_id, "credits": balance}
