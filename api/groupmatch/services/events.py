import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import insert, select

from ..models import InterestEvent
from ..timeutil import ensure_utc, now_utc

interest_events = InterestEvent.__table__

INTEREST_SENT = "interest_sent"
MATCH_CREATED = "match_created"
INTEREST_CANCELLED = "interest_cancelled"
MATCH_DELETED = "match_deleted"
MATCH_EXPIRED = "match_expired"


def log_interest_event(
    db,
    event_type: str,
    user_id: str,
    group_id: str | None = None,
    edge_id: str | None = None,
    match_id: str | None = None,
    payload: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> None:
    payload = payload or {}
    db.execute(
        insert(interest_events).values(
            id=str(uuid.uuid4()),
            event_type=event_type,
            user_id=user_id,
            group_id=group_id,
            edge_id=edge_id,
            match_id=match_id,
            payload=payload,
            created_at=now or now_utc(),
        )
    )


def list_interest_events(db, user_id: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
    stmt = select(interest_events).order_by(interest_events.c.created_at.asc()).limit(max(1, min(500, int(limit))))
    if user_id:
        stmt = stmt.where(interest_events.c.user_id == user_id)
    rows = db.execute(stmt).mappings().all()
    return [{**dict(r), "created_at": ensure_utc(r["created_at"])} for r in rows]
