from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, insert, or_, select, update

from ..models import InterestEdge
from ..timeutil import ensure_utc

edges = InterestEdge.__table__


def _edge_dict(row) -> dict[str, Any] | None:
    if not row:
        return None
    out = dict(row)
    out["created_at"] = ensure_utc(out.get("created_at"))
    out["cancelled_at"] = ensure_utc(out.get("cancelled_at"))
    out["is_match"] = bool(out.get("is_match"))
    return out


def get_edge(db, edge_id: str) -> dict[str, Any] | None:
    row = db.execute(select(edges).where(edges.c.id == edge_id)).mappings().first()
    return _edge_dict(row)


def find_active_edge(db, from_user_id: str, to_user_id: str, group_id: str) -> dict[str, Any] | None:
    row = db.execute(
        select(edges).where(
            edges.c.from_user_id == from_user_id,
            edges.c.to_user_id == to_user_id,
            edges.c.group_id == group_id,
            edges.c.cancelled_at.is_(None),
        )
    ).mappings().first()
    return _edge_dict(row)


def find_reciprocal_edge(db, from_user_id: str, to_user_id: str, group_id: str) -> dict[str, Any] | None:
    return find_active_edge(db, to_user_id, from_user_id, group_id)


def latest_signal_at(db, from_user_id: str, to_user_id: str, since: datetime) -> datetime | None:
    # Any edge counts, cancelled or not, in any group.
    value = db.execute(
        select(func.max(edges.c.created_at)).where(
            edges.c.from_user_id == from_user_id,
            edges.c.to_user_id == to_user_id,
            edges.c.created_at >= since,
        )
    ).scalar()
    return ensure_utc(value)


def count_sent_since(db, user_id: str, since: datetime) -> int:
    value = db.execute(
        select(func.count()).select_from(edges).where(
            edges.c.from_user_id == user_id,
            edges.c.created_at >= since,
            edges.c.cancelled_at.is_(None),
        )
    ).scalar()
    return int(value or 0)


def insert_edge(
    db,
    *,
    from_user_id: str,
    to_user_id: str,
    group_id: str,
    is_match: bool,
    charged_credits: int,
    now: datetime,
) -> dict[str, Any]:
    edge = {
        "id": str(uuid.uuid4()),
        "from_user_id": from_user_id,
        "to_user_id": to_user_id,
        "group_id": group_id,
        "is_match": is_match,
        "charged_credits": charged_credits,
        "created_at": now,
        "cancelled_at": None,
    }
    db.execute(insert(edges).values(**edge))
    return edge


def set_edge_charge(db, edge_id: str, charged_credits: int) -> None:
    db.execute(update(edges).where(edges.c.id == edge_id).values(charged_credits=charged_credits))


def set_edge_match_flag(db, edge_id: str, is_match: bool) -> None:
    db.execute(update(edges).where(edges.c.id == edge_id).values(is_match=is_match))


def cancel_edge(db, edge_id: str, now: datetime) -> bool:
    res = db.execute(
        update(edges)
        .where(edges.c.id == edge_id, edges.c.cancelled_at.is_(None))
        .values(cancelled_at=now, is_match=False)
    )
    return int(res.rowcount or 0) == 1


def list_sent(db, user_id: str, page: int = 1, limit: int = 20) -> list[dict[str, Any]]:
    safe_limit = max(1, min(100, int(limit)))
    offset = (max(1, int(page)) - 1) * safe_limit
    rows = db.execute(
        select(edges)
        .where(edges.c.from_user_id == user_id)
        .order_by(edges.c.created_at.desc())
        .offset(offset)
        .limit(safe_limit)
    ).mappings().all()
    return [_edge_dict(r) for r in rows]


def list_received_pending(db, user_id: str, page: int = 1, limit: int = 20) -> list[dict[str, Any]]:
    """Pending interests toward the user, without the sender's identity."""
    safe_limit = max(1, min(100, int(limit)))
    offset = (max(1, int(page)) - 1) * safe_limit
    rows = db.execute(
        select(edges.c.id, edges.c.group_id, edges.c.created_at)
        .where(
            edges.c.to_user_id == user_id,
            edges.c.cancelled_at.is_(None),
            edges.c.is_match.is_(False),
        )
        .order_by(edges.c.created_at.desc())
        .offset(offset)
        .limit(safe_limit)
    ).mappings().all()
    return [{"id": str(r["id"]), "group_id": str(r["group_id"]), "created_at": ensure_utc(r["created_at"])} for r in rows]


def interest_counts(db, user_id: str) -> dict[str, int]:
    sent = db.execute(
        select(func.count()).select_from(edges).where(edges.c.from_user_id == user_id, edges.c.cancelled_at.is_(None))
    ).scalar()
    received = db.execute(
        select(func.count()).select_from(edges).where(edges.c.to_user_id == user_id, edges.c.cancelled_at.is_(None))
    ).scalar()
    matches = db.execute(
        select(func.count()).select_from(edges).where(
            edges.c.from_user_id == user_id,
            edges.c.cancelled_at.is_(None),
            edges.c.is_match.is_(True),
        )
    ).scalar()
    return {"sent": int(sent or 0), "received": int(received or 0), "matches": int(matches or 0)}


def signaled_target_ids(db, user_id: str, group_id: str, cooldown_since: datetime) -> set[str]:
    rows = db.execute(
        select(edges.c.to_user_id).where(
            edges.c.from_user_id == user_id,
            or_(
                and_(edges.c.group_id == group_id, edges.c.cancelled_at.is_(None)),
                edges.c.created_at >= cooldown_since,
            ),
        )
    ).all()
    return {str(r[0]) for r in rows}
