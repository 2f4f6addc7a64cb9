from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, insert, or_, select, update

from ..config import SHARED_INTEREST_POINTS
from ..models import InterestMatch
from ..timeutil import ensure_utc
from .pair_lock import canonical_pair, pair_key
from .state_machine import ACTIVE, DELETED, transition_match_status

matches = InterestMatch.__table__


@dataclass
class Recommendation:
    user_id: str
    score: int
    shared_interests: list[str]


def _match_dict(row) -> dict[str, Any] | None:
    if not row:
        return None
    out = dict(row)
    out["created_at"] = ensure_utc(out.get("created_at"))
    out["ended_at"] = ensure_utc(out.get("ended_at"))
    return out


def partner_of(match: dict[str, Any], user_id: str) -> str:
    return str(match["user2_id"]) if str(match["user1_id"]) == user_id else str(match["user1_id"])


def insert_match(db, user_a: str, user_b: str, group_id: str, now: datetime) -> dict[str, Any]:
    user1_id, user2_id = canonical_pair(user_a, user_b)
    row = {
        "id": str(uuid.uuid4()),
        "user1_id": user1_id,
        "user2_id": user2_id,
        "pair_key": pair_key(user_a, user_b),
        "group_id": group_id,
        "status": ACTIVE,
        "created_at": now,
        "ended_at": None,
    }
    db.execute(insert(matches).values(**row))
    return row


def find_live_match(db, user_a: str, user_b: str, group_id: str) -> dict[str, Any] | None:
    row = db.execute(
        select(matches).where(
            matches.c.pair_key == pair_key(user_a, user_b),
            matches.c.group_id == group_id,
            matches.c.status != DELETED,
        )
    ).mappings().first()
    return _match_dict(row)


def get_match(db, match_id: str) -> dict[str, Any] | None:
    row = db.execute(select(matches).where(matches.c.id == match_id)).mappings().first()
    return _match_dict(row)


def apply_match_action(db, match: dict[str, Any], action: str, now: datetime) -> str:
    new_status = transition_match_status(match["status"], action)
    if new_status != match["status"]:
        db.execute(
            update(matches)
            .where(matches.c.id == match["id"], matches.c.status == match["status"])
            .values(status=new_status, ended_at=now)
        )
    return new_status


def _participant_filter(user_id: str):
    return or_(matches.c.user1_id == user_id, matches.c.user2_id == user_id)


def list_user_matches(
    db,
    user_id: str,
    *,
    group_id: str | None = None,
    status: str | None = ACTIVE,
    page: int = 1,
    limit: int = 20,
) -> list[dict[str, Any]]:
    safe_limit = max(1, min(100, int(limit)))
    offset = (max(1, int(page)) - 1) * safe_limit
    conditions = [_participant_filter(user_id)]
    if group_id:
        conditions.append(matches.c.group_id == group_id)
    if status:
        conditions.append(matches.c.status == status)
    rows = db.execute(
        select(matches).where(and_(*conditions)).order_by(matches.c.created_at.desc()).offset(offset).limit(safe_limit)
    ).mappings().all()
    return [_match_dict(r) for r in rows]


def count_active_matches(db, user_id: str) -> int:
    value = db.execute(
        select(func.count()).select_from(matches).where(_participant_filter(user_id), matches.c.status == ACTIVE)
    ).scalar()
    return int(value or 0)


def list_expirable_matches(db, created_before: datetime, limit: int = 500) -> list[dict[str, Any]]:
    rows = db.execute(
        select(matches)
        .where(matches.c.status == ACTIVE, matches.c.created_at < created_before)
        .order_by(matches.c.created_at.asc())
        .limit(max(1, int(limit)))
    ).mappings().all()
    return [_match_dict(r) for r in rows]


def compute_compatibility(u_interests: list[str], v_interests: list[str], points: int = SHARED_INTEREST_POINTS) -> dict[str, Any]:
    mine = {str(i).strip().lower() for i in (u_interests or []) if str(i).strip()}
    theirs = {str(i).strip().lower() for i in (v_interests or []) if str(i).strip()}
    shared = sorted(mine & theirs)
    return {"score": len(shared) * points, "shared_interests": shared}


def rank_recommendations(
    user_interests: list[str],
    candidates: list[dict[str, Any]],
    count: int,
) -> list[Recommendation]:
    scored: list[Recommendation] = []
    for c in candidates:
        comp = compute_compatibility(user_interests, c.get("interests") or [])
        scored.append(Recommendation(user_id=c["user_id"], score=comp["score"], shared_interests=comp["shared_interests"]))
    scored.sort(key=lambda r: (-r.score, r.user_id))
    return scored[: max(0, int(count))]
