from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from ..errors import NotFoundError
from . import interests as interest_repo
from . import matching as match_repo
from .credits import CreditLedger
from .events import INTEREST_CANCELLED, MATCH_DELETED, log_interest_event

logger = logging.getLogger(__name__)


def reverse_interest(db, edge: dict[str, Any], now: datetime, ledger: CreditLedger) -> dict[str, Any]:
    """Cancel one edge and undo everything its creation did.

    Must run inside the pair's unit of work. The reciprocal edge is kept and
    returns to pending; only its match flag is cleared.
    """
    if not interest_repo.cancel_edge(db, edge["id"], now):
        raise NotFoundError("Interest not found")

    ended_match_id = None
    if edge["is_match"]:
        match = match_repo.find_live_match(db, edge["from_user_id"], edge["to_user_id"], edge["group_id"])
        if match and match_repo.apply_match_action(db, match, "reverse", now) != match["status"]:
            ended_match_id = match["id"]
            log_interest_event(
                db,
                MATCH_DELETED,
                edge["from_user_id"],
                group_id=edge["group_id"],
                edge_id=edge["id"],
                match_id=match["id"],
                payload={"reason": "interest_cancelled"},
                now=now,
            )
        reciprocal = interest_repo.find_reciprocal_edge(db, edge["from_user_id"], edge["to_user_id"], edge["group_id"])
        if reciprocal:
            interest_repo.set_edge_match_flag(db, reciprocal["id"], False)

    refunded = int(edge.get("charged_credits") or 0)
    ledger.refund(db, edge["from_user_id"], refunded)
    log_interest_event(
        db,
        INTEREST_CANCELLED,
        edge["from_user_id"],
        group_id=edge["group_id"],
        edge_id=edge["id"],
        match_id=ended_match_id,
        payload={"refunded": refunded},
        now=now,
    )
    logger.info(
        "[INTEREST] reversed like_id=%s refunded=%s ended_match_id=%s",
        edge["id"],
        refunded,
        ended_match_id,
    )
    return {"refunded": refunded, "ended_match_id": ended_match_id}
