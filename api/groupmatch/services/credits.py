"""Credit ledger: consumable interest credits plus the premium exemption.

Every mutation here is expected to run inside the caller's transaction so a
debit is never committed without the interest edge it pays for.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select, update

from ..config import INTEREST_COST_CREDITS
from ..errors import InsufficientCreditError, NotFoundError
from ..models import UserAccount
from ..timeutil import ensure_utc

logger = logging.getLogger(__name__)


def is_premium_active(is_premium: bool, premium_until: datetime | None, now: datetime) -> bool:
    if not is_premium:
        return False
    until = ensure_utc(premium_until)
    return until is None or until > ensure_utc(now)


class CreditLedger:
    def __init__(self, cost: int = INTEREST_COST_CREDITS) -> None:
        self.cost = cost

    def get_balance(self, db, user_id: str, now: datetime, *, for_update: bool = False) -> dict[str, Any]:
        stmt = select(UserAccount.id, UserAccount.credits, UserAccount.is_premium, UserAccount.premium_until).where(
            UserAccount.id == user_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = db.execute(stmt).mappings().first()
        if not row:
            raise NotFoundError("User not found")
        premium_until = ensure_utc(row["premium_until"])
        return {
            "user_id": str(row["id"]),
            "credits": int(row["credits"] or 0),
            "is_premium": is_premium_active(bool(row["is_premium"]), premium_until, now),
            "premium_until": premium_until,
        }

    def cost_for(self, balance: dict[str, Any]) -> int:
        return 0 if balance["is_premium"] else self.cost

    def can_afford(self, balance: dict[str, Any]) -> bool:
        return balance["is_premium"] or balance["credits"] >= self.cost

    def charge_for_interest(self, db, user_id: str, now: datetime) -> dict[str, int]:
        balance = self.get_balance(db, user_id, now)
        cost = self.cost_for(balance)
        if cost == 0:
            return {"charged": 0}
        res = db.execute(
            update(UserAccount)
            .where(UserAccount.id == user_id, UserAccount.credits >= cost)
            .values(credits=UserAccount.credits - cost)
            .execution_options(synchronize_session=False)
        )
        if int(res.rowcount or 0) != 1:
            raise InsufficientCreditError(credits=balance["credits"], required=cost)
        return {"charged": cost}

    def refund(self, db, user_id: str, amount: int) -> None:
        if amount <= 0:
            return
        res = db.execute(
            update(UserAccount)
            .where(UserAccount.id == user_id)
            .values(credits=UserAccount.credits + amount)
            .execution_options(synchronize_session=False)
        )
        if int(res.rowcount or 0) != 1:
            raise NotFoundError("User not found")
        logger.info("[CREDIT] refunded user_id=%s amount=%s", user_id, amount)

    def grant(self, db, user_id: str, amount: int) -> int:
        if amount <= 0:
            raise ValueError("amount must be positive")
        res = db.execute(
            update(UserAccount)
            .where(UserAccount.id == user_id)
            .values(credits=UserAccount.credits + amount)
            .execution_options(synchronize_session=False)
        )
        if int(res.rowcount or 0) != 1:
            raise NotFoundError("User not found")
        new_balance = db.execute(select(UserAccount.credits).where(UserAccount.id == user_id)).scalar_one()
        logger.info("[CREDIT] granted user_id=%s amount=%s balance=%s", user_id, amount, new_balance)
        return int(new_balance)
