from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..errors import (
    CooldownError,
    DailyLimitExceededError,
    DuplicateInterestError,
    InsufficientCreditError,
    NotCoMemberError,
    SelfTargetError,
)
from . import interests as interest_repo
from .credits import CreditLedger
from .rate_policy import (
    InterestPolicy,
    cooldown_remaining_seconds,
    cooldown_since,
    daily_quota_exhausted,
    quota_resets_at,
    quota_window_start,
)


@dataclass
class Eligibility:
    balance: dict[str, Any]
    sent_today: int


def check_eligibility(
    db,
    *,
    from_user_id: str,
    to_user_id: str,
    group_id: str,
    now: datetime,
    membership,
    ledger: CreditLedger,
    policy: InterestPolicy,
    lock_sender: bool = False,
) -> Eligibility:
    """Run every submission check in order and raise the first denial.

    Reads only. The resolver calls this once before its unit of work and again
    inside it, where ``lock_sender`` takes the sender's account row.
    """
    if from_user_id == to_user_id:
        raise SelfTargetError()

    if not membership.is_active_member(db, from_user_id, group_id) or not membership.is_active_member(
        db, to_user_id, group_id
    ):
        raise NotCoMemberError()

    if interest_repo.find_active_edge(db, from_user_id, to_user_id, group_id):
        raise DuplicateInterestError()

    last_signal = interest_repo.latest_signal_at(db, from_user_id, to_user_id, cooldown_since(now, policy))
    if last_signal is not None:
        raise CooldownError(retry_after_seconds=cooldown_remaining_seconds(last_signal, now, policy))

    balance = ledger.get_balance(db, from_user_id, now, for_update=lock_sender)
    if not ledger.can_afford(balance):
        raise InsufficientCreditError(credits=balance["credits"], required=ledger.cost)

    sent_today = 0
    if not balance["is_premium"]:
        sent_today = interest_repo.count_sent_since(db, from_user_id, quota_window_start(now, policy))
        if daily_quota_exhausted(sent_today, False, policy):
            raise DailyLimitExceededError(
                limit=policy.daily_limit,
                resets_at=quota_resets_at(now, policy).isoformat(),
            )

    return Eligibility(balance=balance, sent_today=sent_today)
