from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..config import (
    DAILY_FREE_INTEREST_LIMIT,
    INTEREST_COOLDOWN_DAYS,
    INTEREST_TIMEZONE,
    MATCH_EXPIRY_DAYS,
    REVERSAL_WINDOW_HOURS,
)
from ..timeutil import ensure_utc, local_midnight_utc, next_local_midnight_utc


@dataclass(frozen=True)
class InterestPolicy:
    daily_limit: int = DAILY_FREE_INTEREST_LIMIT
    cooldown_days: int = INTEREST_COOLDOWN_DAYS
    reversal_window_hours: int = REVERSAL_WINDOW_HOURS
    match_expiry_days: int = MATCH_EXPIRY_DAYS
    timezone: str = INTEREST_TIMEZONE

    @property
    def cooldown(self) -> timedelta:
        return timedelta(days=self.cooldown_days)

    @property
    def reversal_window(self) -> timedelta:
        return timedelta(hours=self.reversal_window_hours)

    @property
    def match_lifetime(self) -> timedelta:
        return timedelta(days=self.match_expiry_days)


def quota_window_start(now: datetime, policy: InterestPolicy) -> datetime:
    return local_midnight_utc(now, policy.timezone)


def quota_resets_at(now: datetime, policy: InterestPolicy) -> datetime:
    return next_local_midnight_utc(now, policy.timezone)


def daily_quota_exhausted(sent_today: int, is_premium: bool, policy: InterestPolicy) -> bool:
    if is_premium:
        return False
    return sent_today >= policy.daily_limit


def daily_remaining(sent_today: int, is_premium: bool, policy: InterestPolicy) -> int | None:
    if is_premium:
        return None
    return max(0, policy.daily_limit - sent_today)


def cooldown_since(now: datetime, policy: InterestPolicy) -> datetime:
    return ensure_utc(now) - policy.cooldown


def cooldown_remaining_seconds(last_signal_at: datetime | None, now: datetime, policy: InterestPolicy) -> int:
    if last_signal_at is None:
        return 0
    ends_at = ensure_utc(last_signal_at) + policy.cooldown
    remaining = (ends_at - ensure_utc(now)).total_seconds()
    return max(0, math.ceil(remaining))


def reversal_window_open(created_at: datetime, now: datetime, policy: InterestPolicy) -> bool:
    return ensure_utc(now) - ensure_utc(created_at) <= policy.reversal_window
