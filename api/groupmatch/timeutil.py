from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; every stored value is UTC wall-clock."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_midnight_utc(now: datetime, tz: str) -> datetime:
    local_now = ensure_utc(now).astimezone(ZoneInfo(tz))
    midnight = datetime.combine(local_now.date(), time.min, tzinfo=ZoneInfo(tz))
    return midnight.astimezone(timezone.utc)


def next_local_midnight_utc(now: datetime, tz: str) -> datetime:
    local_now = ensure_utc(now).astimezone(ZoneInfo(tz))
    tomorrow = local_now.date() + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=ZoneInfo(tz)).astimezone(timezone.utc)
