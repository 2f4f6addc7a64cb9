import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SKIP_STARTUP_MIGRATIONS", "true")

from sqlalchemy import insert

from groupmatch.database import Base, build_engine, build_session_factory
from groupmatch.models import GroupMembership, UserAccount
from groupmatch.services.engine import InterestEngine
from groupmatch.services.pair_lock import PairLockRegistry
from groupmatch.services.rate_policy import InterestPolicy

# 12:00 in Seoul.
START = datetime(2026, 3, 2, 3, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    def __init__(self) -> None:
        self.matches: list[dict] = []
        self.received: list[dict] = []
        self.fail = False

    def notify_match(self, user_a_id, user_b_id, match_id, *, group_id=None):
        if self.fail:
            raise RuntimeError("push gateway down")
        self.matches.append({"users": {user_a_id, user_b_id}, "match_id": match_id, "group_id": group_id})

    def notify_interest_received(self, target_user_id, group_id, *, interest_id=None):
        if self.fail:
            raise RuntimeError("push gateway down")
        self.received.append({"target": target_user_id, "group_id": group_id})


class Seeder:
    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def user(self, credits: int = 5, is_premium: bool = False, premium_until=None, interests=None) -> str:
        user_id = str(uuid.uuid4())
        with self.session_factory() as db:
            db.execute(
                insert(UserAccount.__table__).values(
                    id=user_id,
                    credits=credits,
                    is_premium=is_premium,
                    premium_until=premium_until,
                    interests=interests or [],
                    created_at=START,
                )
            )
            db.commit()
        return user_id

    def join(self, user_id: str, group_id: str, status: str = "ACTIVE") -> None:
        with self.session_factory() as db:
            db.execute(
                insert(GroupMembership.__table__).values(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    group_id=group_id,
                    status=status,
                    joined_at=START,
                )
            )
            db.commit()

    def members(self, group_id: str, *user_ids: str) -> None:
        for user_id in user_ids:
            self.join(user_id, group_id)


@pytest.fixture()
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'interest.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture()
def clock():
    return FakeClock(START)


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def policy():
    return InterestPolicy(
        daily_limit=1,
        cooldown_days=14,
        reversal_window_hours=24,
        match_expiry_days=30,
        timezone="Asia/Seoul",
    )


@pytest.fixture()
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture()
def group_id():
    return str(uuid.uuid4())


@pytest.fixture()
def engine(session_factory, notifier, clock, policy):
    return InterestEngine(
        session_factory,
        notifier=notifier,
        policy=policy,
        locks=PairLockRegistry(timeout_seconds=5),
        clock=clock,
    )
