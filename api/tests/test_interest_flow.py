import threading
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from groupmatch.errors import (
    CooldownError,
    DailyLimitExceededError,
    DuplicateInterestError,
    InsufficientCreditError,
    TransientStoreError,
)
from groupmatch.models import InterestEdge, InterestMatch, UserAccount
from groupmatch.services import interests as interest_repo
from groupmatch.services import matching as match_repo
from groupmatch.services.engine import MATCH_MESSAGE, SENT_MESSAGE, InterestEngine
from groupmatch.services.pair_lock import PairLockRegistry


def _credits(session_factory, user_id):
    with session_factory() as db:
        return db.execute(select(UserAccount.credits).where(UserAccount.id == user_id)).scalar_one()


def _edges(session_factory):
    with session_factory() as db:
        rows = db.execute(select(InterestEdge.__table__)).mappings().all()
        return [dict(r) for r in rows]


def _match_count(session_factory):
    with session_factory() as db:
        return db.execute(select(func.count()).select_from(InterestMatch)).scalar_one()


def test_scenario_mutual_interest_creates_one_match(engine, session_factory, seed, notifier, clock, group_id):
    a, b = seed.user(credits=1), seed.user(credits=1)
    seed.members(group_id, a, b)

    first = engine.submit_interest(a, b, group_id)
    assert first["is_match"] is False
    assert first["match_id"] is None
    assert first["message"] == SENT_MESSAGE
    assert _credits(session_factory, a) == 0
    assert _match_count(session_factory) == 0

    clock.advance(hours=2)
    second = engine.submit_interest(b, a, group_id)
    assert second["is_match"] is True
    assert second["message"] == MATCH_MESSAGE

    edges = {e["from_user_id"]: e for e in _edges(session_factory)}
    assert edges[a]["is_match"] and edges[b]["is_match"]
    assert _match_count(session_factory) == 1
    with session_factory() as db:
        match = match_repo.get_match(db, second["match_id"])
    assert (match["user1_id"], match["user2_id"]) == tuple(sorted((a, b)))
    assert match["status"] == "ACTIVE"

    assert notifier.received == [{"target": b, "group_id": group_id}]
    assert notifier.matches == [{"users": {a, b}, "match_id": second["match_id"], "group_id": group_id}]

    clock.advance(days=1)
    with pytest.raises(DuplicateInterestError):
        engine.submit_interest(a, b, group_id)

    other_group = str(uuid.uuid4())
    seed.members(other_group, a, b)
    with pytest.raises(CooldownError):
        engine.submit_interest(a, b, other_group)


def test_scenario_cancel_within_an_hour_refunds(engine, session_factory, seed, clock, group_id):
    a, b = seed.user(credits=1), seed.user()
    seed.members(group_id, a, b)

    sent = engine.submit_interest(a, b, group_id)
    clock.advance(minutes=40)
    result = engine.cancel_interest(sent["like_id"], a)

    assert result["refunded"] == 1
    assert result["ended_match_id"] is None
    assert _credits(session_factory, a) == 1
    (edge,) = _edges(session_factory)
    assert edge["cancelled_at"] is not None
    assert _match_count(session_factory) == 0


def test_denied_submission_writes_nothing(engine, session_factory, seed, group_id):
    a, b = seed.user(credits=0), seed.user()
    seed.members(group_id, a, b)
    with pytest.raises(InsufficientCreditError):
        engine.submit_interest(a, b, group_id)
    assert _edges(session_factory) == []


def test_failure_mid_unit_rolls_back_everything(engine, session_factory, seed, clock, group_id, monkeypatch):
    a, b = seed.user(credits=1), seed.user(credits=1)
    seed.members(group_id, a, b)
    engine.submit_interest(a, b, group_id)
    clock.advance(minutes=5)

    def broken_insert_match(*args, **kwargs):
        raise OperationalError("INSERT INTO interest_match", {}, Exception("disk I/O error"))

    monkeypatch.setattr(match_repo, "insert_match", broken_insert_match)
    with pytest.raises(TransientStoreError) as exc:
        engine.submit_interest(b, a, group_id)
    assert exc.value.retryable is True

    edges = _edges(session_factory)
    assert len(edges) == 1
    assert edges[0]["from_user_id"] == a
    assert not edges[0]["is_match"]
    assert _credits(session_factory, b) == 1
    assert _match_count(session_factory) == 0

    monkeypatch.undo()
    retried = engine.submit_interest(b, a, group_id)
    assert retried["is_match"] is True
    assert _match_count(session_factory) == 1
    assert _credits(session_factory, b) == 0


def test_unique_conflict_fails_closed(engine, session_factory, seed, group_id):
    a, b = seed.user(credits=1), seed.user()
    seed.members(group_id, a, b)
    engine.submit_interest(a, b, group_id)

    # A second live edge for the same directed pair hits the partial unique index.
    with pytest.raises(TransientStoreError):
        with engine._unit_of_work(a, b, group_id) as db:
            interest_repo.insert_edge(
                db,
                from_user_id=a,
                to_user_id=b,
                group_id=group_id,
                is_match=False,
                charged_credits=0,
                now=engine.clock(),
            )
    assert len(_edges(session_factory)) == 1


def test_daily_quota_resets_at_local_midnight(engine, seed, clock, group_id):
    a, b, c = seed.user(credits=5), seed.user(), seed.user()
    seed.members(group_id, a, b, c)

    engine.submit_interest(a, b, group_id)
    with pytest.raises(DailyLimitExceededError):
        engine.submit_interest(a, c, group_id)

    # 12:00 -> 00:00:01 KST the next day
    clock.advance(hours=12, seconds=1)
    assert engine.submit_interest(a, c, group_id)["is_match"] is False


def test_premium_sender_is_neither_charged_nor_limited(engine, session_factory, seed, clock, group_id):
    a = seed.user(credits=0, is_premium=True, premium_until=clock.now + timedelta(days=1))
    targets = [seed.user() for _ in range(3)]
    seed.members(group_id, a, *targets)

    for target in targets:
        assert engine.submit_interest(a, target, group_id)["charged"] == 0
    assert _credits(session_factory, a) == 0
    assert engine.get_stats(a)["daily_remaining"] is None


def test_lapsed_premium_pays_again(engine, session_factory, seed, clock, group_id):
    a = seed.user(credits=0, is_premium=True, premium_until=clock.now - timedelta(minutes=1))
    b = seed.user()
    seed.members(group_id, a, b)
    with pytest.raises(InsufficientCreditError):
        engine.submit_interest(a, b, group_id)


def test_crossing_submissions_create_exactly_one_match(session_factory, seed, notifier, clock, policy, group_id):
    engine = InterestEngine(
        session_factory,
        notifier=notifier,
        policy=policy,
        locks=PairLockRegistry(timeout_seconds=10),
        clock=clock,
    )
    a, b = seed.user(credits=1), seed.user(credits=1)
    seed.members(group_id, a, b)

    barrier = threading.Barrier(2)
    results: dict[str, dict] = {}
    errors: list[Exception] = []

    def submit(sender, target):
        barrier.wait()
        try:
            results[sender] = engine.submit_interest(sender, target, group_id)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=submit, args=(a, b)), threading.Thread(target=submit, args=(b, a))]
    for t in threads:
        t.start()
    for t in threads:
        t.join(15)

    assert errors == []
    assert sorted(r["is_match"] for r in results.values()) == [False, True]
    assert _match_count(session_factory) == 1
    edges = _edges(session_factory)
    assert len(edges) == 2
    assert all(e["is_match"] for e in edges)
    assert len(notifier.matches) == 1


def test_match_is_scoped_to_its_group(engine, session_factory, seed, clock, group_id):
    other_group = str(uuid.uuid4())
    a, b = seed.user(credits=5), seed.user(credits=5)
    seed.members(group_id, a, b)
    seed.members(other_group, a, b)

    engine.submit_interest(a, b, group_id)
    assert engine.submit_interest(b, a, group_id)["is_match"] is True

    with session_factory() as db:
        assert match_repo.find_live_match(db, a, b, group_id) is not None
        assert match_repo.find_live_match(db, a, b, other_group) is None


def test_notification_failure_does_not_undo_match(engine, session_factory, seed, notifier, group_id):
    a, b = seed.user(credits=1), seed.user(credits=1)
    seed.members(group_id, a, b)
    engine.submit_interest(a, b, group_id)

    notifier.fail = True
    result = engine.submit_interest(b, a, group_id)
    assert result["is_match"] is True
    assert _match_count(session_factory) == 1


def test_live_match_for_pair_cannot_be_inserted_twice(engine, session_factory, seed, group_id):
    a, b = seed.user(credits=1), seed.user(credits=1)
    seed.members(group_id, a, b)
    engine.submit_interest(a, b, group_id)
    engine.submit_interest(b, a, group_id)

    with pytest.raises(TransientStoreError):
        with engine._unit_of_work(a, b, group_id) as db:
            match_repo.insert_match(db, b, a, group_id, engine.clock())
    assert _match_count(session_factory) == 1


def test_parallel_submissions_from_one_sender_respect_daily_limit(session_factory, seed, notifier, clock, policy, group_id):
    engine = InterestEngine(
        session_factory,
        notifier=notifier,
        policy=policy,
        locks=PairLockRegistry(timeout_seconds=10),
        clock=clock,
    )
    a, b, c = seed.user(credits=5), seed.user(), seed.user()
    seed.members(group_id, a, b, c)

    barrier = threading.Barrier(2)
    accepted: list[dict] = []
    denied: list[Exception] = []

    def submit(target):
        barrier.wait()
        try:
            accepted.append(engine.submit_interest(a, target, group_id))
        except DailyLimitExceededError as exc:
            denied.append(exc)

    threads = [threading.Thread(target=submit, args=(b,)), threading.Thread(target=submit, args=(c,))]
    for t in threads:
        t.start()
    for t in threads:
        t.join(15)

    assert len(accepted) == 1
    assert len(denied) == 1
    assert len(_edges(session_factory)) == 1
    assert _credits(session_factory, a) == 4
