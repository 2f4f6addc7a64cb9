from datetime import timedelta

import pytest
from sqlalchemy import select

from groupmatch.errors import CooldownError, NotFoundError, ReversalWindowExpiredError, UnauthorizedError
from groupmatch.models import UserAccount
from groupmatch.services import interests as interest_repo
from groupmatch.services import matching as match_repo


def _credits(session_factory, user_id):
    with session_factory() as db:
        return db.execute(select(UserAccount.credits).where(UserAccount.id == user_id)).scalar_one()


def _matched_pair(engine, seed, group_id):
    a, b = seed.user(credits=1), seed.user(credits=1)
    seed.members(group_id, a, b)
    first = engine.submit_interest(a, b, group_id)
    second = engine.submit_interest(b, a, group_id)
    return a, b, first, second


def test_cancelling_a_matched_interest_deletes_the_match(engine, session_factory, seed, clock, group_id):
    a, b, first, second = _matched_pair(engine, seed, group_id)
    clock.advance(hours=3)

    result = engine.cancel_interest(first["like_id"], a)

    assert result["ended_match_id"] == second["match_id"]
    assert result["refunded"] == 1
    assert _credits(session_factory, a) == 1
    assert _credits(session_factory, b) == 0
    with session_factory() as db:
        match = match_repo.get_match(db, second["match_id"])
        assert match["status"] == "DELETED"
        assert match["ended_at"] == clock.now
        assert match_repo.find_live_match(db, a, b, group_id) is None
        reciprocal = interest_repo.get_edge(db, second["like_id"])
        assert reciprocal["cancelled_at"] is None
        assert reciprocal["is_match"] is False
        cancelled = interest_repo.get_edge(db, first["like_id"])
        assert cancelled["is_match"] is False
        assert cancelled["cancelled_at"] == clock.now


def test_reciprocal_edge_goes_back_to_received_list(engine, seed, group_id):
    a, b, first, second = _matched_pair(engine, seed, group_id)
    assert engine.list_received(a) == []

    engine.cancel_interest(first["like_id"], a)
    received = engine.list_received(a)
    assert [r["id"] for r in received] == [second["like_id"]]
    assert set(received[0]) == {"id", "group_id", "created_at"}


def test_only_the_sender_can_cancel(engine, seed, group_id):
    a, b, first, _ = _matched_pair(engine, seed, group_id)
    with pytest.raises(UnauthorizedError):
        engine.cancel_interest(first["like_id"], b)


def test_cancel_after_the_window_is_refused(engine, session_factory, seed, clock, group_id):
    a, b = seed.user(credits=1), seed.user()
    seed.members(group_id, a, b)
    sent = engine.submit_interest(a, b, group_id)

    clock.advance(hours=24, seconds=1)
    with pytest.raises(ReversalWindowExpiredError) as exc:
        engine.cancel_interest(sent["like_id"], a)
    assert exc.value.extra == {"window_hours": 24}
    assert _credits(session_factory, a) == 0


def test_second_cancel_is_not_found(engine, seed, group_id):
    a, b = seed.user(credits=1), seed.user()
    seed.members(group_id, a, b)
    sent = engine.submit_interest(a, b, group_id)
    engine.cancel_interest(sent["like_id"], a)

    with pytest.raises(NotFoundError):
        engine.cancel_interest(sent["like_id"], a)
    with pytest.raises(NotFoundError):
        engine.cancel_interest("no-such-interest", a)


def test_cancel_by_pair(engine, session_factory, seed, group_id):
    a, b = seed.user(credits=1), seed.user()
    seed.members(group_id, a, b)
    engine.submit_interest(a, b, group_id)

    result = engine.cancel_interest_for_pair(a, b, group_id, a)
    assert result["refunded"] == 1
    with pytest.raises(NotFoundError):
        engine.cancel_interest_for_pair(a, b, group_id, a)


def test_cancelled_interest_keeps_cooldown(engine, seed, clock, group_id):
    a, b = seed.user(credits=2), seed.user()
    seed.members(group_id, a, b)
    sent = engine.submit_interest(a, b, group_id)
    engine.cancel_interest(sent["like_id"], a)

    clock.advance(days=2)
    with pytest.raises(CooldownError):
        engine.submit_interest(a, b, group_id)

    clock.advance(days=12, seconds=1)
    assert engine.submit_interest(a, b, group_id)["is_match"] is False


def test_premium_cancel_refunds_nothing(engine, session_factory, seed, clock, group_id):
    a = seed.user(credits=0, is_premium=True)
    b = seed.user()
    seed.members(group_id, a, b)
    sent = engine.submit_interest(a, b, group_id)
    assert engine.cancel_interest(sent["like_id"], a)["refunded"] == 0
    assert _credits(session_factory, a) == 0
