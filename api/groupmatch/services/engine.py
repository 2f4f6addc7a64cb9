"""Interest submission, match resolution and reversal.

Each write runs as one unit of work per (unordered pair, group): the
in-process pair lock is held for the whole transaction, and on PostgreSQL the
transaction also takes an advisory lock on the same key. The reciprocal-edge
lookup happens inside that unit, so of two crossing submissions the second one
always sees the first and creates the single Match.

A submission also holds a per-sender lock, taken before the pair lock, so two
submissions from one sender to different targets cannot both spend the last
slot of the daily quota. On PostgreSQL the sender's account row is locked
FOR UPDATE as well.

Calls are synchronous and run to completion or roll back entirely, whatever
happens to the HTTP request that started them. After a ``TransientStoreError``
nothing has been written and the whole call may be retried; after a timeout
the caller should re-read its interests first.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator

from sqlalchemy.exc import DBAPIError, IntegrityError

from ..config import PAIR_LOCK_TIMEOUT_SECONDS, STATEMENT_TIMEOUT_MS
from ..errors import (
    NotCoMemberError,
    NotFoundError,
    ReversalWindowExpiredError,
    TransientStoreError,
    UnauthorizedError,
)
from ..timeutil import now_utc
from . import interests as interest_repo
from . import matching as match_repo
from .credits import CreditLedger
from .eligibility import check_eligibility
from .events import INTEREST_SENT, MATCH_CREATED, MATCH_EXPIRED, log_interest_event
from .membership import SqlMembershipOracle
from .notifications import NotificationDispatcher, NotificationSender, OutboxNotificationSender, SubmissionOutcome
from .pair_lock import PairLockRegistry, acquire_store_pair_lock
from .rate_policy import (
    InterestPolicy,
    cooldown_since,
    daily_remaining,
    quota_window_start,
    reversal_window_open,
)
from .reversal import reverse_interest
from .state_machine import ACTIVE

logger = logging.getLogger(__name__)

MATCH_MESSAGE = "It's a match! You can now start chatting."
SENT_MESSAGE = "Interest sent."
CANCELLED_MESSAGE = "Interest cancelled and credit refunded."


class InterestEngine:
    def __init__(
        self,
        session_factory,
        *,
        membership=None,
        ledger: CreditLedger | None = None,
        notifier: NotificationSender | None = None,
        policy: InterestPolicy | None = None,
        locks: PairLockRegistry | None = None,
        clock: Callable[[], datetime] = now_utc,
        statement_timeout_ms: int = STATEMENT_TIMEOUT_MS,
    ) -> None:
        self._session_factory = session_factory
        self.membership = membership or SqlMembershipOracle()
        self.ledger = ledger or CreditLedger()
        self.policy = policy or InterestPolicy()
        self.locks = locks or PairLockRegistry(timeout_seconds=PAIR_LOCK_TIMEOUT_SECONDS)
        self.clock = clock
        self.statement_timeout_ms = statement_timeout_ms
        self.dispatcher = NotificationDispatcher(notifier or OutboxNotificationSender(session_factory, clock=clock))

    @contextmanager
    def _read_session(self) -> Iterator[Any]:
        try:
            with self._session_factory() as db:
                yield db
        except DBAPIError as exc:
            logger.warning("[STORE] read failed: %s", exc.__class__.__name__)
            raise TransientStoreError() from exc

    @contextmanager
    def _unit_of_work(self, user_a: str, user_b: str, group_id: str) -> Iterator[Any]:
        with self.locks.hold(user_a, user_b, group_id):
            try:
                with self._session_factory() as db:
                    with db.begin():
                        acquire_store_pair_lock(db, user_a, user_b, group_id, self.statement_timeout_ms)
                        yield db
            except IntegrityError as exc:
                logger.warning("[STORE] constraint conflict, unit rolled back: %s", exc.__class__.__name__)
                raise TransientStoreError("Conflicting update, nothing was saved. Please retry") from exc
            except DBAPIError as exc:
                logger.warning("[STORE] unit of work failed, rolled back: %s", exc.__class__.__name__)
                raise TransientStoreError() from exc

    def submit_interest(self, from_user_id: str, to_user_id: str, group_id: str) -> dict[str, Any]:
        now = self.clock()
        with self._read_session() as db:
            check_eligibility(
                db,
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                group_id=group_id,
                now=now,
                membership=self.membership,
                ledger=self.ledger,
                policy=self.policy,
            )

        with self.locks.hold_sender(from_user_id), self._unit_of_work(from_user_id, to_user_id, group_id) as db:
            # Re-validated under the sender and pair locks; the first pass may be stale.
            check_eligibility(
                db,
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                group_id=group_id,
                now=now,
                membership=self.membership,
                ledger=self.ledger,
                policy=self.policy,
                lock_sender=True,
            )
            reciprocal = interest_repo.find_reciprocal_edge(db, from_user_id, to_user_id, group_id)
            is_match = reciprocal is not None

            edge = interest_repo.insert_edge(
                db,
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                group_id=group_id,
                is_match=is_match,
                charged_credits=0,
                now=now,
            )
            charge = self.ledger.charge_for_interest(db, from_user_id, now)
            if charge["charged"]:
                interest_repo.set_edge_charge(db, edge["id"], charge["charged"])
            log_interest_event(
                db,
                INTEREST_SENT,
                from_user_id,
                group_id=group_id,
                edge_id=edge["id"],
                payload={"charged": charge["charged"]},
                now=now,
            )

            match = None
            if reciprocal:
                interest_repo.set_edge_match_flag(db, reciprocal["id"], True)
                match = match_repo.insert_match(db, from_user_id, to_user_id, group_id, now)
                for user_id in (from_user_id, to_user_id):
                    log_interest_event(
                        db,
                        MATCH_CREATED,
                        user_id,
                        group_id=group_id,
                        edge_id=edge["id"],
                        match_id=match["id"],
                        now=now,
                    )

        outcome = SubmissionOutcome(
            like_id=edge["id"],
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            group_id=group_id,
            is_match=is_match,
            match_id=match["id"] if match else None,
        )
        if match:
            logger.info("[MATCH] created match_id=%s group_id=%s", match["id"], group_id)
        self.dispatcher.dispatch(outcome)
        return {
            "like_id": outcome.like_id,
            "is_match": outcome.is_match,
            "match_id": outcome.match_id,
            "charged": charge["charged"],
            "message": MATCH_MESSAGE if is_match else SENT_MESSAGE,
        }

    def cancel_interest(self, like_id: str, requester_id: str) -> dict[str, Any]:
        now = self.clock()
        with self._read_session() as db:
            edge = interest_repo.get_edge(db, like_id)
        self._check_reversible(edge, requester_id, now)

        with self._unit_of_work(edge["from_user_id"], edge["to_user_id"], edge["group_id"]) as db:
            current = interest_repo.get_edge(db, like_id)
            self._check_reversible(current, requester_id, now)
            result = reverse_interest(db, current, now, self.ledger)

        return {"message": CANCELLED_MESSAGE, "refunded": result["refunded"], "ended_match_id": result["ended_match_id"]}

    def cancel_interest_for_pair(self, from_user_id: str, to_user_id: str, group_id: str, requester_id: str) -> dict[str, Any]:
        with self._read_session() as db:
            edge = interest_repo.find_active_edge(db, from_user_id, to_user_id, group_id)
        if not edge:
            raise NotFoundError("Interest not found")
        return self.cancel_interest(edge["id"], requester_id)

    def _check_reversible(self, edge: dict[str, Any] | None, requester_id: str, now: datetime) -> None:
        if not edge or edge["cancelled_at"] is not None:
            raise NotFoundError("Interest not found")
        if edge["from_user_id"] != requester_id:
            raise UnauthorizedError("Only the sender can cancel this interest")
        if not reversal_window_open(edge["created_at"], now, self.policy):
            raise ReversalWindowExpiredError(window_hours=self.policy.reversal_window_hours)

    def expire_matches(self, limit: int = 500) -> int:
        now = self.clock()
        with self._read_session() as db:
            due = match_repo.list_expirable_matches(db, now - self.policy.match_lifetime, limit=limit)

        expired = 0
        for candidate in due:
            try:
                with self._unit_of_work(candidate["user1_id"], candidate["user2_id"], candidate["group_id"]) as db:
                    match = match_repo.get_match(db, candidate["id"])
                    if not match or match["status"] != ACTIVE:
                        continue
                    match_repo.apply_match_action(db, match, "expire", now)
                    log_interest_event(
                        db,
                        MATCH_EXPIRED,
                        match["user1_id"],
                        group_id=match["group_id"],
                        match_id=match["id"],
                        now=now,
                    )
                    expired += 1
            except TransientStoreError:
                logger.warning("[MATCH] expiry skipped match_id=%s, will retry next sweep", candidate["id"])
        logger.info("[MATCH] expiry sweep expired=%s scanned=%s", expired, len(due))
        return expired

    def grant_credits(self, user_id: str, amount: int) -> int:
        try:
            with self._session_factory() as db:
                with db.begin():
                    return self.ledger.grant(db, user_id, amount)
        except DBAPIError as exc:
            raise TransientStoreError() from exc

    def get_stats(self, user_id: str) -> dict[str, Any]:
        now = self.clock()
        with self._read_session() as db:
            balance = self.ledger.get_balance(db, user_id, now)
            counts = interest_repo.interest_counts(db, user_id)
            sent_today = interest_repo.count_sent_since(db, user_id, quota_window_start(now, self.policy))
            active_matches = match_repo.count_active_matches(db, user_id)
        return {
            **counts,
            "active_matches": active_matches,
            "sent_today": sent_today,
            "daily_remaining": daily_remaining(sent_today, balance["is_premium"], self.policy),
            "credits": balance["credits"],
            "is_premium": balance["is_premium"],
        }

    def list_sent(self, user_id: str, page: int = 1, limit: int = 20) -> list[dict[str, Any]]:
        with self._read_session() as db:
            return interest_repo.list_sent(db, user_id, page=page, limit=limit)

    def list_received(self, user_id: str, page: int = 1, limit: int = 20) -> list[dict[str, Any]]:
        with self._read_session() as db:
            return interest_repo.list_received_pending(db, user_id, page=page, limit=limit)

    def list_matches(self, user_id: str, group_id: str | None = None, page: int = 1, limit: int = 20) -> list[dict[str, Any]]:
        with self._read_session() as db:
            rows = match_repo.list_user_matches(db, user_id, group_id=group_id, page=page, limit=limit)
        return [{**r, "partner_user_id": match_repo.partner_of(r, user_id)} for r in rows]

    def get_match(self, match_id: str, user_id: str) -> dict[str, Any]:
        with self._read_session() as db:
            match = match_repo.get_match(db, match_id)
        if not match:
            raise NotFoundError("Match not found")
        if user_id not in {str(match["user1_id"]), str(match["user2_id"])}:
            raise UnauthorizedError("You are not part of this match")
        return {**match, "partner_user_id": match_repo.partner_of(match, user_id)}

    def recommend(self, user_id: str, group_id: str, count: int) -> list[dict[str, Any]]:
        now = self.clock()
        with self._read_session() as db:
            if not self.membership.is_active_member(db, user_id, group_id):
                raise NotCoMemberError("You are not an active member of this group")
            members = self.membership.list_active_members(db, group_id)
            excluded = interest_repo.signaled_target_ids(db, user_id, group_id, cooldown_since(now, self.policy))
        me = next((m for m in members if m["user_id"] == user_id), None)
        candidates = [m for m in members if m["user_id"] != user_id and m["user_id"] not in excluded]
        ranked = match_repo.rank_recommendations((me or {}).get("interests") or [], candidates, count)
        return [{"user_id": r.user_id, "score": r.score, "shared_interests": r.shared_interests} for r in ranked]
