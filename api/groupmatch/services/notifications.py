"""Fan-out of interest outcomes to the push/SMS delivery collaborator.

Dispatch happens after the submission has committed. A failure here is logged
and dropped: the match stays valid whether or not anyone hears about it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Protocol

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError

from ..models import NotificationOutbox
from ..timeutil import ensure_utc, now_utc

logger = logging.getLogger(__name__)

outbox = NotificationOutbox.__table__

MATCH_CREATED = "match_created"
INTEREST_RECEIVED = "interest_received"


class NotificationSender(Protocol):
    def notify_match(self, user_a_id: str, user_b_id: str, match_id: str, *, group_id: str | None = None) -> None: ...

    def notify_interest_received(self, target_user_id: str, group_id: str, *, interest_id: str | None = None) -> None: ...


@dataclass
class SubmissionOutcome:
    like_id: str
    from_user_id: str
    to_user_id: str
    group_id: str
    is_match: bool
    match_id: str | None = None


def build_notification_idempotency_key(*, notification_type: str, user_id: str, reference_id: str) -> str:
    return f"{notification_type}:{reference_id}:{user_id}"


class OutboxNotificationSender:
    """Queues notifications in notifications_outbox for the delivery worker."""

    def __init__(self, session_factory, clock: Callable[[], datetime] = now_utc) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def _enqueue(self, *, user_id: str, notification_type: str, payload: dict[str, Any], idempotency_key: str) -> bool:
        with self._session_factory() as db:
            try:
                db.execute(
                    insert(outbox).values(
                        id=str(uuid.uuid4()),
                        user_id=user_id,
                        notification_type=notification_type,
                        payload_json=payload,
                        status="pending",
                        idempotency_key=idempotency_key,
                        created_at=self._clock(),
                    )
                )
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.debug("[NOTIFY] duplicate suppressed key=%s", idempotency_key)
                return False
        return True

    def notify_match(self, user_a_id: str, user_b_id: str, match_id: str, *, group_id: str | None = None) -> None:
        for user_id in (user_a_id, user_b_id):
            self._enqueue(
                user_id=user_id,
                notification_type=MATCH_CREATED,
                payload={"match_id": match_id, "group_id": group_id},
                idempotency_key=build_notification_idempotency_key(
                    notification_type=MATCH_CREATED, user_id=user_id, reference_id=match_id
                ),
            )

    def notify_interest_received(self, target_user_id: str, group_id: str, *, interest_id: str | None = None) -> None:
        self._enqueue(
            user_id=target_user_id,
            notification_type=INTEREST_RECEIVED,
            payload={"group_id": group_id},
            idempotency_key=build_notification_idempotency_key(
                notification_type=INTEREST_RECEIVED,
                user_id=target_user_id,
                reference_id=interest_id or str(uuid.uuid4()),
            ),
        )


class NotificationDispatcher:
    def __init__(self, sender: NotificationSender) -> None:
        self.sender = sender

    def dispatch(self, outcome: SubmissionOutcome) -> bool:
        try:
            if outcome.is_match and outcome.match_id:
                self.sender.notify_match(
                    outcome.from_user_id, outcome.to_user_id, outcome.match_id, group_id=outcome.group_id
                )
            else:
                # Only the group is disclosed to the target until the interest is mutual.
                self.sender.notify_interest_received(outcome.to_user_id, outcome.group_id, interest_id=outcome.like_id)
        except Exception:
            logger.warning(
                "[NOTIFY] dispatch failed like_id=%s is_match=%s match_id=%s",
                outcome.like_id,
                outcome.is_match,
                outcome.match_id,
                exc_info=True,
            )
            return False
        return True


def list_notifications_outbox(db, *, status: str = "pending", limit: int = 100) -> list[dict[str, Any]]:
    stmt = select(outbox).order_by(outbox.c.created_at.asc()).limit(max(1, min(500, int(limit))))
    if status:
        stmt = stmt.where(outbox.c.status == status.strip().lower())
    rows = db.execute(stmt).mappings().all()
    return [{**dict(r), "created_at": ensure_utc(r["created_at"])} for r in rows]
