import uuid
from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, UniqueConstraint, func, text
from sqlalchemy.dialects.postgresql import JSONB
from .database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


class UserAccount(Base):
    __tablename__ = "user_account"

    id = Column(String(36), primary_key=True, default=_uuid)
    credits = Column(Integer, nullable=False, default=0)
    is_premium = Column(Boolean, nullable=False, default=False)
    premium_until = Column(DateTime(timezone=True), nullable=True)
    interests = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class GroupMembership(Base):
    __tablename__ = "group_membership"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    group_id = Column(String(36), nullable=False)
    status = Column(String, nullable=False, default="ACTIVE")
    joined_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_group_membership_user_group"),
        Index("idx_group_membership_group_status", "group_id", "status"),
    )


class InterestEdge(Base):
    __tablename__ = "interest_edge"

    id = Column(String(36), primary_key=True, default=_uuid)
    from_user_id = Column(String(36), nullable=False)
    to_user_id = Column(String(36), nullable=False)
    group_id = Column(String(36), nullable=False)
    is_match = Column(Boolean, nullable=False, default=False)
    charged_credits = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_interest_edge_active",
            "from_user_id",
            "to_user_id",
            "group_id",
            unique=True,
            postgresql_where=text("cancelled_at IS NULL"),
            sqlite_where=text("cancelled_at IS NULL"),
        ),
        Index("idx_interest_edge_from_created", "from_user_id", "created_at"),
        Index("idx_interest_edge_to_user", "to_user_id"),
    )


class InterestMatch(Base):
    __tablename__ = "interest_match"

    id = Column(String(36), primary_key=True, default=_uuid)
    user1_id = Column(String(36), nullable=False)
    user2_id = Column(String(36), nullable=False)
    pair_key = Column(String(80), nullable=False)
    group_id = Column(String(36), nullable=False)
    status = Column(String, nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_interest_match_pair_live",
            "pair_key",
            "group_id",
            unique=True,
            postgresql_where=text("status <> 'DELETED'"),
            sqlite_where=text("status <> 'DELETED'"),
        ),
        Index("idx_interest_match_user1", "user1_id"),
        Index("idx_interest_match_user2", "user2_id"),
    )


class InterestEvent(Base):
    __tablename__ = "interest_event"

    id = Column(String(36), primary_key=True, default=_uuid)
    event_type = Column(String, nullable=False)
    user_id = Column(String(36), nullable=False)
    group_id = Column(String(36), nullable=True)
    edge_id = Column(String(36), nullable=True)
    match_id = Column(String(36), nullable=True)
    payload = Column(JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_interest_event_user_id", "user_id"),)


class NotificationOutbox(Base):
    __tablename__ = "notifications_outbox"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    notification_type = Column(String, nullable=False)
    payload_json = Column(JSONType, nullable=False, default=dict)
    status = Column(String, nullable=False, default="pending")
    idempotency_key = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_notifications_outbox_idempotency_key"),
        Index("idx_notifications_outbox_status", "status"),
    )
