from __future__ import annotations

from typing import Any

from sqlalchemy import select

from ..models import GroupMembership, UserAccount

ACTIVE = "ACTIVE"


class SqlMembershipOracle:
    """Answers group-membership questions from the group_membership table.

    Membership rows are owned by the group subsystem; nothing here writes them.
    """

    def is_active_member(self, db, user_id: str, group_id: str) -> bool:
        row = db.execute(
            select(GroupMembership.id).where(
                GroupMembership.user_id == user_id,
                GroupMembership.group_id == group_id,
                GroupMembership.status == ACTIVE,
            )
        ).first()
        return row is not None

    def list_active_members(self, db, group_id: str) -> list[dict[str, Any]]:
        rows = db.execute(
            select(UserAccount.id, UserAccount.interests)
            .join(GroupMembership, GroupMembership.user_id == UserAccount.id)
            .where(GroupMembership.group_id == group_id, GroupMembership.status == ACTIVE)
            .order_by(GroupMembership.joined_at.asc())
        ).mappings().all()
        return [{"user_id": str(r["id"]), "interests": r["interests"] if isinstance(r["interests"], list) else []} for r in rows]
