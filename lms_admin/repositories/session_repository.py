from typing import Iterable, Optional

from lms_admin.models.common import utcnow


class InvalidatedSessionRepository:
    """Marks every session of a user as dead until cleared."""

    def __init__(self, collection):
        self.collection = collection

    async def invalidate(self, user_id: str, reason: str, invalidated_by: Optional[str], session=None):
        await self.collection.insert_one(
            {
                "user_id": user_id,
                "reason": reason,
                "invalidated_by": invalidated_by,
                "created_at": utcnow(),
            },
            session=session,
        )

    async def clear(self, user_id: str, reasons: Iterable[str] = ("banned", "deleted"), session=None) -> int:
        res = await self.collection.delete_many(
            {"user_id": user_id, "reason": {"$in": list(reasons)}},
            session=session,
        )
        return res.deleted_count


class AdminActionRepository:
    def __init__(self, collection):
        self.collection = collection

    async def create(self, admin_id: Optional[str], user_id: str, action: str, details: dict, session=None):
        await self.collection.insert_one(
            {
                "admin_id": admin_id,
                "user_id": user_id,
                "action": action,
                "details": details,
                "created_at": utcnow(),
            },
            session=session,
        )
