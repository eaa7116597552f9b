import re
from typing import List, Optional

from pymongo import DESCENDING

from lms_admin.models.common import to_object_id


class UserRepository:
    def __init__(self, col):
        self.col = col

    async def get(self, user_id: str, session=None) -> Optional[dict]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return await self.col.find_one({"_id": oid}, session=session)

    async def get_by_login(self, credential: str) -> Optional[dict]:
        """Look a user up by email (when it contains @) or username."""
        value = (credential or "").strip()
        if not value:
            return None
        if "@" in value:
            return await self.col.find_one({"email": value.lower()})
        return await self.col.find_one({"username": value})

    async def find_conflict(self, username: str, email: str, phone: Optional[str]) -> Optional[dict]:
        clauses = [{"username": username}, {"email": email}]
        if phone:
            clauses.append({"phone_number": phone})
        return await self.col.find_one({"$or": clauses})

    async def phone_taken(self, phone: str, exclude_id=None) -> bool:
        filt: dict = {"phone_number": phone}
        if exclude_id is not None:
            filt["_id"] = {"$ne": exclude_id}
        return await self.col.find_one(filt) is not None

    async def insert(self, data: dict, session=None) -> str:
        res = await self.col.insert_one(data, session=session)
        return str(res.inserted_id)

    async def update(self, user_id: str, set_fields: dict, unset_fields: Optional[List[str]] = None, session=None) -> bool:
        update: dict = {"$set": set_fields}
        if unset_fields:
            update["$unset"] = {f: "" for f in unset_fields}
        res = await self.col.update_one({"_id": to_object_id(user_id)}, update, session=session)
        return res.matched_count == 1

    async def delete(self, user_id: str, session=None) -> bool:
        res = await self.col.delete_one({"_id": to_object_id(user_id)}, session=session)
        return res.deleted_count == 1

    async def list(
        self,
        q: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 200,
    ) -> List[dict]:
        filt: dict = {}

        if role:
            filt["role"] = role

        if status:
            filt["status"] = status
        else:
            filt["status"] = {"$ne": "deleted"}

        if q:
            rx = {"$regex": re.escape(q), "$options": "i"}
            filt["$or"] = [
                {"username": rx},
                {"email": rx},
                {"first_name": rx},
                {"last_name": rx},
            ]

        return await self.col.find(filt).sort("created_at", DESCENDING).to_list(length=limit)
