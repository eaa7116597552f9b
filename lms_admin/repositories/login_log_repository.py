from datetime import datetime, timedelta
from typing import List, Optional

from pymongo import DESCENDING

from lms_admin.utils.mongo import doc_with_id


class LoginLogRepository:
    def __init__(self, collection):
        self.collection = collection

    async def create(self, data: dict) -> str:
        res = await self.collection.insert_one(data)
        return str(res.inserted_id)

    async def list(self, offset: int = 0, limit: int = 50, status: Optional[str] = None) -> List[dict]:
        filt = {"status": status} if status else {}
        cur = self.collection.find(filt).sort("login_time", DESCENDING).skip(offset).limit(limit)
        return [doc_with_id(d) async for d in cur]

    async def daily_statistics(self, days: int, now: datetime) -> List[dict]:
        pipeline = [
            {"$match": {"login_time": {"$gte": now - timedelta(days=days)}}},
            {"$group": {
                "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$login_time"}},
                "total_logins": {"$sum": 1},
                "successful_logins": {"$sum": {"$cond": [{"$eq": ["$status", "success"]}, 1, 0]}},
                "failed_logins": {"$sum": {"$cond": [{"$eq": ["$status", "failed"]}, 1, 0]}},
                "users": {"$addToSet": "$user_id"},
            }},
            {"$sort": {"_id": -1}},
        ]
        rows = await self.collection.aggregate(pipeline).to_list(length=None)
        return [
            {
                "date": r["_id"],
                "total_logins": r["total_logins"],
                "successful_logins": r["successful_logins"],
                "failed_logins": r["failed_logins"],
                "unique_users": len([u for u in r["users"] if u is not None]),
            }
            for r in rows
        ]
