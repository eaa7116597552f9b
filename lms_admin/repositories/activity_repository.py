from datetime import datetime, timedelta
from typing import List


class ActivityLogRepository:
    def __init__(self, collection):
        self.collection = collection

    async def create(self, data: dict) -> str:
        res = await self.collection.insert_one(data)
        return str(res.inserted_id)

    async def daily_statistics(self, days: int, now: datetime) -> List[dict]:
        pipeline = [
            {"$match": {"created_at": {"$gte": now - timedelta(days=days)}}},
            {"$group": {
                "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$created_at"}},
                "total_activities": {"$sum": 1},
                "users": {"$addToSet": "$user_id"},
            }},
            {"$sort": {"_id": -1}},
        ]
        rows = await self.collection.aggregate(pipeline).to_list(length=None)
        return [
            {
                "date": r["_id"],
                "total_activities": r["total_activities"],
                "unique_users": len(r["users"]),
            }
            for r in rows
        ]
