from __future__ import annotations

import json
import re
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from lms_admin.db.mongo import (
    ADMIN_AUDIT_LOG,
    AUDIT_TRAIL,
    COMPREHENSIVE_AUDIT,
    LOGIN_LOGS,
)
from lms_admin.models.common import to_object_id
from lms_admin.schemas.audit import AuditFilters


def _day_start(d) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def build_audit_filter(filters: AuditFilters | None) -> Dict[str, Any]:
    """Mongo filter for the comprehensive trail."""
    if filters is None:
        return {}

    clauses: List[Dict[str, Any]] = []

    if filters.date_from or filters.date_to:
        ts: Dict[str, Any] = {}
        if filters.date_from:
            ts["$gte"] = _day_start(filters.date_from)
        if filters.date_to:
            # inclusive of the whole end day
            ts["$lt"] = _day_start(filters.date_to) + timedelta(days=1)
        clauses.append({"timestamp": ts})

    if filters.user:
        pattern = re.escape(filters.user)
        clauses.append({"$or": [
            {"username": {"$regex": pattern, "$options": "i"}},
            {"user_id": {"$regex": pattern, "$options": "i"}},
        ]})

    if filters.action_type:
        clauses.append({"action_type": filters.action_type})

    if filters.outcome:
        clauses.append({"outcome": filters.outcome})

    if filters.search:
        pattern = re.escape(filters.search)
        clauses.append({"$or": [
            {field: {"$regex": pattern, "$options": "i"}}
            for field in ("action_description", "resource_name", "username", "resource_type")
        ]})

    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _contains(value, needle: str) -> bool:
    return value is not None and needle.lower() in str(value).lower()


def row_matches(row: dict, filters: AuditFilters | None) -> bool:
    """Same semantics as build_audit_filter, applied to a normalized row."""
    if filters is None:
        return True

    if filters.date_from or filters.date_to:
        ts = _aware(row.get("timestamp"))
        if not isinstance(ts, datetime):
            return False
        if filters.date_from and ts < _day_start(filters.date_from):
            return False
        if filters.date_to and ts >= _day_start(filters.date_to) + timedelta(days=1):
            return False

    if filters.user and not (
        _contains(row.get("username"), filters.user) or _contains(row.get("user_id"), filters.user)
    ):
        return False

    if filters.action_type and row.get("action_type") != filters.action_type:
        return False

    if filters.outcome and row.get("outcome") != filters.outcome:
        return False

    if filters.search and not any(
        _contains(row.get(field), filters.search)
        for field in ("action_description", "resource_name", "username", "resource_type", "resource_id")
    ):
        return False

    return True


def _location_label(city: Optional[str], country: Optional[str]) -> Optional[str]:
    if city and country:
        return f"{city}, {country}"
    return country or None


def _context(raw):
    if not raw:
        return None
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    return raw


def normalize_comprehensive(doc: dict) -> dict:
    browser, os_name = doc.get("browser_name"), doc.get("operating_system")
    device = f"{browser} on {os_name}" if browser and os_name else doc.get("device_info")
    return {
        "id": str(doc["_id"]),
        "timestamp": doc.get("timestamp"),
        "source": COMPREHENSIVE_AUDIT,
        "user_id": doc.get("user_id"),
        "username": doc.get("username"),
        "user_role": doc.get("user_role"),
        "action_type": doc.get("action_type"),
        "action_description": doc.get("action_description"),
        "resource_type": doc.get("resource_type"),
        "resource_id": doc.get("resource_id") or f"{doc.get('resource_type')} ID: {doc['_id']}",
        "resource_name": doc.get("resource_name") or doc.get("resource_type"),
        "outcome": doc.get("outcome"),
        "old_value": doc.get("old_value_text"),
        "new_value": doc.get("new_value_text"),
        "ip_address": doc.get("ip_address"),
        "device_info": device or "Unknown Browser on Unknown OS",
        "browser_name": browser,
        "operating_system": os_name,
        "device_type": doc.get("device_type"),
        "location": _location_label(doc.get("location_city"), doc.get("location_country")),
        "location_city": doc.get("location_city"),
        "location_country": doc.get("location_country"),
        "session_id": doc.get("session_id"),
        "request_method": doc.get("request_method"),
        "request_url": doc.get("request_url"),
        "additional_context": _context(doc.get("additional_context")),
    }


def normalize_admin_audit(doc: dict) -> dict:
    return {
        "id": str(doc["_id"]),
        "timestamp": doc.get("created_at"),
        "source": ADMIN_AUDIT_LOG,
        "user_id": doc.get("admin_id"),
        "user_role": "admin",
        "action_type": "UPDATE",
        "action_description": doc.get("action"),
        "resource_type": "System",
        "outcome": "Success",
        "ip_address": doc.get("ip_address"),
        "device_info": doc.get("user_agent"),
        "additional_context": _context(doc.get("details")),
    }


def normalize_course_audit(doc: dict) -> dict:
    course_id = doc.get("course_id")
    return {
        "id": str(doc["_id"]),
        "timestamp": doc.get("created_at"),
        "source": AUDIT_TRAIL,
        "user_id": doc.get("user_id"),
        "action_type": "UPDATE",
        "action_description": doc.get("action"),
        "resource_type": "Course",
        "resource_id": f"Course ID: {course_id}" if course_id else None,
        "outcome": "Success",
        "additional_context": _context(doc.get("details")),
    }


def normalize_login_log(doc: dict) -> dict:
    ok = doc.get("status") == "success"
    return {
        "id": str(doc["_id"]),
        "timestamp": doc.get("login_time"),
        "source": LOGIN_LOGS,
        "user_id": doc.get("user_id"),
        "action_type": "LOGIN",
        "action_description": "User logged in successfully" if ok else "Failed login attempt",
        "resource_type": "User Account",
        "resource_id": f"User ID: {doc.get('user_id')}" if doc.get("user_id") else None,
        "outcome": "Success" if ok else "Failed",
        "ip_address": doc.get("ip_address"),
        "device_info": doc.get("user_agent"),
        "browser_name": doc.get("browser_name"),
        "operating_system": doc.get("operating_system"),
        "device_type": doc.get("device_type"),
        "location": doc.get("location"),
        "session_id": doc.get("session_id"),
    }


_FALLBACK_SOURCES = (
    (ADMIN_AUDIT_LOG, "created_at", normalize_admin_audit),
    (AUDIT_TRAIL, "created_at", normalize_course_audit),
    (LOGIN_LOGS, "login_time", normalize_login_log),
)


class AuditRepository:
    def __init__(self, db):
        self.db = db

    # -------------------------
    # Write side
    # -------------------------
    async def collection_exists(self, name: str) -> bool:
        names = await self.db.list_collection_names(filter={"name": name})
        return name in names

    async def insert(self, name: str, data: dict) -> str:
        res = await self.db[name].insert_one(data)
        return str(res.inserted_id)

    async def delete_older_than(self, name: str, field: str, cutoff: datetime) -> int:
        res = await self.db[name].delete_many({field: {"$lt": cutoff}})
        return res.deleted_count

    # -------------------------
    # Read side
    # -------------------------
    async def list(self, filters: AuditFilters | None, offset: int, limit: int) -> List[dict]:
        cur = (
            self.db[COMPREHENSIVE_AUDIT]
            .find(build_audit_filter(filters))
            .sort("timestamp", DESCENDING)
            .skip(offset)
            .limit(limit)
        )
        return [normalize_comprehensive(d) async for d in cur]

    async def count(self, filters: AuditFilters | None) -> int:
        return await self.db[COMPREHENSIVE_AUDIT].count_documents(build_audit_filter(filters))

    async def get(self, entry_id: str) -> Optional[dict]:
        oid = to_object_id(entry_id)
        if oid is None:
            return None
        doc = await self.db[COMPREHENSIVE_AUDIT].find_one({"_id": oid})
        return normalize_comprehensive(doc) if doc else None

    async def _fallback_rows(self, filters: AuditFilters | None) -> List[dict]:
        out: List[dict] = []
        for name, ts_field, normalize in _FALLBACK_SOURCES:
            if not await self.collection_exists(name):
                continue
            cur = self.db[name].find().sort(ts_field, DESCENDING)
            async for doc in cur:
                row = normalize(doc)
                if row_matches(row, filters):
                    out.append(row)

        epoch = datetime.min.replace(tzinfo=timezone.utc)
        out.sort(key=lambda r: _aware(r.get("timestamp")) or epoch, reverse=True)
        return out

    async def list_fallback(self, filters: AuditFilters | None, offset: int, limit: int) -> List[dict]:
        """Rows from the legacy collections that pass the filters, merged newest first."""
        rows = await self._fallback_rows(filters)
        return rows[offset:offset + limit]

    async def count_fallback(self, filters: AuditFilters | None) -> int:
        return len(await self._fallback_rows(filters))

    async def statistics(self, now: datetime) -> Dict[str, Any]:
        col = self.db[COMPREHENSIVE_AUDIT]
        today = _day_start(now.date())

        stats: Dict[str, Any] = {
            "total_actions": await col.count_documents({}),
            "actions_today": await col.count_documents({"timestamp": {"$gte": today}}),
            "failed_actions": await col.count_documents({"outcome": "Failed"}),
            "recent_failures": await col.count_documents({
                "outcome": "Failed",
                "timestamp": {"$gte": now - timedelta(hours=1)},
            }),
        }

        user_ids = await col.distinct("user_id")
        stats["unique_users"] = len([u for u in user_ids if u is not None])

        by_user = [
            {"$group": {"_id": {"user_id": "$user_id", "username": "$username"}, "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ]
        most_active = await col.aggregate(by_user + [{"$limit": 1}]).to_list(length=1)
        stats["most_active_user"] = (
            most_active[0]["_id"].get("username") or "N/A" if most_active else "N/A"
        )

        top_today = await col.aggregate(
            [{"$match": {"timestamp": {"$gte": today}}}] + by_user + [{"$limit": 5}]
        ).to_list(length=5)
        stats["top_users_today"] = [
            {"username": r["_id"].get("username"), "action_count": r["count"]}
            for r in top_today
        ]

        hourly = await col.aggregate([
            {"$match": {"timestamp": {"$gte": now - timedelta(hours=24)}}},
            {"$group": {"_id": {"$hour": "$timestamp"}, "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
        ]).to_list(length=24)
        stats["hourly_activity"] = [{"hour": r["_id"], "count": r["count"]} for r in hourly]

        return stats

    async def fallback_statistics(self, now: datetime) -> Dict[str, Any]:
        today = _day_start(now.date())
        stats: Dict[str, Any] = {"total_actions": 0, "actions_today": 0, "failed_actions": 0}

        for name, ts_field, _ in _FALLBACK_SOURCES:
            if not await self.collection_exists(name):
                continue
            col = self.db[name]
            stats["total_actions"] += await col.count_documents({})
            stats["actions_today"] += await col.count_documents({ts_field: {"$gte": today}})

        if await self.collection_exists(LOGIN_LOGS):
            stats["failed_actions"] = await self.db[LOGIN_LOGS].count_documents({"status": "failed"})

        return stats


def _aware(value):
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
