from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict

from lms_admin.core.config import Settings, get_settings
from lms_admin.db.mongo import (
    ADMIN_AUDIT_LOG,
    AUDIT_TRAIL,
    COMPREHENSIVE_AUDIT,
    INVALIDATED_SESSIONS,
    LOGIN_LOGS,
    USER_ACTIVITY_LOG,
    get_db,
)
from lms_admin.models.common import utcnow
from lms_admin.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)

# collection -> timestamp field
AUDIT_COLLECTIONS = {
    COMPREHENSIVE_AUDIT: "timestamp",
    ADMIN_AUDIT_LOG: "created_at",
    AUDIT_TRAIL: "created_at",
    LOGIN_LOGS: "login_time",
    USER_ACTIVITY_LOG: "created_at",
}


async def purge_expired(db, settings: Settings | None = None, now: datetime | None = None) -> Dict[str, int]:
    settings = settings or get_settings()
    now = now or utcnow()
    repo = AuditRepository(db)

    audit_cutoff = now - timedelta(days=settings.audit_retention_days)
    targets = [(name, field, audit_cutoff) for name, field in AUDIT_COLLECTIONS.items()]
    targets.append(
        (INVALIDATED_SESSIONS, "created_at", now - timedelta(days=settings.session_invalidation_retention_days))
    )

    deleted: Dict[str, int] = {}
    for name, field, cutoff in targets:
        try:
            if not await repo.collection_exists(name):
                continue
            deleted[name] = await repo.delete_older_than(name, field, cutoff)
        except Exception as e:
            logger.error("Retention cleanup of %s failed: %s", name, e)

    logger.info("Retention cleanup removed %s", deleted)
    return deleted


async def retention_loop(interval_seconds: int, stop_event: asyncio.Event) -> None:
    while not stop_event.is_set():
        await purge_expired(get_db())
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue
