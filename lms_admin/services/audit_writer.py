from __future__ import annotations

import logging
import re
from typing import List

from lms_admin.db.mongo import ADMIN_AUDIT_LOG, AUDIT_TRAIL, COMPREHENSIVE_AUDIT
from lms_admin.models.audit_log import AuditEntry
from lms_admin.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)

COURSE_RESOURCE_TYPES = {"Course", "Lesson", "Chapter"}

_COURSE_ID = re.compile(r"Course ID: (\d+|[0-9a-fA-F]{24})")


def course_id_from(resource_id: str | None) -> str | None:
    m = _COURSE_ID.search(resource_id or "")
    return m.group(1) if m else None


def admin_audit_row(entry: AuditEntry) -> dict:
    return {
        "admin_id": entry.user_id,
        "action": entry.action_description,
        "details": entry.additional_context,
        "ip_address": entry.ip_address,
        "user_agent": entry.device_info,
        "created_at": entry.timestamp,
    }


def course_audit_row(entry: AuditEntry) -> dict:
    return {
        "user_id": entry.user_id,
        "course_id": course_id_from(entry.resource_id),
        "action": entry.action_description,
        "details": entry.additional_context,
        "created_at": entry.timestamp,
    }


class AuditWriter:
    """
    Puts an AuditEntry into the comprehensive trail when that collection
    exists, otherwise into the legacy collections that match the entry.
    Event log semantics: writing the same entry twice stores it twice.
    """

    def __init__(self, repo: AuditRepository):
        self.repo = repo

    def candidates(self, entry: AuditEntry) -> List[tuple[str, dict]]:
        out = [(COMPREHENSIVE_AUDIT, entry.model_dump())]
        if entry.user_role == "admin":
            out.append((ADMIN_AUDIT_LOG, admin_audit_row(entry)))
        if entry.resource_type in COURSE_RESOURCE_TYPES:
            out.append((AUDIT_TRAIL, course_audit_row(entry)))
        return out

    async def _try_insert(self, name: str, row: dict) -> bool:
        try:
            if not await self.repo.collection_exists(name):
                return False
            await self.repo.insert(name, row)
            return True
        except Exception as e:
            logger.error("Audit insert into %s failed: %s", name, e)
            return False

    async def write(self, entry: AuditEntry) -> List[str]:
        """Returns the collections the entry landed in (possibly none)."""
        primary, *fallbacks = self.candidates(entry)

        if await self._try_insert(*primary):
            return [primary[0]]

        written = []
        for name, row in fallbacks:
            if await self._try_insert(name, row):
                written.append(name)

        if not written:
            logger.warning(
                "Audit entry dropped, no destination available: %s %s",
                entry.action_type,
                entry.action_description,
            )
        return written
