from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from lms_admin.core.enums import AuditAction, AuditOutcome
from lms_admin.core.security import RequestContext
from lms_admin.models.audit_log import AuditEntry
from lms_admin.models.common import utcnow
from lms_admin.repositories.audit_repository import AuditRepository
from lms_admin.schemas.audit import AuditFilters
from lms_admin.services.audit_writer import AuditWriter
from lms_admin.services.geolocation import GeolocationClient, Location
from lms_admin.utils.csv_export import rows_to_csv
from lms_admin.utils.user_agent import parse_user_agent

logger = logging.getLogger(__name__)


def _json_context(context: Any) -> Optional[str]:
    if context is None:
        return None
    return json.dumps(context, default=str, ensure_ascii=False)


class AuditLogger:
    """
    Enriches audit events with request, device and location data and hands
    them to the AuditWriter. Never raises: a failed write returns False.
    """

    def __init__(self, writer: AuditWriter, geo: GeolocationClient | None = None):
        self.writer = writer
        self.geo = geo

    async def build_entry(
        self,
        ctx: RequestContext,
        *,
        action_type: str,
        action_description: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        resource_name: Optional[str] = None,
        outcome: str = AuditOutcome.success.value,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        context: Any = None,
        user_id: Optional[str] = None,
        username: Optional[str] = None,
        user_role: Optional[str] = None,
        location: Optional[Location] = None,
    ) -> AuditEntry:
        device = parse_user_agent(ctx.user_agent)

        if location is None and self.geo is not None:
            location = await self.geo.lookup(ctx.ip_address)
        city = location.city if location is not None else None
        country = location.country if location is not None else None

        return AuditEntry(
            user_id=user_id or ctx.user_id,
            username=username or ctx.username or "Unknown User",
            user_role=user_role or ctx.role or "unknown",
            action_type=action_type,
            action_description=action_description,
            resource_type=resource_type,
            resource_id=resource_id,
            resource_name=resource_name,
            outcome=outcome,
            old_value_text=old_value,
            new_value_text=new_value,
            ip_address=ctx.ip_address,
            device_info=ctx.user_agent or "Unknown User Agent",
            browser_name=device.browser,
            operating_system=device.os,
            device_type=device.device_type,
            location_city=city,
            location_country=country,
            session_id=ctx.session_id,
            request_method=ctx.method or "GET",
            request_url=ctx.url,
            additional_context=_json_context(context),
        )

    async def log_entry(self, ctx: RequestContext, **params) -> bool:
        try:
            entry = await self.build_entry(ctx, **params)
            written = await self.writer.write(entry)
            return bool(written)
        except Exception as e:
            logger.error("Audit logging error: %s", e)
            return False

    # -------------------------
    # Shortcuts
    # -------------------------
    async def log_login(self, ctx: RequestContext, user_id: Optional[str], username: str,
                        success: bool = True, user_role: Optional[str] = None,
                        context: Any = None, location: Optional[Location] = None) -> bool:
        return await self.log_entry(
            ctx,
            user_id=user_id,
            username=username,
            user_role=user_role,
            location=location,
            action_type=AuditAction.login.value,
            action_description="User logged in successfully" if success else "Failed login attempt",
            resource_type="User Account",
            resource_id=f"User ID: {user_id}",
            resource_name=username,
            outcome=AuditOutcome.success.value if success else AuditOutcome.failed.value,
            context=context,
        )

    async def log_logout(self, ctx: RequestContext, user_id: str, username: str) -> bool:
        return await self.log_entry(
            ctx,
            user_id=user_id,
            username=username,
            action_type=AuditAction.logout.value,
            action_description="User logged out",
            resource_type="User Account",
            resource_id=f"User ID: {user_id}",
        )

    async def log_user_update(self, ctx: RequestContext, target_user_id: str,
                              target_username: str, changes: Dict[str, Any]) -> bool:
        return await self.log_entry(
            ctx,
            action_type=AuditAction.update.value,
            action_description=f"Updated user account: {target_username}",
            resource_type="User Account",
            resource_id=f"User ID: {target_user_id}",
            resource_name=target_username,
            old_value=_json_context(changes.get("old")),
            new_value=_json_context(changes.get("new")),
            context=changes,
        )

    async def log_course_access(self, ctx: RequestContext, course_id: str, course_name: str) -> bool:
        return await self.log_entry(
            ctx,
            action_type=AuditAction.access.value,
            action_description=f"Accessed course: {course_name}",
            resource_type="Course",
            resource_id=f"Course ID: {course_id}",
            resource_name=course_name,
        )

    async def log_system_config(self, ctx: RequestContext, setting: str,
                                old_value: Any, new_value: Any) -> bool:
        return await self.log_entry(
            ctx,
            action_type=AuditAction.update.value,
            action_description=f"Updated system configuration: {setting}",
            resource_type="System Config",
            resource_id=f"Setting: {setting}",
            old_value=None if old_value is None else str(old_value),
            new_value=None if new_value is None else str(new_value),
        )


class AuditService:
    """Read side of the audit trail."""

    def __init__(self, repo: AuditRepository):
        self.repo = repo

    async def _has_trail(self) -> bool:
        try:
            return await self.repo.collection_exists("comprehensive_audit_trail")
        except Exception as e:
            logger.error("Audit collection probe failed: %s", e)
            return False

    async def list_entries(self, filters: AuditFilters | None, page: int = 1, limit: int = 50) -> Dict[str, Any]:
        page = max(page, 1)
        offset = (page - 1) * limit

        if await self._has_trail():
            rows = await self.repo.list(filters, offset, limit)
            if rows or offset:
                return {"page": page, "limit": limit, "total": await self.repo.count(filters), "entries": rows}

        # trail missing or empty: legacy collections
        rows = await self.repo.list_fallback(filters, offset, limit)
        total = await self.repo.count_fallback(filters)
        return {"page": page, "limit": limit, "total": total, "entries": rows}

    async def get_entry(self, entry_id: str) -> Optional[dict]:
        return await self.repo.get(entry_id)

    async def statistics(self) -> Dict[str, Any]:
        now = utcnow()
        if await self._has_trail():
            stats = await self.repo.statistics(now)
        else:
            stats = await self.repo.fallback_statistics(now)
        stats["last_updated"] = now
        return stats

    async def export_csv(self, filters: AuditFilters | None, limit: int = 10000) -> str:
        data = await self.list_entries(filters, page=1, limit=limit)
        return rows_to_csv(data["entries"])
