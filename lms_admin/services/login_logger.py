from __future__ import annotations

import logging
from typing import List, Optional

from lms_admin.core.enums import LoginStatus
from lms_admin.core.security import RequestContext
from lms_admin.models.audit_log import LoginLogEntry
from lms_admin.models.common import oid_str, utcnow
from lms_admin.repositories.login_log_repository import LoginLogRepository
from lms_admin.services.audit_service import AuditLogger
from lms_admin.services.geolocation import GeolocationClient, Location
from lms_admin.utils.user_agent import parse_user_agent

logger = logging.getLogger(__name__)


class LoginLogger:
    def __init__(
        self,
        repo: LoginLogRepository,
        audit: AuditLogger,
        geo: GeolocationClient | None = None,
    ):
        self.repo = repo
        self.audit = audit
        self.geo = geo

    async def _locate(self, ip: str) -> Optional[Location]:
        if self.geo is None:
            return None
        return await self.geo.lookup(ip)

    def _entry(self, ctx: RequestContext, status: LoginStatus, location: Optional[Location], **fields) -> LoginLogEntry:
        device = parse_user_agent(ctx.user_agent)
        return LoginLogEntry(
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            status=status,
            location=location.label() if location is not None else "Unknown Location",
            device_type=device.device_type,
            browser_name=device.browser,
            operating_system=device.os,
            session_id=ctx.session_id,
            **fields,
        )

    async def log_successful_login(self, ctx: RequestContext, user: dict) -> bool:
        user_id = oid_str(user.get("_id")) or user.get("id")
        username = user.get("username") or "Unknown User"
        location = await self._locate(ctx.ip_address)
        try:
            entry = self._entry(ctx, LoginStatus.success, location, user_id=user_id)
            await self.repo.create(entry.model_dump())
        except Exception as e:
            logger.error("Login logging error: %s", e)
            return False

        await self.audit.log_login(
            ctx,
            user_id=user_id,
            username=username,
            user_role=user.get("role"),
            success=True,
            context={"browser": entry.browser_name, "location": entry.location},
            location=location,
        )
        return True

    async def log_failed_login(self, ctx: RequestContext, credential: str, reason: str = "Invalid credentials",
                               user_id: Optional[str] = None) -> bool:
        location = await self._locate(ctx.ip_address)
        try:
            entry = self._entry(
                ctx,
                LoginStatus.failed,
                location,
                user_id=user_id,
                attempted_credential=credential,
                reason=reason,
            )
            await self.repo.create(entry.model_dump())
        except Exception as e:
            logger.error("Failed login logging error: %s", e)
            return False

        await self.audit.log_login(
            ctx,
            user_id=user_id,
            username=credential or "Unknown User",
            success=False,
            context={"reason": reason, "attempted_credential": credential},
            location=location,
        )
        return True

    async def login_statistics(self, days: int = 30) -> List[dict]:
        try:
            return await self.repo.daily_statistics(days, utcnow())
        except Exception as e:
            logger.error("Login statistics error: %s", e)
            return []

    async def recent_logins(self, page: int = 1, limit: int = 50, status: Optional[str] = None) -> List[dict]:
        offset = (max(page, 1) - 1) * limit
        return await self.repo.list(offset, limit, status)
