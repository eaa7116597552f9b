from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from lms_admin.core.enums import AuditAction
from lms_admin.core.security import RequestContext
from lms_admin.models.audit_log import ActivityLogEntry
from lms_admin.models.common import utcnow
from lms_admin.repositories.activity_repository import ActivityLogRepository
from lms_admin.repositories.user_repository import UserRepository
from lms_admin.services.audit_service import AuditLogger
from lms_admin.utils.user_agent import parse_user_agent

logger = logging.getLogger(__name__)


class ActivityLogger:
    """Per-user activity feed (page views, course/lesson/quiz progress)."""

    def __init__(self, repo: ActivityLogRepository, users: UserRepository, audit: AuditLogger):
        self.repo = repo
        self.users = users
        self.audit = audit

    async def log_activity(
        self,
        ctx: RequestContext,
        user_id: str,
        activity_type: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        try:
            user = await self.users.get(user_id)
            if not user:
                logger.warning("Activity for unknown user %s ignored", user_id)
                return False

            device = parse_user_agent(ctx.user_agent)
            entry = ActivityLogEntry(
                user_id=user_id,
                username=user.get("username"),
                activity_type=activity_type,
                resource_type=resource_type,
                resource_id=resource_id,
                ip_address=ctx.ip_address,
                user_agent=ctx.user_agent,
                device_type=device.device_type,
                browser_name=device.browser,
                operating_system=device.os,
                session_id=ctx.session_id,
                additional_data=data or {},
            )
            await self.repo.create(entry.model_dump())
        except Exception as e:
            logger.error("Activity logging error: %s", e)
            return False

        await self.audit.log_entry(
            ctx,
            user_id=user_id,
            username=user.get("username"),
            user_role=user.get("role"),
            action_type=AuditAction.read.value,
            action_description=activity_type.replace("_", " ").capitalize(),
            resource_type=resource_type or "Page",
            resource_id=resource_id,
            context=data,
        )
        return True

    async def log_page_view(self, ctx: RequestContext, user_id: str, page: str,
                            data: Optional[Dict[str, Any]] = None) -> bool:
        return await self.log_activity(ctx, user_id, "page_view", "Page", page, data)

    async def log_course_activity(self, ctx: RequestContext, user_id: str, course_id: str,
                                  activity: str, data: Optional[Dict[str, Any]] = None) -> bool:
        return await self.log_activity(
            ctx, user_id, f"course_{activity}", "Course", f"Course ID: {course_id}", data
        )

    async def log_lesson_activity(self, ctx: RequestContext, user_id: str, lesson_id: str,
                                  activity: str, data: Optional[Dict[str, Any]] = None) -> bool:
        return await self.log_activity(ctx, user_id, f"lesson_{activity}", "Lesson", lesson_id, data)

    async def log_quiz_activity(self, ctx: RequestContext, user_id: str, quiz_id: str,
                                activity: str, score: Optional[float] = None,
                                data: Optional[Dict[str, Any]] = None) -> bool:
        payload = dict(data or {})
        if score is not None:
            payload["score"] = score
        return await self.log_activity(ctx, user_id, f"quiz_{activity}", "Quiz", quiz_id, payload)

    async def activity_statistics(self, days: int = 7) -> List[dict]:
        try:
            return await self.repo.daily_statistics(days, utcnow())
        except Exception as e:
            logger.error("Activity statistics error: %s", e)
            return []
