from fastapi import APIRouter, Depends

from lms_admin.api.deps import get_activity_logger
from lms_admin.core.errors import ValidationFailed
from lms_admin.core.security import RequestContext, get_current_member
from lms_admin.schemas.user import ActivityRequest
from lms_admin.services.activity_logger import ActivityLogger

router = APIRouter(prefix="/activity", tags=["Activity"])


@router.post("")
async def record_activity(
    body: ActivityRequest,
    ctx: RequestContext = Depends(get_current_member),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Caller-reported activity: page views and course/lesson/quiz progress."""
    kind = body.activity_type
    action = body.action or "viewed"
    if kind in ("course", "lesson", "quiz") and not body.resource_id:
        raise ValidationFailed("resource_id is required")

    if kind == "page_view":
        ok = await activity.log_page_view(ctx, ctx.user_id, body.resource_id or ctx.referrer or "unknown", body.data)
    elif kind == "course":
        ok = await activity.log_course_activity(ctx, ctx.user_id, body.resource_id, action, body.data)
    elif kind == "lesson":
        ok = await activity.log_lesson_activity(ctx, ctx.user_id, body.resource_id, action, body.data)
    elif kind == "quiz":
        ok = await activity.log_quiz_activity(ctx, ctx.user_id, body.resource_id, action, body.score, body.data)
    else:
        raise ValidationFailed("Unknown activity type")

    return {"success": ok}
