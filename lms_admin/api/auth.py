from fastapi import APIRouter, Depends, Response

from lms_admin.api.deps import get_audit_logger, get_login_logger, get_user_service
from lms_admin.core.security import RequestContext, get_current_member, get_request_context
from lms_admin.schemas.user import LoginRequest, LoginResponse
from lms_admin.services.audit_service import AuditLogger
from lms_admin.services.login_logger import LoginLogger
from lms_admin.services.users_service import UserService

router = APIRouter(prefix="/auth", tags=["Auth"])


# =========================
# Login
# =========================
@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    ctx: RequestContext = Depends(get_request_context),
    service: UserService = Depends(get_user_service),
    logins: LoginLogger = Depends(get_login_logger),
):
    result = await service.login(ctx, body.credential, body.password, logins)
    response.set_cookie("session_id", result["session_id"], httponly=True, samesite="lax")
    return result


# =========================
# Logout
# =========================
@router.post("/logout")
async def logout(
    response: Response,
    ctx: RequestContext = Depends(get_current_member),
    audit: AuditLogger = Depends(get_audit_logger),
):
    await audit.log_logout(ctx, ctx.user_id, ctx.username or "Unknown User")
    response.delete_cookie("session_id")
    return {"success": True, "message": "Logged out"}
