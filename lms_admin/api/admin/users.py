from fastapi import APIRouter, Depends

from lms_admin.api.deps import get_user_service
from lms_admin.core.security import RequestContext, get_current_admin
from lms_admin.schemas.user import (
    LifecycleResponse,
    ReasonRequest,
    UserCreate,
    UserDetailsOut,
    UserOut,
    UserUpdate,
)
from lms_admin.services.users_service import UserService

router = APIRouter(prefix="/admin/users", tags=["Admin Users"])


# ========================
# LIST USERS
# ========================
@router.get("", response_model=list[UserOut])
async def get_all(
    q: str | None = None,
    role: str | None = None,
    status: str | None = None,
    ctx: RequestContext = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.list_users(q=q, role=role, status=status)


# ========================
# CREATE USER
# ========================
@router.post("", response_model=LifecycleResponse, status_code=201)
async def create(
    data: UserCreate,
    ctx: RequestContext = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.create_user(ctx, data)


# ========================
# GET ONE USER
# ========================
@router.get("/{user_id}", response_model=UserDetailsOut)
async def one(
    user_id: str,
    ctx: RequestContext = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.get_user_details(user_id)


# ========================
# UPDATE USER
# ========================
@router.patch("/{user_id}", response_model=LifecycleResponse)
async def patch(
    user_id: str,
    body: UserUpdate,
    ctx: RequestContext = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.update_user(ctx, user_id, body)


# ========================
# BAN / UNBAN
# ========================
@router.post("/{user_id}/ban", response_model=LifecycleResponse)
async def ban(
    user_id: str,
    body: ReasonRequest,
    ctx: RequestContext = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.ban_user(ctx, user_id, body.reason)


@router.post("/{user_id}/unban", response_model=LifecycleResponse)
async def unban(
    user_id: str,
    ctx: RequestContext = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.unban_user(ctx, user_id)


# ========================
# DELETE / RESTORE
# ========================
@router.post("/{user_id}/delete", response_model=LifecycleResponse)
async def soft_delete(
    user_id: str,
    body: ReasonRequest,
    ctx: RequestContext = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.delete_user(ctx, user_id, body.reason)


@router.post("/{user_id}/restore", response_model=LifecycleResponse)
async def restore(
    user_id: str,
    ctx: RequestContext = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.restore_user(ctx, user_id)


@router.delete("/{user_id}/permanent", response_model=LifecycleResponse)
async def permanent_delete(
    user_id: str,
    ctx: RequestContext = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.permanent_delete_user(ctx, user_id)
