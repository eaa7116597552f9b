from __future__ import annotations

from typing import Any, Dict

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class LMSAdminError(Exception):
    """
    Base for errors that end a request with {"success": false, ...}.
    `extra` is merged into the JSON body.
    """

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: int | None = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra: Dict[str, Any] = extra


class ValidationFailed(LMSAdminError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationFailed(LMSAdminError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(LMSAdminError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(LMSAdminError):
    status_code = status.HTTP_404_NOT_FOUND


class UserNotFound(NotFound):
    pass


class Conflict(LMSAdminError):
    status_code = status.HTTP_409_CONFLICT


class DatabaseFailure(LMSAdminError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def lms_admin_error_handler(request: Request, exc: LMSAdminError) -> JSONResponse:
    body = {"success": False, "message": exc.message}
    body.update(exc.extra)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )
