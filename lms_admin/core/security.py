# lms_admin/core/security.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from fastapi import HTTPException, Request, status
from passlib.context import CryptContext

from lms_admin.core.enums import UserRole
from lms_admin.utils.ip_address import resolve_client_ip

pwd = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    # bcrypt hard limit: 72 BYTES
    if isinstance(password, str):
        password = password.encode("utf-8")
    password = password[:72]
    return pwd.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    if isinstance(password, str):
        password = password.encode("utf-8")
    password = password[:72]
    return pwd.verify(password, hashed)


@dataclass
class RequestContext:
    """
    Who is calling and from where. Built once per request and passed
    explicitly to services and loggers.
    """

    user_id: Optional[str] = None
    username: Optional[str] = None
    role: Optional[str] = None
    session_id: Optional[str] = None
    ip_address: str = "unknown"
    user_agent: str = ""
    method: str = "GET"
    url: Optional[str] = None
    referrer: Optional[str] = None
    extra: dict = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id and self.role)


def build_request_context(request: Request) -> RequestContext:
    """
    Identity comes from X-User-Id / X-Username / X-Role headers set by the
    session layer in front of this service.
    """
    headers = request.headers
    remote = request.client.host if request.client else None

    return RequestContext(
        user_id=headers.get("X-User-Id"),
        username=headers.get("X-Username"),
        role=headers.get("X-Role"),
        session_id=request.cookies.get("session_id") or headers.get("X-Session-Id"),
        ip_address=resolve_client_ip(headers, remote),
        user_agent=headers.get("User-Agent", ""),
        method=request.method,
        url=str(request.url.path) + (f"?{request.url.query}" if request.url.query else ""),
        referrer=headers.get("Referer"),
    )


def get_request_context(request: Request) -> RequestContext:
    return build_request_context(request)


def require_roles(*roles: UserRole | str):
    allowed: Iterable[str] = {r.value if isinstance(r, UserRole) else r for r in roles}

    def dependency(request: Request) -> RequestContext:
        ctx = build_request_context(request)
        if not ctx.is_authenticated:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized access",
            )
        if allowed and ctx.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
        return ctx

    return dependency


get_current_admin = require_roles(UserRole.admin)
get_current_member = require_roles(
    UserRole.admin, UserRole.teacher, UserRole.student, UserRole.hybrid
)
