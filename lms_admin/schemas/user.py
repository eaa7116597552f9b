from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime


# -------------------------
# Requests (INPUT)
# -------------------------

class UserCreate(BaseModel):
    # checked by the service so failures come back as {"success": false, ...}
    username: str = ""
    email: str = ""
    password: str = ""
    role: str = ""
    phone_number: Optional[str] = Field(default=None, alias="phone")

    first_name: str = ""
    last_name: str = ""
    middle_name: Optional[str] = None
    suffix: Optional[str] = None
    age: Optional[int] = None

    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None

    model_config = {"populate_by_name": True}


class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    middle_name: Optional[str] = None
    suffix: Optional[str] = None
    age: Optional[int] = None
    role: Optional[str] = None
    phone_number: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    password: Optional[str] = None


class ReasonRequest(BaseModel):
    reason: str = ""


class LoginRequest(BaseModel):
    credential: str = Field(..., alias="email")   # email or username
    password: str

    model_config = {"populate_by_name": True}


class ActivityRequest(BaseModel):
    activity_type: str          # page_view, course, lesson, quiz
    resource_id: Optional[str] = None
    action: Optional[str] = None   # started, completed, ...
    score: Optional[float] = None
    data: Dict[str, Any] = Field(default_factory=dict)


# -------------------------
# Responses (OUTPUT)
# -------------------------

class UserSummary(BaseModel):
    id: str
    username: str
    email: Optional[str] = None
    role: str


class UserOut(BaseModel):
    id: str
    username: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    role: str
    status: str = "active"

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    middle_name: Optional[str] = None
    suffix: Optional[str] = None
    age: Optional[int] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None

    email_verified: bool = False
    phone_verified: bool = False
    is_first_login: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserDetailsOut(UserOut):
    ban_reason: Optional[str] = None
    banned_at: Optional[datetime] = None
    banned_by: Optional[str] = None
    unbanned_at: Optional[datetime] = None
    unbanned_by: Optional[str] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    deletion_reason: Optional[str] = None
    restoration_deadline: Optional[datetime] = None


class LifecycleResponse(BaseModel):
    success: bool = True
    message: str
    user: UserSummary
    email_sent: bool = False
    timestamp: datetime

    ban_reason: Optional[str] = None
    deletion_reason: Optional[str] = None
    restoration_deadline: Optional[datetime] = None
    changes: Optional[Dict[str, Any]] = None


class LoginResponse(BaseModel):
    success: bool = True
    user: UserSummary
    session_id: str
