from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from lms_admin.core.enums import AuditOutcome, DeviceType, LoginStatus
from lms_admin.models.common import LMSBaseModel, utcnow


class AuditEntry(LMSBaseModel):
    timestamp: datetime = Field(default_factory=utcnow)

    user_id: Optional[str] = None
    username: str = "Unknown User"
    user_role: str = "unknown"     # admin, teacher, student

    action_type: str               # CREATE, UPDATE, LOGIN ...
    action_description: str

    resource_type: str             # User Account, Course, System Config
    resource_id: Optional[str] = None
    resource_name: Optional[str] = None

    outcome: AuditOutcome = AuditOutcome.success.value
    old_value_text: Optional[str] = None
    new_value_text: Optional[str] = None

    ip_address: str = "unknown"
    device_info: Optional[str] = None
    browser_name: Optional[str] = None
    operating_system: Optional[str] = None
    device_type: Optional[str] = None
    location_city: Optional[str] = None
    location_country: Optional[str] = None

    session_id: Optional[str] = None
    request_method: str = "GET"
    request_url: Optional[str] = None

    additional_context: Optional[str] = None   # JSON text


class LoginLogEntry(LMSBaseModel):
    user_id: Optional[str] = None
    login_time: datetime = Field(default_factory=utcnow)
    ip_address: str = "unknown"
    user_agent: str = ""
    status: LoginStatus
    location: str = "Unknown Location"
    device_type: str = DeviceType.desktop.value
    browser_name: Optional[str] = None
    operating_system: Optional[str] = None
    session_id: Optional[str] = None

    attempted_credential: Optional[str] = None
    reason: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)


class ActivityLogEntry(LMSBaseModel):
    user_id: str
    username: Optional[str] = None
    activity_type: str             # page_view, course_started, quiz_submitted
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None

    ip_address: str = "unknown"
    user_agent: str = ""
    device_type: str = DeviceType.desktop.value
    browser_name: Optional[str] = None
    operating_system: Optional[str] = None
    session_id: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    additional_data: Dict[str, Any] = Field(default_factory=dict)
