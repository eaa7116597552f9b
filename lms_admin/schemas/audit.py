from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import date, datetime


class AuditFilters(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    user: Optional[str] = None          # username or user id fragment
    action_type: Optional[str] = None
    outcome: Optional[str] = None
    search: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


class AuditEntryOut(BaseModel):
    id: str
    timestamp: datetime
    source: str = "comprehensive_audit_trail"

    user_id: Optional[str] = None
    username: Optional[str] = None
    user_role: Optional[str] = None

    action_type: Optional[str] = None
    action_description: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    resource_name: Optional[str] = None
    outcome: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None

    ip_address: Optional[str] = None
    device_info: Optional[str] = None
    browser_name: Optional[str] = None
    operating_system: Optional[str] = None
    device_type: Optional[str] = None
    location: Optional[str] = None
    location_city: Optional[str] = None
    location_country: Optional[str] = None

    session_id: Optional[str] = None
    request_method: Optional[str] = None
    request_url: Optional[str] = None
    additional_context: Optional[Any] = None


class AuditPage(BaseModel):
    success: bool = True
    page: int
    limit: int
    total: int
    entries: List[AuditEntryOut] = Field(default_factory=list)


class UserActionCount(BaseModel):
    username: Optional[str] = None
    action_count: int


class HourlyCount(BaseModel):
    hour: int
    count: int


class AuditStats(BaseModel):
    total_actions: int = 0
    actions_today: int = 0
    failed_actions: int = 0
    unique_users: int = 0
    most_active_user: str = "N/A"
    recent_failures: int = 0
    hourly_activity: List[HourlyCount] = Field(default_factory=list)
    top_users_today: List[UserActionCount] = Field(default_factory=list)
    last_updated: Optional[datetime] = None


class DailyLoginStats(BaseModel):
    date: str
    total_logins: int
    successful_logins: int
    failed_logins: int
    unique_users: int


class DailyActivityStats(BaseModel):
    date: str
    total_activities: int
    unique_users: int


class IPInfoOut(BaseModel):
    ip: str
    info: Dict[str, str]
    location: Dict[str, Any]
    location_label: str
