from datetime import date

from fastapi import APIRouter, Depends, Query, Response

from lms_admin.api.deps import (
    get_activity_logger,
    get_audit_logger,
    get_audit_service,
    get_geolocation_client,
    get_login_logger,
)
from lms_admin.core.enums import AuditAction
from lms_admin.core.errors import LMSAdminError, NotFound
from lms_admin.core.security import RequestContext, get_current_admin
from lms_admin.models.common import utcnow
from lms_admin.schemas.audit import (
    AuditEntryOut,
    AuditFilters,
    AuditPage,
    AuditStats,
    DailyActivityStats,
    DailyLoginStats,
    IPInfoOut,
)
from lms_admin.services.activity_logger import ActivityLogger
from lms_admin.services.audit_service import AuditLogger, AuditService
from lms_admin.services.geolocation import GeolocationClient
from lms_admin.services.login_logger import LoginLogger
from lms_admin.utils.ip_address import ip_info, is_valid_ip

router = APIRouter(prefix="/admin/audit", tags=["Admin - Audit"])


def audit_filters(
    date_from: date | None = None,
    date_to: date | None = None,
    user: str | None = None,
    action_type: str | None = None,
    outcome: str | None = None,
    search: str | None = None,
) -> AuditFilters:
    return AuditFilters(
        date_from=date_from,
        date_to=date_to,
        user=user,
        action_type=action_type,
        outcome=outcome,
        search=search,
    )


@router.get("", response_model=AuditPage)
async def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    filters: AuditFilters = Depends(audit_filters),
    ctx: RequestContext = Depends(get_current_admin),
    service: AuditService = Depends(get_audit_service),
):
    return await service.list_entries(filters, page, limit)


@router.get("/stats", response_model=AuditStats)
async def audit_stats(
    ctx: RequestContext = Depends(get_current_admin),
    service: AuditService = Depends(get_audit_service),
):
    return await service.statistics()


@router.get("/export")
async def export_audit_logs(
    filters: AuditFilters = Depends(audit_filters),
    ctx: RequestContext = Depends(get_current_admin),
    service: AuditService = Depends(get_audit_service),
    audit: AuditLogger = Depends(get_audit_logger),
):
    body = await service.export_csv(filters)
    filename = f"audit_trail_{utcnow().strftime('%Y-%m-%d_%H-%M-%S')}.csv"

    await audit.log_entry(
        ctx,
        action_type=AuditAction.download.value,
        action_description="Exported audit trail",
        resource_type="Audit Trail",
        resource_name=filename,
        context=filters.model_dump(mode="json", exclude_none=True),
    )

    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/login-activity")
async def login_activity(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    status: str | None = None,
    ctx: RequestContext = Depends(get_current_admin),
    logins: LoginLogger = Depends(get_login_logger),
):
    rows = await logins.recent_logins(page, limit, status)
    return {"success": True, "page": page, "limit": limit, "entries": rows}


@router.get("/login-stats", response_model=list[DailyLoginStats])
async def login_stats(
    days: int = Query(30, ge=1, le=365),
    ctx: RequestContext = Depends(get_current_admin),
    logins: LoginLogger = Depends(get_login_logger),
):
    return await logins.login_statistics(days)


@router.get("/activity-stats", response_model=list[DailyActivityStats])
async def activity_stats(
    days: int = Query(7, ge=1, le=365),
    ctx: RequestContext = Depends(get_current_admin),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    return await activity.activity_statistics(days)


@router.get("/ip-info/{ip}", response_model=IPInfoOut)
async def ip_details(
    ip: str,
    ctx: RequestContext = Depends(get_current_admin),
    geo: GeolocationClient = Depends(get_geolocation_client),
):
    if not is_valid_ip(ip):
        raise LMSAdminError("Invalid IP address")
    location = await geo.lookup(ip)
    return {
        "ip": ip,
        "info": ip_info(ip),
        "location": location.model_dump(),
        "location_label": location.label(),
    }


@router.get("/{entry_id}", response_model=AuditEntryOut)
async def get_audit_entry(
    entry_id: str,
    ctx: RequestContext = Depends(get_current_admin),
    service: AuditService = Depends(get_audit_service),
):
    entry = await service.get_entry(entry_id)
    if not entry:
        raise NotFound("Audit entry not found")
    return entry
