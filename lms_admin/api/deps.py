from fastapi import Depends

from lms_admin.core.config import get_settings
from lms_admin.db.mongo import (
    ADMIN_ACTION_LOGS,
    INVALIDATED_SESSIONS,
    LOGIN_LOGS,
    USER_ACTIVITY_LOG,
    USERS,
)
from lms_admin.db.session import get_db
from lms_admin.repositories.activity_repository import ActivityLogRepository
from lms_admin.repositories.audit_repository import AuditRepository
from lms_admin.repositories.login_log_repository import LoginLogRepository
from lms_admin.repositories.session_repository import AdminActionRepository, InvalidatedSessionRepository
from lms_admin.repositories.user_repository import UserRepository
from lms_admin.services.activity_logger import ActivityLogger
from lms_admin.services.audit_service import AuditLogger, AuditService
from lms_admin.services.audit_writer import AuditWriter
from lms_admin.services.geolocation import GeolocationClient
from lms_admin.services.login_logger import LoginLogger
from lms_admin.services.mailer import Mailer
from lms_admin.services.notifications import NotificationService
from lms_admin.services.users_service import UserService


def get_geolocation_client() -> GeolocationClient:
    return GeolocationClient(get_settings())


def get_mailer() -> Mailer:
    return Mailer(get_settings())


def get_audit_logger(db=Depends(get_db), geo=Depends(get_geolocation_client)) -> AuditLogger:
    return AuditLogger(AuditWriter(AuditRepository(db)), geo)


def get_audit_service(db=Depends(get_db)) -> AuditService:
    return AuditService(AuditRepository(db))


def get_login_logger(
    db=Depends(get_db),
    audit=Depends(get_audit_logger),
    geo=Depends(get_geolocation_client),
) -> LoginLogger:
    return LoginLogger(LoginLogRepository(db[LOGIN_LOGS]), audit, geo)


def get_activity_logger(db=Depends(get_db), audit=Depends(get_audit_logger)) -> ActivityLogger:
    return ActivityLogger(ActivityLogRepository(db[USER_ACTIVITY_LOG]), UserRepository(db[USERS]), audit)


def get_user_service(
    db=Depends(get_db),
    audit=Depends(get_audit_logger),
    mailer=Depends(get_mailer),
) -> UserService:
    return UserService(
        users=UserRepository(db[USERS]),
        sessions=InvalidatedSessionRepository(db[INVALIDATED_SESSIONS]),
        admin_actions=AdminActionRepository(db[ADMIN_ACTION_LOGS]),
        audit=audit,
        notifications=NotificationService(mailer),
        settings=get_settings(),
    )
