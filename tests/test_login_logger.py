import httpx
from bson import ObjectId

from lms_admin.core.config import Settings
from lms_admin.core.security import RequestContext
from lms_admin.db.mongo import COMPREHENSIVE_AUDIT, LOGIN_LOGS, USER_ACTIVITY_LOG, USERS
from lms_admin.repositories.activity_repository import ActivityLogRepository
from lms_admin.repositories.login_log_repository import LoginLogRepository
from lms_admin.repositories.user_repository import UserRepository
from lms_admin.repositories.audit_repository import AuditRepository
from lms_admin.services.activity_logger import ActivityLogger
from lms_admin.services.audit_service import AuditLogger
from lms_admin.services.audit_writer import AuditWriter
from lms_admin.services.geolocation import GeolocationClient
from lms_admin.services.login_logger import LoginLogger

ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/116.0 Mobile Safari/537.36"
)


def _ctx(**kw):
    base = dict(ip_address="10.0.0.7", user_agent=ANDROID_UA, session_id="s-1", method="POST", url="/auth/login")
    base.update(kw)
    return RequestContext(**base)


async def test_successful_login_writes_log_and_audit(db, audit_logger, settings):
    logins = LoginLogger(LoginLogRepository(db[LOGIN_LOGS]), audit_logger, GeolocationClient(settings))
    user = {"_id": ObjectId(), "username": "hanako", "role": "student"}

    assert await logins.log_successful_login(_ctx(), user) is True

    row = db[LOGIN_LOGS].docs[0]
    assert row["status"] == "success"
    assert row["user_id"] == str(user["_id"])
    assert row["device_type"] == "Mobile"
    assert row["operating_system"] == "Android 13"
    assert row["location"] == "Local Network"

    audit = db[COMPREHENSIVE_AUDIT].docs[0]
    assert audit["action_type"] == "LOGIN"
    assert audit["username"] == "hanako"
    assert audit["user_role"] == "student"


async def test_failed_login_keeps_credential_and_reason(db, audit_logger):
    logins = LoginLogger(LoginLogRepository(db[LOGIN_LOGS]), audit_logger)

    await logins.log_failed_login(_ctx(), "nobody@school.edu.ph", "User not found")

    row = db[LOGIN_LOGS].docs[0]
    assert row["status"] == "failed"
    assert row["user_id"] is None
    assert row["attempted_credential"] == "nobody@school.edu.ph"
    assert row["reason"] == "User not found"
    assert row["location"] == "Unknown Location"
    assert db[COMPREHENSIVE_AUDIT].docs[0]["outcome"] == "Failed"


async def test_login_log_failure_is_not_raised(db, audit_logger):
    db[LOGIN_LOGS].fail_inserts = True
    logins = LoginLogger(LoginLogRepository(db[LOGIN_LOGS]), audit_logger)

    assert await logins.log_failed_login(_ctx(), "x", "bad") is False


async def test_activity_for_unknown_user_is_ignored(db, audit_logger):
    activity = ActivityLogger(ActivityLogRepository(db[USER_ACTIVITY_LOG]), UserRepository(db[USERS]), audit_logger)

    assert await activity.log_page_view(_ctx(), str(ObjectId()), "/dashboard") is False
    assert db[USER_ACTIVITY_LOG].docs == []


async def test_quiz_activity_records_score(db, audit_logger, make_user):
    user_id = make_user(username="taro", email="taro@school.edu.ph")
    activity = ActivityLogger(ActivityLogRepository(db[USER_ACTIVITY_LOG]), UserRepository(db[USERS]), audit_logger)

    ok = await activity.log_quiz_activity(_ctx(), user_id, "quiz-7", "submitted", score=87.5)

    assert ok is True
    row = db[USER_ACTIVITY_LOG].docs[0]
    assert row["activity_type"] == "quiz_submitted"
    assert row["username"] == "taro"
    assert row["additional_data"] == {"score": 87.5}
    assert db[COMPREHENSIVE_AUDIT].docs[0]["action_type"] == "READ"


async def test_public_ip_login_is_geolocated_once(db):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={
            "status": "success", "city": "Davao City", "regionName": "Davao Region",
            "country": "Philippines", "countryCode": "PH",
        })

    geo = GeolocationClient(Settings(), transport=httpx.MockTransport(handler))
    audit = AuditLogger(AuditWriter(AuditRepository(db)), geo)
    logins = LoginLogger(LoginLogRepository(db[LOGIN_LOGS]), audit, geo)

    await logins.log_successful_login(_ctx(ip_address="8.8.8.8"), {"_id": ObjectId(), "username": "hanako"})

    assert len(calls) == 1
    assert db[LOGIN_LOGS].docs[0]["location"] == "Davao City, Davao Region, Philippines"
    row = db[COMPREHENSIVE_AUDIT].docs[0]
    assert row["location_city"] == "Davao City"
    assert row["location_country"] == "Philippines"
