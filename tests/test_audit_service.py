import json
from datetime import datetime, timedelta, timezone

from bson import ObjectId

from lms_admin.core.security import RequestContext
from lms_admin.db.mongo import ADMIN_AUDIT_LOG, COMPREHENSIVE_AUDIT, LOGIN_LOGS
from lms_admin.repositories.audit_repository import AuditRepository
from lms_admin.schemas.audit import AuditFilters
from lms_admin.services.audit_service import AuditLogger, AuditService

from conftest import FakeDatabase


class ExplodingWriter:
    async def write(self, entry):
        raise RuntimeError("mongo went away")


async def test_log_entry_enriches_from_request_context(db, audit_logger, admin_ctx):
    ok = await audit_logger.log_entry(
        admin_ctx,
        action_type="UPDATE",
        action_description="Updated system configuration: maintenance_mode",
        resource_type="System Config",
        context={"setting": "maintenance_mode"},
    )

    assert ok is True
    row = db[COMPREHENSIVE_AUDIT].docs[0]
    assert row["username"] == "registrar"
    assert row["user_role"] == "admin"
    assert row["ip_address"] == "192.168.1.5"
    assert row["browser_name"] == "Chrome 115.0.0.0"
    assert row["operating_system"] == "Windows 10/11"
    assert row["location_city"] == "Private Network"
    assert row["session_id"] == "sess-admin"
    assert row["request_method"] == "POST"
    assert json.loads(row["additional_context"]) == {"setting": "maintenance_mode"}


async def test_anonymous_context_gets_defaults(db, audit_logger):
    await audit_logger.log_entry(
        RequestContext(),
        action_type="ACCESS",
        action_description="Opened landing page",
        resource_type="Page",
    )

    row = db[COMPREHENSIVE_AUDIT].docs[0]
    assert row["username"] == "Unknown User"
    assert row["user_role"] == "unknown"
    assert row["device_info"] == "Unknown User Agent"


async def test_log_entry_never_raises(admin_ctx):
    logger = AuditLogger(ExplodingWriter())

    ok = await logger.log_entry(
        admin_ctx, action_type="READ", action_description="x", resource_type="Page"
    )

    assert ok is False


async def test_failed_login_is_recorded_as_failed_outcome(db, audit_logger, admin_ctx):
    await audit_logger.log_login(admin_ctx, None, "ghost", success=False)

    row = db[COMPREHENSIVE_AUDIT].docs[0]
    assert row["action_type"] == "LOGIN"
    assert row["outcome"] == "Failed"
    assert row["action_description"] == "Failed login attempt"


async def test_user_update_keeps_old_and_new_values(db, audit_logger, admin_ctx):
    await audit_logger.log_user_update(
        admin_ctx, "abc", "hanako", {"old": {"city": "Cebu"}, "new": {"city": "Davao"}}
    )

    row = db[COMPREHENSIVE_AUDIT].docs[0]
    assert json.loads(row["old_value_text"]) == {"city": "Cebu"}
    assert json.loads(row["new_value_text"]) == {"city": "Davao"}
    assert row["resource_name"] == "hanako"


# -------------------------
# Read side
# -------------------------
def _seed(db, n, **fields):
    now = datetime.now(timezone.utc)
    for i in range(n):
        doc = {
            "_id": ObjectId(),
            "timestamp": now - timedelta(minutes=i),
            "user_id": f"u{i % 2}",
            "username": f"user{i % 2}",
            "user_role": "teacher",
            "action_type": "UPDATE",
            "action_description": f"Edited lesson {i}",
            "resource_type": "Lesson",
            "outcome": "Success",
        }
        doc.update(fields)
        db[COMPREHENSIVE_AUDIT].docs.append(doc)


async def test_list_entries_pages_newest_first(db):
    _seed(db, 5)
    service = AuditService(AuditRepository(db))

    page = await service.list_entries(AuditFilters(), page=1, limit=2)

    assert page["total"] == 5
    assert [e["action_description"] for e in page["entries"]] == ["Edited lesson 0", "Edited lesson 1"]
    assert page["entries"][0]["source"] == COMPREHENSIVE_AUDIT


async def test_list_entries_applies_filters(db):
    _seed(db, 4)
    service = AuditService(AuditRepository(db))

    page = await service.list_entries(AuditFilters(user="USER1"), page=1, limit=10)

    assert page["total"] == 2
    assert {e["username"] for e in page["entries"]} == {"user1"}


async def test_list_entries_falls_back_when_trail_missing():
    db = FakeDatabase(existing=[ADMIN_AUDIT_LOG, LOGIN_LOGS])
    now = datetime.now(timezone.utc)
    db[ADMIN_AUDIT_LOG].docs.append(
        {"_id": ObjectId(), "admin_id": "a1", "action": "Banned user", "created_at": now}
    )
    db[LOGIN_LOGS].docs.append(
        {"_id": ObjectId(), "user_id": "u1", "status": "failed", "login_time": now - timedelta(hours=1)}
    )
    service = AuditService(AuditRepository(db))

    page = await service.list_entries(None)

    assert page["total"] == 2
    assert [e["source"] for e in page["entries"]] == [ADMIN_AUDIT_LOG, LOGIN_LOGS]
    assert page["entries"][1]["outcome"] == "Failed"


async def test_export_csv_has_header_and_rows(db):
    _seed(db, 2)
    service = AuditService(AuditRepository(db))

    body = await service.export_csv(AuditFilters())

    lines = body.strip().splitlines()
    assert lines[0].startswith("timestamp,username,user_role,action_type")
    assert len(lines) == 3


async def test_get_entry_unknown_id(db):
    service = AuditService(AuditRepository(db))

    assert await service.get_entry("not-an-id") is None
    assert await service.get_entry(str(ObjectId())) is None


async def test_fallback_honours_filters_when_trail_has_no_match(db):
    _seed(db, 1)
    now = datetime.now(timezone.utc)
    db[LOGIN_LOGS].docs += [
        {"_id": ObjectId(), "user_id": "u7", "status": "success", "login_time": now},
        {"_id": ObjectId(), "user_id": "u8", "status": "failed", "login_time": now - timedelta(hours=2)},
    ]
    service = AuditService(AuditRepository(db))

    page = await service.list_entries(AuditFilters(outcome="Failed"), page=1, limit=10)

    assert page["total"] == 1
    assert [(e["source"], e["user_id"], e["outcome"]) for e in page["entries"]] == [
        (LOGIN_LOGS, "u8", "Failed")
    ]


async def test_fallback_filters_apply_when_trail_missing():
    db = FakeDatabase(existing=[ADMIN_AUDIT_LOG, LOGIN_LOGS])
    now = datetime.now(timezone.utc)
    db[ADMIN_AUDIT_LOG].docs.append(
        {"_id": ObjectId(), "admin_id": "a1", "action": "Banned user", "created_at": now}
    )
    db[LOGIN_LOGS].docs += [
        {"_id": ObjectId(), "user_id": "u1", "status": "success", "login_time": now},
        {"_id": ObjectId(), "user_id": "u2", "status": "failed", "login_time": now - timedelta(days=3)},
    ]
    service = AuditService(AuditRepository(db))

    failed = await service.list_entries(AuditFilters(outcome="Failed"))
    recent_logins = await service.list_entries(
        AuditFilters(action_type="LOGIN", date_from=(now - timedelta(days=1)).date())
    )
    banned = await service.list_entries(AuditFilters(search="banned"))

    assert [e["user_id"] for e in failed["entries"]] == ["u2"]
    assert failed["total"] == 1
    assert [e["user_id"] for e in recent_logins["entries"]] == ["u1"]
    assert [e["source"] for e in banned["entries"]] == [ADMIN_AUDIT_LOG]


async def test_export_csv_skips_rows_outside_filters():
    db = FakeDatabase(existing=[LOGIN_LOGS])
    now = datetime.now(timezone.utc)
    db[LOGIN_LOGS].docs.append(
        {"_id": ObjectId(), "user_id": "u1", "status": "success", "login_time": now}
    )
    service = AuditService(AuditRepository(db))

    body = await service.export_csv(AuditFilters(outcome="Failed"))

    assert len(body.strip().splitlines()) == 1


async def test_course_access_shortcut(db, audit_logger, admin_ctx):
    await audit_logger.log_course_access(admin_ctx, "42", "Hiragana Basics")

    row = db[COMPREHENSIVE_AUDIT].docs[0]
    assert row["action_type"] == "ACCESS"
    assert row["resource_id"] == "Course ID: 42"
    assert row["resource_name"] == "Hiragana Basics"


async def test_system_config_shortcut_stringifies_values(db, audit_logger, admin_ctx):
    await audit_logger.log_system_config(admin_ctx, "max_upload_mb", 10, 25)

    row = db[COMPREHENSIVE_AUDIT].docs[0]
    assert row["resource_type"] == "System Config"
    assert row["old_value_text"] == "10"
    assert row["new_value_text"] == "25"
