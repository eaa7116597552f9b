from lms_admin.db.mongo import ADMIN_AUDIT_LOG, AUDIT_TRAIL, COMPREHENSIVE_AUDIT
from lms_admin.models.audit_log import AuditEntry
from lms_admin.repositories.audit_repository import AuditRepository
from lms_admin.services.audit_writer import AuditWriter, course_id_from

from conftest import FakeDatabase


def _entry(**kw):
    base = dict(
        user_id="u1",
        username="registrar",
        user_role="admin",
        action_type="UPDATE",
        action_description="Updated course: Hiragana Basics",
        resource_type="Course",
        resource_id="Course ID: 42",
    )
    base.update(kw)
    return AuditEntry(**base)


async def test_writes_to_comprehensive_trail_when_present():
    db = FakeDatabase()
    written = await AuditWriter(AuditRepository(db)).write(_entry())

    assert written == [COMPREHENSIVE_AUDIT]
    row = db[COMPREHENSIVE_AUDIT].docs[0]
    assert row["outcome"] == "Success"
    assert row["resource_id"] == "Course ID: 42"
    assert db[ADMIN_AUDIT_LOG].docs == []


async def test_missing_trail_falls_back_to_legacy_tables():
    db = FakeDatabase(existing=[ADMIN_AUDIT_LOG, AUDIT_TRAIL])
    written = await AuditWriter(AuditRepository(db)).write(_entry())

    assert written == [ADMIN_AUDIT_LOG, AUDIT_TRAIL]
    assert db[ADMIN_AUDIT_LOG].docs[0]["admin_id"] == "u1"
    assert db[AUDIT_TRAIL].docs[0]["course_id"] == "42"
    assert COMPREHENSIVE_AUDIT not in db.collections or db[COMPREHENSIVE_AUDIT].docs == []


async def test_non_admin_non_course_entry_with_no_trail_is_dropped():
    db = FakeDatabase(existing=[ADMIN_AUDIT_LOG, AUDIT_TRAIL])
    entry = _entry(user_role="student", resource_type="User Account", resource_id="User ID: u1")

    assert await AuditWriter(AuditRepository(db)).write(entry) == []


async def test_insert_failure_moves_to_next_candidate():
    db = FakeDatabase()
    db[COMPREHENSIVE_AUDIT].fail_inserts = True

    written = await AuditWriter(AuditRepository(db)).write(_entry())

    assert written == [ADMIN_AUDIT_LOG, AUDIT_TRAIL]


async def test_duplicate_writes_store_duplicates():
    db = FakeDatabase()
    writer = AuditWriter(AuditRepository(db))
    entry = _entry()

    await writer.write(entry)
    await writer.write(entry)

    assert len(db[COMPREHENSIVE_AUDIT].docs) == 2


def test_course_id_extraction():
    assert course_id_from("Course ID: 17") == "17"
    assert course_id_from("Lesson 3") is None
    assert course_id_from(None) is None
