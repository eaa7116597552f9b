import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from bson import ObjectId

from lms_admin.core.config import Settings
from lms_admin.core.security import RequestContext, hash_password
from lms_admin.db.mongo import (
    ADMIN_ACTION_LOGS,
    ADMIN_AUDIT_LOG,
    AUDIT_TRAIL,
    COMPREHENSIVE_AUDIT,
    INVALIDATED_SESSIONS,
    LOGIN_LOGS,
    USER_ACTIVITY_LOG,
    USERS,
)
from lms_admin.repositories.audit_repository import AuditRepository
from lms_admin.repositories.session_repository import AdminActionRepository, InvalidatedSessionRepository
from lms_admin.repositories.user_repository import UserRepository
from lms_admin.services.audit_service import AuditLogger
from lms_admin.services.audit_writer import AuditWriter
from lms_admin.services.geolocation import GeolocationClient
from lms_admin.services.notifications import NotificationService
from lms_admin.services.users_service import UserService

ALL_COLLECTIONS = (
    COMPREHENSIVE_AUDIT,
    ADMIN_AUDIT_LOG,
    AUDIT_TRAIL,
    LOGIN_LOGS,
    USER_ACTIVITY_LOG,
    ADMIN_ACTION_LOGS,
    INVALIDATED_SESSIONS,
    USERS,
)


# -------------------------
# In-memory Mongo
# -------------------------
def _compare(op, value, arg) -> bool:
    if op == "$ne":
        return value != arg
    if op == "$in":
        return value in arg
    if op == "$lt":
        return value is not None and value < arg
    if op == "$gte":
        return value is not None and value >= arg
    if op == "$regex":
        return value is not None and re.search(arg, str(value)) is not None
    raise NotImplementedError(op)


def matches(doc: dict, filt: dict) -> bool:
    for key, cond in filt.items():
        if key == "$or":
            if not any(matches(doc, f) for f in cond):
                return False
            continue
        if key == "$and":
            if not all(matches(doc, f) for f in cond):
                return False
            continue

        value = doc.get(key)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            options = cond.get("$options", "")
            for op, arg in cond.items():
                if op == "$options":
                    continue
                if op == "$regex" and "i" in options:
                    arg = f"(?i){arg}"
                if not _compare(op, value, arg):
                    return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self.docs = list(docs)

    def sort(self, field, direction=1):
        self.docs.sort(key=lambda d: (d.get(field) is not None, d.get(field)), reverse=direction < 0)
        return self

    def skip(self, n):
        self.docs = self.docs[n:]
        return self

    def limit(self, n):
        if n:
            self.docs = self.docs[:n]
        return self

    async def to_list(self, length=None):
        return [dict(d) for d in (self.docs if length is None else self.docs[:length])]

    def __aiter__(self):
        self._it = iter([dict(d) for d in self.docs])
        return self

    async def __anext__(self):
        try:
            return next(self._it)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, name, db):
        self.name = name
        self.db = db
        self.docs = []
        self.fail_inserts = False

    async def insert_one(self, doc, session=None):
        if self.fail_inserts:
            if isinstance(session, FakeSession):
                session.aborted = True
            raise RuntimeError(f"insert into {self.name} refused")
        doc.setdefault("_id", ObjectId())
        self.docs.append(dict(doc))
        self.db.existing.add(self.name)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, filt, session=None):
        for d in self.docs:
            if matches(d, filt):
                return dict(d)
        return None

    def find(self, filt=None):
        return FakeCursor(d for d in self.docs if matches(d, filt or {}))

    async def count_documents(self, filt):
        return sum(1 for d in self.docs if matches(d, filt))

    async def update_one(self, filt, update, session=None):
        for d in self.docs:
            if matches(d, filt):
                d.update(update.get("$set", {}))
                for f in update.get("$unset", {}):
                    d.pop(f, None)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, filt, session=None):
        for i, d in enumerate(self.docs):
            if matches(d, filt):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, filt, session=None):
        keep = [d for d in self.docs if not matches(d, filt)]
        removed = len(self.docs) - len(keep)
        self.docs = keep
        return SimpleNamespace(deleted_count=removed)


class FakeDatabase:
    def __init__(self, existing=ALL_COLLECTIONS):
        self.existing = set(existing)
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name, self)
        return self.collections[name]

    async def list_collection_names(self, filter=None):
        names = sorted(self.existing)
        if filter and "name" in filter:
            names = [n for n in names if n == filter["name"]]
        return names


class RecordingMailer:
    def __init__(self, result=True):
        self.result = result
        self.sent = []

    async def send(self, to_email, to_name, subject, html, text):
        self.sent.append({"to": to_email, "name": to_name, "subject": subject, "html": html})
        return self.result


@asynccontextmanager
async def no_transaction():
    yield None


class FakeSession:
    """Any failed write made through the session poisons the transaction."""

    def __init__(self):
        self.aborted = False


@asynccontextmanager
async def aborting_transaction():
    session = FakeSession()
    yield session
    if session.aborted:
        raise RuntimeError("Transaction has been aborted")


# -------------------------
# Fixtures
# -------------------------
@pytest.fixture
def settings():
    return Settings(geolocation_enabled=False, mongo_transactions=False)


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def admin_ctx():
    return RequestContext(
        user_id=str(ObjectId()),
        username="registrar",
        role="admin",
        session_id="sess-admin",
        ip_address="192.168.1.5",
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/115.0.0.0 Safari/537.36"
        ),
        method="POST",
        url="/admin/users",
    )


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def audit_logger(db, settings):
    return AuditLogger(AuditWriter(AuditRepository(db)), GeolocationClient(settings))


@pytest.fixture
def user_service(db, settings, audit_logger, mailer):
    return UserService(
        users=UserRepository(db[USERS]),
        sessions=InvalidatedSessionRepository(db[INVALIDATED_SESSIONS]),
        admin_actions=AdminActionRepository(db[ADMIN_ACTION_LOGS]),
        audit=audit_logger,
        notifications=NotificationService(mailer),
        settings=settings,
        transaction_factory=no_transaction,
    )


@pytest.fixture
def make_user(db):
    def _make(**fields):
        now = datetime.now(timezone.utc)
        doc = {
            "_id": ObjectId(),
            "username": "hanako",
            "email": "hanako@school.edu.ph",
            "phone_number": "+639171234567",
            "password_hash": hash_password("correct-horse"),
            "role": "student",
            "status": "active",
            "first_name": "Hanako",
            "last_name": "Yamada",
            "age": 21,
            "created_at": now,
            "updated_at": now,
        }
        doc.update(fields)
        db[USERS].docs.append(doc)
        return str(doc["_id"])

    return _make
