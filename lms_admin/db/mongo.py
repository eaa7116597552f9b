from contextlib import asynccontextmanager
from functools import lru_cache

from motor.motor_asyncio import AsyncIOMotorClient

from lms_admin.core.config import get_settings

COMPREHENSIVE_AUDIT = "comprehensive_audit_trail"
ADMIN_AUDIT_LOG = "admin_audit_log"
AUDIT_TRAIL = "audit_trail"
LOGIN_LOGS = "login_logs"
USER_ACTIVITY_LOG = "user_activity_log"
ADMIN_ACTION_LOGS = "admin_action_logs"
INVALIDATED_SESSIONS = "invalidated_sessions"
USERS = "users"


@lru_cache
def get_client() -> AsyncIOMotorClient:
    settings = get_settings()
    return AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)


def get_db():
    return get_client()[get_settings().mongo_db]


@asynccontextmanager
async def transaction(client: AsyncIOMotorClient | None = None):
    """
    Yields a client session inside a started transaction, or None when
    transactions are disabled. Leaving the block with an exception aborts.
    """
    if not get_settings().mongo_transactions:
        yield None
        return

    client = client or get_client()
    async with await client.start_session() as session:
        async with session.start_transaction():
            yield session
