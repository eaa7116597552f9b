# lms_admin/db/session.py
from lms_admin.db.mongo import get_db as mongo_db


def get_db():
    """
    FastAPI dependency that returns Mongo database instance
    """
    return mongo_db()
