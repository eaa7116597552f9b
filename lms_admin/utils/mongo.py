from datetime import date, datetime
from enum import Enum

from bson import ObjectId


def serialize_mongo(obj):
    """Plain strings/lists/dicts out of documents (CSV cells, JSON columns)."""
    if isinstance(obj, ObjectId):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [serialize_mongo(v) for v in obj]
    if isinstance(obj, dict):
        return {k: serialize_mongo(v) for k, v in obj.items() if k != "password_hash"}
    return obj


def doc_with_id(doc: dict) -> dict:
    """Move `_id` to a string `id` in place."""
    doc["id"] = str(doc.pop("_id"))
    return doc
