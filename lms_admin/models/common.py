# lms_admin/models/common.py
from __future__ import annotations

from datetime import datetime, timezone

from bson import ObjectId
from pydantic import BaseModel, ConfigDict


def oid_str(x) -> str | None:
    if x is None:
        return None
    return str(x)


def to_object_id(value) -> ObjectId | None:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LMSBaseModel(BaseModel):
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        use_enum_values=True,
    )
