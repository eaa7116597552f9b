from lms_admin.models.common import oid_str


_PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "middle_name",
    "suffix",
    "age",
    "address_line1",
    "address_line2",
    "city",
    "created_at",
    "updated_at",
)

_LIFECYCLE_FIELDS = (
    "ban_reason",
    "banned_at",
    "banned_by",
    "unbanned_at",
    "unbanned_by",
    "deleted_at",
    "deleted_by",
    "deletion_reason",
    "restoration_deadline",
)


def to_user_summary(doc: dict) -> dict:
    return {
        "id": oid_str(doc.get("_id")) or doc.get("id"),
        "username": doc.get("username", ""),
        "email": doc.get("email"),
        "role": doc.get("role", "student"),
    }


def to_user_out(doc: dict) -> dict:
    """
    Normalize a users document into the API shape.
    Never exposes password_hash.
    """
    out = to_user_summary(doc)
    out.update(
        {
            "phone_number": doc.get("phone_number"),
            "status": doc.get("status", "active"),
            "email_verified": bool(doc.get("email_verified", False)),
            "phone_verified": bool(doc.get("phone_verified", False)),
            "is_first_login": bool(doc.get("is_first_login", False)),
        }
    )
    for f in _PROFILE_FIELDS:
        out[f] = doc.get(f)
    return out


def to_user_details(doc: dict) -> dict:
    out = to_user_out(doc)
    for f in _LIFECYCLE_FIELDS:
        out[f] = oid_str(doc.get(f)) if f.endswith("_by") else doc.get(f)
    return out
