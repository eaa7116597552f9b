from typing import Any, Dict, Iterable

# never echoed into audit rows
SENSITIVE_FIELDS = {"password", "password_hash"}


def diff_fields(old: dict, updates: dict, hidden: Iterable[str] = SENSITIVE_FIELDS) -> Dict[str, Dict[str, Any]]:
    """
    {"field": {"from": old, "to": new}} for every key in `updates`
    whose value differs from `old`. Hidden fields show "***".
    """
    hidden = set(hidden)
    changes: Dict[str, Dict[str, Any]] = {}

    for field, new_value in updates.items():
        if field in hidden:
            changes[field] = {"from": "***", "to": "***"}
            continue
        old_value = old.get(field)
        if old_value != new_value:
            changes[field] = {"from": old_value, "to": new_value}

    return changes


def split_changes(changes: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    return {
        "old": {k: v["from"] for k, v in changes.items()},
        "new": {k: v["to"] for k, v in changes.items()},
    }
