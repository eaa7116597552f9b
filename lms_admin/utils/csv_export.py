import csv
import io
import json
from typing import Iterable, Sequence

from lms_admin.utils.mongo import serialize_mongo

AUDIT_CSV_COLUMNS = (
    "timestamp",
    "username",
    "user_role",
    "action_type",
    "action_description",
    "resource_type",
    "resource_id",
    "resource_name",
    "outcome",
    "ip_address",
    "device_info",
    "location",
    "session_id",
)


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def rows_to_csv(rows: Iterable[dict], columns: Sequence[str] = AUDIT_CSV_COLUMNS) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=list(columns), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        row = serialize_mongo(row)
        writer.writerow({c: _cell(row.get(c)) for c in columns})
    return output.getvalue()
