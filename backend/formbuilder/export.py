import csv
import io
import json
from datetime import datetime
from typing import Any, Dict, List, Mapping
from urllib.parse import quote

from formbuilder.schemas import Form


CSV_FIXED_HEADERS = ["Submission ID", "Submitted At"]


def export_filename(title: str, extension: str) -> str:
    """<form title>_responses.<ext>; path separators are not allowed in download names."""
    safe_title = (title or "form").replace("/", "_").replace("\\", "_").replace('"', "'")
    return f"{safe_title}_responses.{extension}"


def content_disposition(filename: str) -> str:
    """Attachment header value; non-ASCII titles go in the RFC 5987 filename* form."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ", ".join(format_cell(v) for v in value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def build_csv(form: Form, submissions: List[Mapping[str, Any]]) -> str:
    """Render submissions as CSV, one column per form field in form order.

    Every cell is quoted, records are separated by newlines and there is no
    trailing newline.
    """
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_FIXED_HEADERS + [field.label for field in form.fields])
    for submission in submissions:
        data = submission.get("data") or {}
        row = [format_cell(submission.get("id")), format_cell(submission.get("submittedAt"))]
        row.extend(format_cell(data.get(field.id)) for field in form.fields)
        writer.writerow(row)
    return output.getvalue().rstrip("\n")


def _json_default(value: Any):
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def build_json(submissions: List[Dict[str, Any]]) -> str:
    """The raw submission list, pretty-printed."""
    return json.dumps(submissions, indent=2, default=_json_default)
