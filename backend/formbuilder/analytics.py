"""Aggregate statistics over a form's submissions.

The same computation backs ``GET /api/forms/{id}/analytics`` and the builder
client, so both always agree on the numbers.

Time buckets are UTC calendar periods ending at ``now``: today starts at
00:00 UTC, the week starts on Monday 00:00 UTC (ISO week) and the month on
the 1st at 00:00 UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from formbuilder.schemas import FieldAnalytics, Form, FormAnalytics


def to_utc_naive(value: Any) -> Optional[datetime]:
    """Normalise a stored or serialised timestamp to naive UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def is_response(data: Mapping[str, Any], field_id: str) -> bool:
    """A field counts as answered when its value is present and not an empty string.

    0 and False are answers.
    """
    if field_id not in data:
        return False
    value = data[field_id]
    if value is None:
        return False
    return not (isinstance(value, str) and value == "")


def _hashable(value: Any):
    if isinstance(value, list):
        return ("list", tuple(_hashable(v) for v in value))
    if isinstance(value, dict):
        return ("dict", tuple(sorted((k, _hashable(v)) for k, v in value.items())))
    # keep True and 1 apart
    return (type(value).__name__, value)


def most_common_value(values: Iterable[Any]) -> Any:
    """Mode of the values; on a tie the first value seen wins."""
    counts: Dict[Any, int] = {}
    first_seen: Dict[Any, Any] = {}
    for value in values:
        key = _hashable(value)
        if key not in counts:
            counts[key] = 0
            first_seen[key] = value
        counts[key] += 1
    if not counts:
        return None
    # max() returns the first maximal key in insertion order
    best = max(counts, key=counts.get)
    return first_seen[best]


def bucket_starts(now: datetime) -> Dict[str, datetime]:
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return {
        "today": today,
        "week": today - timedelta(days=today.weekday()),
        "month": today.replace(day=1),
    }


def compute_analytics(
    form: Form,
    submissions: List[Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> FormAnalytics:
    """
    Build the analytics summary for a form.

    Args:
        form: The form the submissions belong to
        submissions: Submission dicts (``data`` and ``submittedAt`` keys), any order
        now: Reference time for the buckets, defaults to the current UTC time

    Returns:
        FormAnalytics
    """
    now = to_utc_naive(now) if now is not None else datetime.now(timezone.utc).replace(tzinfo=None)
    starts = bucket_starts(now)

    # oldest first so mode ties go to the earliest answer
    timestamps = [to_utc_naive(sub.get("submittedAt")) for sub in submissions]
    ordered = [
        sub for _, sub in sorted(
            zip(timestamps, submissions),
            key=lambda pair: pair[0] or datetime.min,
        )
    ]

    today = week = month = 0
    trend: Dict[str, int] = {}
    for submitted_at in timestamps:
        if submitted_at is None:
            continue
        day = submitted_at.date().isoformat()
        trend[day] = trend.get(day, 0) + 1
        if submitted_at > now:
            continue
        if submitted_at >= starts["today"]:
            today += 1
        if submitted_at >= starts["week"]:
            week += 1
        if submitted_at >= starts["month"]:
            month += 1

    field_analytics = []
    for field in form.fields:
        answers = []
        for sub in ordered:
            data = sub.get("data") or {}
            if is_response(data, field.id):
                answers.append(data[field.id])
        field_analytics.append(
            FieldAnalytics(
                fieldId=field.id,
                fieldLabel=field.label,
                fieldType=field.type,
                responses=len(answers),
                mostCommonValue=most_common_value(answers),
            )
        )

    total = len(submissions)
    return FormAnalytics(
        formId=form.id,
        totalSubmissions=total,
        submissionsToday=today,
        submissionsThisWeek=week,
        submissionsThisMonth=month,
        # every stored submission is treated as complete
        completionRate=100 if total > 0 else 0,
        fieldAnalytics=field_analytics,
        submissionTrend=dict(sorted(trend.items())),
    )
