"""Analytics computation"""

from datetime import datetime, timezone

from formbuilder.analytics import bucket_starts, compute_analytics, is_response, most_common_value, to_utc_naive
from formbuilder.schemas import Form

# Wednesday
NOW = datetime(2026, 10, 21, 12, 0)


def make_form(*fields):
    return Form(
        id="F1",
        title="T",
        fields=[{"id": fid, "type": ftype, "label": fid.upper()} for fid, ftype in fields],
        createdAt=NOW,
        updatedAt=NOW,
    )


def sub(submitted_at, **data):
    return {"id": str(submitted_at), "formId": "F1", "data": data, "submittedAt": submitted_at}


def test_is_response():
    data = {"zero": 0, "false": False, "text": "x", "empty": "", "none": None, "list": []}
    assert is_response(data, "zero")
    assert is_response(data, "false")
    assert is_response(data, "text")
    assert is_response(data, "list")
    assert not is_response(data, "empty")
    assert not is_response(data, "none")
    assert not is_response(data, "missing")


def test_most_common_value_ties_go_to_first_seen():
    assert most_common_value(["b", "a", "a", "b"]) == "b"
    assert most_common_value(["a", "b", "b"]) == "b"
    assert most_common_value([]) is None


def test_most_common_value_handles_lists_and_keeps_types_apart():
    assert most_common_value([["x", "y"], ["z"], ["x", "y"]]) == ["x", "y"]
    assert most_common_value([1, True, True]) is True


def test_bucket_starts():
    starts = bucket_starts(NOW)
    assert starts["today"] == datetime(2026, 10, 21)
    assert starts["week"] == datetime(2026, 10, 19)
    assert starts["month"] == datetime(2026, 10, 1)


def test_time_buckets():
    form = make_form(("a", "text"))
    submissions = [
        sub(datetime(2026, 10, 21, 13, 0), a="future"),
        sub(datetime(2026, 10, 21, 8, 0), a="today"),
        sub(datetime(2026, 10, 20, 23, 59), a="yesterday"),
        sub(datetime(2026, 10, 18, 10, 0), a="last sunday"),
        sub(datetime(2026, 10, 1, 0, 0), a="first of month"),
        sub(datetime(2026, 9, 30, 23, 59), a="last month"),
    ]
    analytics = compute_analytics(form, submissions, now=NOW)

    assert analytics.totalSubmissions == 6
    assert analytics.submissionsToday == 1
    assert analytics.submissionsThisWeek == 2
    assert analytics.submissionsThisMonth == 4
    assert analytics.submissionTrend["2026-09-30"] == 1
    assert analytics.submissionTrend["2026-10-21"] == 2
    assert list(analytics.submissionTrend) == sorted(analytics.submissionTrend)


def test_aware_timestamps_are_compared_in_utc():
    form = make_form(("a", "text"))
    submissions = [sub("2026-10-21T01:00:00+02:00", a="x")]
    analytics = compute_analytics(form, submissions, now=datetime(2026, 10, 21, 12, 0, tzinfo=timezone.utc))
    # 01:00+02:00 is the previous UTC day
    assert analytics.submissionsToday == 0
    assert analytics.submissionsThisWeek == 1


def test_field_analytics():
    form = make_form(("name", "text"), ("agree", "checkbox"), ("age", "number"), ("color", "radio"))
    submissions = [
        sub(datetime(2026, 10, 3), name="Ann", agree=False, age=0, color="red"),
        sub(datetime(2026, 10, 1), name="", agree=True, color="blue"),
        sub(datetime(2026, 10, 2), agree=True, age=None, color="red"),
    ]
    analytics = compute_analytics(form, submissions, now=NOW)
    fields = {f.fieldId: f for f in analytics.fieldAnalytics}

    assert [f.fieldId for f in analytics.fieldAnalytics] == ["name", "agree", "age", "color"]
    assert fields["name"].responses == 1
    assert fields["name"].mostCommonValue == "Ann"
    assert fields["agree"].responses == 3
    assert fields["agree"].mostCommonValue is True
    assert fields["age"].responses == 1
    assert fields["age"].mostCommonValue == 0
    assert fields["color"].responses == 3
    assert fields["color"].mostCommonValue == "red"
    assert fields["color"].fieldLabel == "COLOR"
    assert fields["color"].fieldType == "radio"


def test_mode_tie_uses_oldest_submission_first():
    form = make_form(("color", "select"))
    # newest first, the way the store lists them
    submissions = [
        sub(datetime(2026, 10, 4), color="blue"),
        sub(datetime(2026, 10, 3), color="red"),
        sub(datetime(2026, 10, 2), color="blue"),
        sub(datetime(2026, 10, 1), color="red"),
    ]
    analytics = compute_analytics(form, submissions, now=NOW)
    assert analytics.fieldAnalytics[0].mostCommonValue == "red"


def test_completion_rate():
    form = make_form(("a", "text"))
    assert compute_analytics(form, [], now=NOW).completionRate == 0
    # every stored submission counts as complete, even an empty one
    assert compute_analytics(form, [sub(datetime(2026, 10, 1))], now=NOW).completionRate == 100


def test_to_utc_naive():
    assert to_utc_naive(None) is None
    assert to_utc_naive("garbage") is None
    assert to_utc_naive("2026-10-21T10:00:00Z") == datetime(2026, 10, 21, 10, 0)
    assert to_utc_naive(datetime(2026, 10, 21, 10, 0)) == datetime(2026, 10, 21, 10, 0)
