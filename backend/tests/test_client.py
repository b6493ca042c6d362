"""Data sources used by the client views"""

import pytest
import requests

from formbuilder.client import ApiDataSource, FixtureDataSource, get_data_source
from formbuilder.errors import DataSourceError, NotFoundError, ValidationError


class UnreachableSession:
    """requests-style session whose every call fails at the network level"""

    def request(self, method, url, **kwargs):
        raise requests.ConnectionError(f"connection refused: {url}")


def test_get_data_source_selects_implementation():
    assert isinstance(get_data_source("fixtures"), FixtureDataSource)

    source = get_data_source("api", base_url="http://forms.internal:3001/")
    assert isinstance(source, ApiDataSource)
    assert source.base_url == "http://forms.internal:3001"

    with pytest.raises(ValueError):
        get_data_source("sqlite")


def test_default_data_source_is_the_api():
    assert isinstance(get_data_source(), ApiDataSource)


def test_network_failure_is_an_error_not_sample_data():
    source = ApiDataSource("http://localhost:1", session=UnreachableSession())
    with pytest.raises(DataSourceError) as exc_info:
        source.list_forms()
    assert "connection refused" in exc_info.value.details


def test_api_source_maps_http_errors(api_source):
    with pytest.raises(NotFoundError):
        api_source.get_form("missing")

    form = api_source.create_form({"title": "Draft"})
    with pytest.raises(ValidationError) as exc_info:
        api_source.submit(form.id, {"x": 1})
    assert exc_info.value.message == "Form is not published"


def test_api_source_round_trip(api_source):
    form = api_source.create_form(
        {"title": "Poll", "fields": [{"id": "q", "type": "radio", "label": "Pick", "options": ["Yes", "No"]}]}
    )
    api_source.update_form(form.id, {"isPublished": True})
    api_source.submit(form.id, {"q": "Yes"})
    api_source.submit(form.id, {"q": "Yes"})

    analytics = api_source.get_analytics(form.id)
    assert analytics.totalSubmissions == 2
    assert analytics.fieldAnalytics[0].mostCommonValue == "Yes"

    exported = api_source.export(form.id)
    assert exported.format == "json"
    assert len(exported.data) == 2

    assert [f.id for f in api_source.list_forms()] == [form.id]
    assert api_source.delete_form(form.id) == "Form deleted successfully"
    assert api_source.list_forms() == []


def test_duplicate_form(api_source):
    original = api_source.create_form(
        {
            "title": "Signup",
            "style": {"primaryColor": "#ff0000"},
            "fields": [{"id": "1", "type": "email", "label": "Email", "required": True}],
        }
    )
    api_source.update_form(original.id, {"isPublished": True})

    copy = api_source.duplicate_form(original.id)
    assert copy.id != original.id
    assert copy.title == "Signup (Copy)"
    assert copy.isPublished is False
    assert copy.style.primaryColor == "#ff0000"
    assert [f.label for f in copy.fields] == ["Email"]


def test_fixture_source_has_demo_data():
    source = FixtureDataSource()
    forms = source.list_forms()
    assert [f.title for f in forms] == ["Customer Feedback Form"]

    analytics = source.get_analytics("1")
    assert analytics.totalSubmissions == 3
    satisfaction = next(f for f in analytics.fieldAnalytics if f.fieldId == "3")
    assert satisfaction.mostCommonValue == "Very Satisfied"

    submissions = source.list_submissions("1")
    assert [s.id for s in submissions] == ["3", "2", "1"]


def test_fixture_source_follows_api_rules():
    source = FixtureDataSource(fixtures=[])
    form = source.create_form({"title": "", "isPublished": True})
    assert form.title == "Untitled Form"
    assert form.isPublished is False

    with pytest.raises(ValidationError):
        source.submit(form.id, {"a": 1})

    source.update_form(form.id, {"isPublished": True})
    assert source.submit(form.id, {"a": 1}) == "Form submitted successfully"
    assert len(source.export(form.id).data) == 1

    source.delete_form(form.id)
    with pytest.raises(NotFoundError):
        source.get_form(form.id)
    assert source.list_submissions(form.id) == []


def test_fixture_source_returns_copies():
    source = FixtureDataSource()
    form = source.get_form("1")
    form.fields.clear()
    assert len(source.get_form("1").fields) == 4
