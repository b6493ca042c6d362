"""
Data sources for the builder, form view and analytics screens.

Two interchangeable implementations exist:

- ``ApiDataSource`` talks to the REST API with ``requests``.
- ``FixtureDataSource`` keeps sample forms and submissions in memory for
  demos and offline work.

Which one is used is a configuration decision (``DATA_SOURCE``), made once
through ``get_data_source``. A failing API call raises ``DataSourceError``;
it is never answered with fixture data.
"""

from __future__ import annotations

import copy
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

from formbuilder.analytics import compute_analytics
from formbuilder.config import settings
from formbuilder.errors import DataSourceError, NotFoundError, ValidationError
from formbuilder.logging_config import get_logger
from formbuilder.schemas import (
    DEFAULT_TITLE,
    ExportOut,
    Form,
    FormAnalytics,
    FormCreate,
    FormStyle,
    FormSubmission,
    FormUpdate,
)

logger = get_logger(__name__)


class FormDataSource(ABC):
    """Everything the client views read and write."""

    @abstractmethod
    def list_forms(self) -> List[Form]: ...

    @abstractmethod
    def get_form(self, form_id: str) -> Form: ...

    @abstractmethod
    def create_form(self, payload: Dict[str, Any]) -> Form: ...

    @abstractmethod
    def update_form(self, form_id: str, payload: Dict[str, Any]) -> Form: ...

    @abstractmethod
    def delete_form(self, form_id: str) -> str: ...

    @abstractmethod
    def submit(self, form_id: str, data: Dict[str, Any]) -> str: ...

    @abstractmethod
    def list_submissions(self, form_id: str) -> List[FormSubmission]: ...

    @abstractmethod
    def get_analytics(self, form_id: str) -> FormAnalytics: ...

    @abstractmethod
    def export(self, form_id: str) -> ExportOut: ...

    def duplicate_form(self, form_id: str) -> Form:
        """Create an unpublished copy titled "<title> (Copy)" with the same fields and style."""
        original = self.get_form(form_id)
        return self.create_form(
            {
                "title": f"{original.title} (Copy)",
                "description": original.description,
                "fields": [field.model_dump(exclude_none=True) for field in original.fields],
                "style": original.style.model_dump(),
            }
        )


class ApiDataSource(FormDataSource):
    """
    REST client for the form builder API.

    Args:
        base_url: Server root, e.g. http://localhost:3001 (an empty string
            sends relative URLs, which is what test clients expect)
        session: Anything with a requests-style ``request`` method
        timeout: Seconds per request
    """

    def __init__(self, base_url: str = "", session=None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}/api{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise DataSourceError(f"Could not reach {url}", details=str(e)) from e

        if response.status_code >= 400:
            try:
                body = response.json()
                detail = body.get("detail") if isinstance(body, dict) else None
            except ValueError:
                detail = None
            detail = detail or response.text or f"HTTP {response.status_code}"
            logger.warning(f"{method} {url} -> {response.status_code}: {detail}")
            if response.status_code == 404:
                raise NotFoundError(detail)
            if response.status_code == 400:
                raise ValidationError(detail)
            raise DataSourceError(detail, status_code=response.status_code)
        return response

    def list_forms(self) -> List[Form]:
        return [Form.model_validate(item) for item in self._request("GET", "/forms").json()]

    def get_form(self, form_id: str) -> Form:
        return Form.model_validate(self._request("GET", f"/forms/{form_id}").json())

    def create_form(self, payload: Dict[str, Any]) -> Form:
        return Form.model_validate(self._request("POST", "/forms", json=payload).json())

    def update_form(self, form_id: str, payload: Dict[str, Any]) -> Form:
        return Form.model_validate(self._request("PUT", f"/forms/{form_id}", json=payload).json())

    def delete_form(self, form_id: str) -> str:
        return self._request("DELETE", f"/forms/{form_id}").json()["message"]

    def submit(self, form_id: str, data: Dict[str, Any]) -> str:
        return self._request("POST", f"/forms/{form_id}/submit", json={"data": data}).json()["message"]

    def list_submissions(self, form_id: str) -> List[FormSubmission]:
        items = self._request("GET", f"/forms/{form_id}/submissions").json()
        return [FormSubmission.model_validate(item) for item in items]

    def get_analytics(self, form_id: str) -> FormAnalytics:
        return FormAnalytics.model_validate(self._request("GET", f"/forms/{form_id}/analytics").json())

    def export(self, form_id: str) -> ExportOut:
        return ExportOut.model_validate(self._request("GET", f"/forms/{form_id}/export").json())


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def sample_forms() -> List[Dict[str, Any]]:
    """The demo data set: one published feedback form with three responses."""
    now = _now()
    form = {
        "id": "1",
        "title": "Customer Feedback Form",
        "description": "Collect feedback from customers",
        "fields": [
            {"id": "1", "type": "text", "label": "Full Name", "required": True},
            {"id": "2", "type": "email", "label": "Email", "placeholder": "Enter your email", "required": True},
            {
                "id": "3",
                "type": "radio",
                "label": "Satisfaction",
                "required": True,
                "options": ["Very Satisfied", "Satisfied", "Neutral", "Dissatisfied"],
            },
            {"id": "4", "type": "textarea", "label": "Comments", "required": False},
        ],
        "style": {"primaryColor": "#3b82f6"},
        "isPublished": True,
        "createdAt": now - timedelta(days=7),
        "updatedAt": now,
    }
    submissions = [
        {
            "id": "1",
            "formId": "1",
            "data": {"1": "John Doe", "2": "john@example.com", "3": "Very Satisfied", "4": "Great service!"},
            "submittedAt": now - timedelta(days=2),
        },
        {
            "id": "2",
            "formId": "1",
            "data": {"1": "Jane Smith", "2": "jane@example.com", "3": "Satisfied", "4": "Good experience overall"},
            "submittedAt": now - timedelta(days=1),
        },
        {
            "id": "3",
            "formId": "1",
            "data": {"1": "Bob Johnson", "2": "bob@example.com", "3": "Very Satisfied", "4": "Excellent!"},
            "submittedAt": now,
        },
    ]
    return [{"form": form, "submissions": submissions}]


class FixtureDataSource(FormDataSource):
    """In-memory forms and submissions following the same rules as the API."""

    def __init__(self, fixtures: Optional[List[Dict[str, Any]]] = None):
        self._forms: Dict[str, Form] = {}
        self._submissions: List[Dict[str, Any]] = []
        for entry in sample_forms() if fixtures is None else fixtures:
            form = Form.model_validate(entry["form"])
            self._forms[form.id] = form
            self._submissions.extend(copy.deepcopy(entry.get("submissions", [])))
        self._next_submission = len(self._submissions) + 1

    def _require(self, form_id: str) -> Form:
        form = self._forms.get(form_id)
        if form is None:
            raise NotFoundError("Form not found")
        return form

    def _new_form_id(self) -> str:
        form_id = int(time.time() * 1000)
        while str(form_id) in self._forms:
            form_id += 1
        return str(form_id)

    def list_forms(self) -> List[Form]:
        return sorted(self._forms.values(), key=lambda form: form.updatedAt, reverse=True)

    def get_form(self, form_id: str) -> Form:
        return self._require(form_id).model_copy(deep=True)

    def create_form(self, payload: Dict[str, Any]) -> Form:
        body = FormCreate.model_validate(payload)
        now = _now()
        form = Form(
            id=self._new_form_id(),
            title=body.title or DEFAULT_TITLE,
            description=body.description or "",
            fields=body.fields or [],
            style=body.style or FormStyle(),
            isPublished=False,
            createdAt=now,
            updatedAt=now,
        )
        self._forms[form.id] = form
        return form.model_copy(deep=True)

    def update_form(self, form_id: str, payload: Dict[str, Any]) -> Form:
        form = self._require(form_id)
        body = FormUpdate.model_validate(payload)
        sent = body.model_fields_set
        changes: Dict[str, Any] = {"updatedAt": _now()}
        if "title" in sent:
            changes["title"] = body.title or DEFAULT_TITLE
        if "description" in sent:
            changes["description"] = body.description or ""
        if "fields" in sent:
            changes["fields"] = body.fields or []
        if "style" in sent:
            changes["style"] = body.style or FormStyle()
        if "isPublished" in sent and body.isPublished is not None:
            changes["isPublished"] = body.isPublished
        updated = form.model_copy(update=changes, deep=True)
        self._forms[form_id] = updated
        return updated.model_copy(deep=True)

    def delete_form(self, form_id: str) -> str:
        self._require(form_id)
        del self._forms[form_id]
        self._submissions = [sub for sub in self._submissions if sub["formId"] != form_id]
        return "Form deleted successfully"

    def submit(self, form_id: str, data: Dict[str, Any]) -> str:
        form = self._require(form_id)
        if not form.isPublished:
            raise ValidationError("Form is not published")
        self._submissions.append(
            {
                "id": str(self._next_submission),
                "formId": form_id,
                "data": copy.deepcopy(data),
                "submittedAt": _now(),
            }
        )
        self._next_submission += 1
        return "Form submitted successfully"

    def _submissions_for(self, form_id: str, newest_first: bool = True) -> List[Dict[str, Any]]:
        # stable sort keeps insertion order for equal timestamps
        subs = sorted(
            (sub for sub in self._submissions if sub["formId"] == form_id),
            key=lambda sub: sub["submittedAt"],
        )
        if newest_first:
            subs.reverse()
        return subs

    def list_submissions(self, form_id: str) -> List[FormSubmission]:
        return [FormSubmission.model_validate(sub) for sub in self._submissions_for(form_id)]

    def get_analytics(self, form_id: str) -> FormAnalytics:
        form = self._require(form_id)
        return compute_analytics(form, self._submissions_for(form_id, newest_first=False))

    def export(self, form_id: str) -> ExportOut:
        return ExportOut(data=self.list_submissions(form_id), exportedAt=_now())


def get_data_source(kind: Optional[str] = None, base_url: Optional[str] = None, session=None) -> FormDataSource:
    """Build the data source selected by configuration (``DATA_SOURCE``)."""
    kind = kind or settings.DATA_SOURCE
    if kind == "fixtures":
        logger.info("Using fixture data source (demo mode)")
        return FixtureDataSource()
    if kind == "api":
        return ApiDataSource(settings.API_BASE_URL if base_url is None else base_url, session=session)
    raise ValueError(f"Unknown data source: {kind}")
