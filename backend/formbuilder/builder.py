"""Editing and answering state behind the builder, form view and analytics screens.

``BuilderSession`` holds the form being composed, which field is selected and
which tab is showing. Nothing here is persisted until ``save``/``publish``.
``validate_answers`` is the check the public form view runs before posting a
submission; the API stores answers without validating them.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from formbuilder.analytics import is_response
from formbuilder.client import FormDataSource
from formbuilder.errors import NotFoundError, ValidationError
from formbuilder.logging_config import get_logger
from formbuilder.schemas import (
    CHOICE_FIELD_TYPES,
    DEFAULT_TITLE,
    FIELD_TYPES,
    TEXT_FIELD_TYPES,
    Form,
    FormField,
    FormStyle,
)

logger = get_logger(__name__)

BUILDER_TABS = ("build", "preview", "settings")
ANALYTICS_TABS = ("overview", "responses", "export")


class TabState:
    """One of a fixed set of views; exactly one is active."""

    def __init__(self, tabs, active: Optional[str] = None):
        self.tabs = tuple(tabs)
        self.active = active or self.tabs[0]

    def select(self, tab: str):
        if tab not in self.tabs:
            raise ValueError(f"Unknown tab: {tab}")
        self.active = tab


def move_item(items: List[Any], old_index: int, new_index: int) -> List[Any]:
    """Return a copy with the item at old_index moved to new_index."""
    moved = list(items)
    moved.insert(new_index, moved.pop(old_index))
    return moved


def new_field(field_type: str, field_id: str) -> FormField:
    """A field as the palette creates it."""
    if field_type not in FIELD_TYPES:
        raise ValidationError(f"Unknown field type: {field_type}")
    return FormField(
        id=field_id,
        type=field_type,
        label=f"{field_type.capitalize()} Field",
        placeholder="Enter your response..." if field_type == "textarea" else f"Enter {field_type}...",
        required=False,
        options=["Option 1", "Option 2"] if field_type in CHOICE_FIELD_TYPES else None,
    )


class BuilderSession:
    """
    A form being composed in the builder.

    Field selection moves none-selected -> field-selected -> (edited | deleted);
    deleting the selected field drops back to none-selected.
    """

    def __init__(self, source: FormDataSource, form: Optional[Form] = None):
        self.source = source
        self.tabs = TabState(BUILDER_TABS)
        self.selected_field: Optional[str] = None
        if form is None:
            self.form = self._blank_form()
            self.saved = False
        else:
            self.form = form
            self.saved = True

    @classmethod
    def open(cls, source: FormDataSource, form_id: str) -> "BuilderSession":
        return cls(source, source.get_form(form_id))

    @staticmethod
    def _blank_form() -> Form:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        return Form(id="", title=DEFAULT_TITLE, createdAt=now, updatedAt=now)

    def _next_field_id(self) -> str:
        field_id = int(time.time() * 1000)
        existing = set(self.form.field_ids())
        while str(field_id) in existing:
            field_id += 1
        return str(field_id)

    def _index_of(self, field_id: str) -> int:
        for index, field in enumerate(self.form.fields):
            if field.id == field_id:
                return index
        raise NotFoundError(f"Field not found: {field_id}")

    def _set_fields(self, fields: List[FormField]):
        self.form = self.form.model_copy(update={"fields": fields})

    def add_field(self, field_type: str) -> FormField:
        field = new_field(field_type, self._next_field_id())
        self._set_fields(self.form.fields + [field])
        self.selected_field = field.id
        return field

    def select_field(self, field_id: Optional[str]):
        if field_id is not None:
            self._index_of(field_id)
        self.selected_field = field_id

    def update_field(self, field_id: str, **updates) -> FormField:
        """Apply updates to one field. The id is never changed."""
        index = self._index_of(field_id)
        updates.pop("id", None)
        merged = self.form.fields[index].model_dump()
        merged.update(updates)
        field = FormField.model_validate(merged)
        fields = list(self.form.fields)
        fields[index] = field
        self._set_fields(fields)
        return field

    def delete_field(self, field_id: str):
        index = self._index_of(field_id)
        self._set_fields(self.form.fields[:index] + self.form.fields[index + 1:])
        if self.selected_field == field_id:
            self.selected_field = None

    def move_field(self, active_id: str, over_id: Optional[str]) -> bool:
        """Drop active_id where over_id is. Returns False when nothing moved."""
        if over_id is None or active_id == over_id:
            return False
        ids = self.form.field_ids()
        if active_id not in ids or over_id not in ids:
            return False
        self._set_fields(move_item(self.form.fields, ids.index(active_id), ids.index(over_id)))
        return True

    def set_details(self, title: Optional[str] = None, description: Optional[str] = None):
        updates = {}
        if title is not None:
            updates["title"] = title
        if description is not None:
            updates["description"] = description
        self.form = self.form.model_copy(update=updates)

    def set_style(self, **style):
        merged = self.form.style.model_dump()
        merged.update(style)
        self.form = self.form.model_copy(update={"style": FormStyle.model_validate(merged)})

    def payload(self) -> Dict[str, Any]:
        return {
            "title": self.form.title,
            "description": self.form.description,
            "fields": [field.model_dump(exclude_none=True) for field in self.form.fields],
            "style": self.form.style.model_dump(),
            "isPublished": self.form.isPublished,
        }

    def save(self) -> Form:
        """Create the form on first save, replace it afterwards."""
        payload = self.payload()
        if not self.saved:
            created = self.source.create_form(payload)
            if self.form.isPublished:
                # new forms always start as drafts
                created = self.source.update_form(created.id, {"isPublished": True})
            self.form = created
            self.saved = True
        else:
            self.form = self.source.update_form(self.form.id, payload)
        logger.info(f"Saved form {self.form.id} with {len(self.form.fields)} fields")
        return self.form

    def publish(self) -> Form:
        self.form = self.form.model_copy(update={"isPublished": True})
        return self.save()


def _message(field: FormField, default: str) -> str:
    if field.validation and field.validation.message:
        return field.validation.message
    return default


def validate_answers(form: Form, data: Mapping[str, Any]) -> Dict[str, str]:
    """
    Check answers the way the public form view does before submitting.

    Args:
        form: The published form
        data: Answers keyed by field id

    Returns:
        {field_id: error message}; empty when the answers can be submitted
    """
    errors: Dict[str, str] = {}
    for field in form.fields:
        answered = is_response(data, field.id)
        if field.type == "checkbox" and field.required and data.get(field.id) is not True:
            errors[field.id] = _message(field, f"{field.label} is required")
            continue
        if not answered:
            if field.required:
                errors[field.id] = _message(field, f"{field.label} is required")
            continue

        value = data[field.id]
        rules = field.validation

        if field.type == "email":
            try:
                validate_email(str(value), check_deliverability=False)
            except EmailNotValidError:
                errors[field.id] = _message(field, f"{field.label} must be a valid email address")
                continue

        if field.type == "number":
            if isinstance(value, bool):
                errors[field.id] = _message(field, f"{field.label} must be a number")
                continue
            try:
                number = float(value)
            except (TypeError, ValueError):
                errors[field.id] = _message(field, f"{field.label} must be a number")
                continue
            if rules and rules.min is not None and number < rules.min:
                errors[field.id] = _message(field, f"{field.label} must be at least {rules.min:g}")
                continue
            if rules and rules.max is not None and number > rules.max:
                errors[field.id] = _message(field, f"{field.label} must be at most {rules.max:g}")
                continue

        if field.type in CHOICE_FIELD_TYPES and value not in (field.options or []):
            errors[field.id] = _message(field, f"{field.label} must be one of the listed options")
            continue

        if field.type in TEXT_FIELD_TYPES and rules and rules.pattern:
            try:
                matched = re.fullmatch(rules.pattern, str(value))
            except re.error:
                logger.warning(f"Field {field.id} of form {form.id} has an invalid pattern: {rules.pattern}")
                errors[field.id] = _message(field, f"{field.label} has an invalid validation pattern")
                continue
            if not matched:
                errors[field.id] = _message(field, f"{field.label} has an invalid format")
    return errors


def submit_answers(source: FormDataSource, form: Form, data: Mapping[str, Any]) -> str:
    """Validate, then post the answers. Raises ValidationError listing the failing fields."""
    errors = validate_answers(form, data)
    if errors:
        raise ValidationError("Please correct the highlighted fields", details="; ".join(f"{k}: {v}" for k, v in errors.items()))
    return source.submit(form.id, dict(data))
