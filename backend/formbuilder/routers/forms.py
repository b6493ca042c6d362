from fastapi import APIRouter, Depends
from typing import Any, Dict, List, Optional

from formbuilder.database import FormStore, get_store, utcnow
from formbuilder.errors import NotFoundError
from formbuilder.logging_config import get_logger
from formbuilder.schemas import DEFAULT_TITLE, Form, FormCreate, FormField, FormStyle, FormUpdate, MessageOut

logger = get_logger(__name__)

router = APIRouter(prefix="/api/forms", tags=["forms"])


def _fields_to_docs(fields: Optional[List[FormField]]) -> List[Dict[str, Any]]:
    return [field.model_dump(exclude_none=True) for field in fields or []]


def _style_to_doc(style: Optional[FormStyle]) -> Dict[str, Any]:
    return (style or FormStyle()).model_dump()


@router.get("", response_model=List[Form])
async def list_forms(store: FormStore = Depends(get_store)):
    """All forms, most recently updated first."""
    return await store.list_forms()


@router.get("/{form_id}", response_model=Form)
async def get_form(form_id: str, store: FormStore = Depends(get_store)):
    form = await store.get_form(form_id)
    if not form:
        raise NotFoundError("Form not found")
    return form


@router.post("", response_model=Form, status_code=201)
async def create_form(payload: FormCreate, store: FormStore = Depends(get_store)):
    """Create a draft form. New forms are never published, whatever the body says."""
    now = utcnow()
    doc = {
        "title": payload.title or DEFAULT_TITLE,
        "description": payload.description or "",
        "fields": _fields_to_docs(payload.fields),
        "style": _style_to_doc(payload.style),
        "isPublished": False,
        "createdAt": now,
        "updatedAt": now,
    }
    form = await store.insert_form(doc)
    logger.info(f"Form created: {form['id']} ({len(doc['fields'])} fields)")
    return form


@router.put("/{form_id}", response_model=Form)
async def update_form(form_id: str, payload: FormUpdate, store: FormStore = Depends(get_store)):
    """Replace the parts of a form present in the body.

    Keys missing from the body keep their stored value; ``fields: null``
    clears the field list.
    """
    sent = payload.model_fields_set
    changes: Dict[str, Any] = {}
    if "title" in sent:
        changes["title"] = payload.title or DEFAULT_TITLE
    if "description" in sent:
        changes["description"] = payload.description or ""
    if "fields" in sent:
        changes["fields"] = _fields_to_docs(payload.fields)
    if "style" in sent:
        changes["style"] = _style_to_doc(payload.style)
    if "isPublished" in sent and payload.isPublished is not None:
        changes["isPublished"] = payload.isPublished
    changes["updatedAt"] = utcnow()

    form = await store.update_form(form_id, changes)
    if not form:
        raise NotFoundError("Form not found")

    logger.info(f"Form updated: {form_id} (published={form.get('isPublished', False)})")
    return form


@router.delete("/{form_id}", response_model=MessageOut)
async def delete_form(form_id: str, store: FormStore = Depends(get_store)):
    """Delete a form, then all of its submissions.

    The two steps are not atomic. Submissions left behind by an interrupted
    delete are removed when the delete is repeated, even though the form
    itself is already gone and the repeat answers 404.
    """
    deleted = await store.delete_form(form_id)
    removed = await store.delete_submissions(form_id)

    if not deleted:
        if removed:
            logger.warning(f"Removed {removed} orphaned submissions of deleted form {form_id}")
        raise NotFoundError("Form not found")

    logger.info(f"Form deleted: {form_id} ({removed} submissions removed)")
    return {"message": "Form deleted successfully"}
