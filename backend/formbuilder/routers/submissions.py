from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from typing import List, Literal

from formbuilder.analytics import compute_analytics
from formbuilder.database import FormStore, get_store, utcnow
from formbuilder.errors import NotFoundError, ValidationError
from formbuilder.export import build_csv, content_disposition, export_filename
from formbuilder.logging_config import get_logger
from formbuilder.schemas import ExportOut, Form, FormAnalytics, FormSubmission, MessageOut, SubmissionIn

logger = get_logger(__name__)

router = APIRouter(prefix="/api/forms", tags=["submissions"])


@router.post("/{form_id}/submit", response_model=MessageOut, status_code=201)
async def submit_form(form_id: str, submission: SubmissionIn, store: FormStore = Depends(get_store)):
    """Store one response to a published form. The answers are kept as sent."""
    form = await store.get_form(form_id)
    if not form:
        raise NotFoundError("Form not found")

    if not form.get("isPublished", False):
        raise ValidationError("Form is not published")

    saved = await store.insert_submission(form_id, submission.data)
    logger.info(f"Submission {saved['id']} saved for form {form_id}")
    return {"message": "Form submitted successfully"}


@router.get("/{form_id}/submissions", response_model=List[FormSubmission])
async def list_submissions(form_id: str, store: FormStore = Depends(get_store)):
    """Return submissions for a form (most recent first)."""
    return await store.list_submissions(form_id)


@router.get("/{form_id}/analytics", response_model=FormAnalytics)
async def get_analytics(form_id: str, store: FormStore = Depends(get_store)):
    form = await store.get_form(form_id)
    if not form:
        raise NotFoundError("Form not found")

    submissions = await store.list_submissions(form_id, newest_first=False)
    return compute_analytics(Form.model_validate(form), submissions)


@router.get("/{form_id}/export", response_model=ExportOut)
async def export_submissions(
    form_id: str,
    format: Literal["json", "csv"] = Query("json", description="json envelope or csv download"),
    store: FormStore = Depends(get_store),
):
    """Export all submissions of a form.

    ``json`` returns ``{format, data, exportedAt}``; ``csv`` returns a file
    download named after the form title.
    """
    if format == "csv":
        form = await store.get_form(form_id)
        if not form:
            raise NotFoundError("Form not found")
        form = Form.model_validate(form)
        submissions = await store.list_submissions(form_id)
        filename = export_filename(form.title, "csv")
        logger.info(f"CSV export of form {form_id}: {len(submissions)} rows")
        return Response(
            content=build_csv(form, submissions),
            media_type="text/csv",
            headers={"Content-Disposition": content_disposition(filename)},
        )

    submissions = await store.list_submissions(form_id)
    return {"format": "json", "data": submissions, "exportedAt": utcnow()}
