import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from formbuilder.config import settings
from formbuilder.errors import PersistenceError
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

client = AsyncIOMotorClient(settings.MONGO_URI)
db = client[settings.DB_NAME]

forms_collection = db[settings.FORMS_COLLECTION]
submissions_collection = db[settings.SUBMISSIONS_COLLECTION]

# Never expose Mongo's own _id for forms; the public id lives in "id"
FORM_PROJECTION = {"_id": 0}


def utcnow() -> datetime:
    """Naive UTC timestamp at millisecond precision, the same shape MongoDB hands back on reads."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def new_form_id() -> str:
    return str(int(time.time() * 1000))


def convert_objectid_to_str(doc: dict) -> dict:
    """Convert MongoDB ObjectId fields to strings for JSON serialization."""
    if doc is None:
        return doc

    result = {}
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            result[key] = str(value)
        elif isinstance(value, dict):
            result[key] = convert_objectid_to_str(value)
        elif isinstance(value, list):
            result[key] = [convert_objectid_to_str(item) if isinstance(item, dict) else (str(item) if isinstance(item, ObjectId) else item) for item in value]
        else:
            result[key] = value
    return result


def submission_from_doc(doc: dict) -> dict:
    doc = convert_objectid_to_str(doc)
    return {
        "id": doc.get("_id"),
        "formId": doc.get("formId"),
        "data": doc.get("data") or {},
        "submittedAt": doc.get("submittedAt"),
    }


@contextmanager
def store_errors(action: str):
    """Turn driver failures into PersistenceError, keeping the driver message as detail."""
    try:
        yield
    except PyMongoError as e:
        logger.error(f"Failed to {action}: {e}")
        raise PersistenceError(f"Failed to {action}", str(e)) from e


class FormStore:
    """Document access for forms and their submissions.

    Forms are addressed by their external ``id`` field. Submissions reference
    a form through ``formId`` only; nothing in the store enforces that link.
    """

    def __init__(self, forms, submissions):
        self.forms = forms
        self.submissions = submissions

    async def ping(self):
        with store_errors("reach the database"):
            await self.forms.database.client.admin.command("ping")

    async def ensure_indexes(self):
        with store_errors("create indexes"):
            await self.forms.create_index([("id", ASCENDING)], unique=True)
            await self.submissions.create_index([("formId", ASCENDING), ("submittedAt", DESCENDING)])

    async def list_forms(self) -> List[Dict[str, Any]]:
        forms = []
        with store_errors("fetch forms"):
            cursor = self.forms.find({}, FORM_PROJECTION, sort=[("updatedAt", DESCENDING), ("_id", DESCENDING)])
            async for doc in cursor:
                forms.append(doc)
        return forms

    async def get_form(self, form_id: str) -> Optional[Dict[str, Any]]:
        with store_errors("fetch form"):
            return await self.forms.find_one({"id": form_id}, FORM_PROJECTION)

    async def insert_form(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new form under a fresh timestamp id and return it."""
        doc = dict(doc)
        form_id = new_form_id()
        with store_errors("create form"):
            while True:
                # Two creates in the same millisecond get consecutive ids
                while await self.forms.find_one({"id": form_id}, {"_id": 1}):
                    form_id = str(int(form_id) + 1)
                doc["id"] = form_id
                try:
                    await self.forms.insert_one(doc)
                    break
                except DuplicateKeyError:
                    logger.warning(f"Form id {form_id} taken concurrently, retrying")
                    doc.pop("_id", None)
        doc.pop("_id", None)
        return doc

    async def update_form(self, form_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with store_errors("update form"):
            return await self.forms.find_one_and_update(
                {"id": form_id},
                {"$set": changes},
                projection=FORM_PROJECTION,
                return_document=ReturnDocument.AFTER,
            )

    async def delete_form(self, form_id: str) -> bool:
        with store_errors("delete form"):
            result = await self.forms.delete_one({"id": form_id})
        return result.deleted_count > 0

    async def delete_submissions(self, form_id: str) -> int:
        """Delete every submission of a form. Safe to repeat."""
        with store_errors("delete submissions"):
            result = await self.submissions.delete_many({"formId": form_id})
        return result.deleted_count

    async def insert_submission(self, form_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = {
            "formId": form_id,
            "data": data,
            "submittedAt": utcnow(),
        }
        with store_errors("submit form"):
            await self.submissions.insert_one(doc)
        return submission_from_doc(doc)

    async def list_submissions(self, form_id: str, newest_first: bool = True) -> List[Dict[str, Any]]:
        direction = DESCENDING if newest_first else ASCENDING
        submissions = []
        with store_errors("fetch submissions"):
            cursor = self.submissions.find(
                {"formId": form_id},
                sort=[("submittedAt", direction), ("_id", direction)],
            )
            async for doc in cursor:
                submissions.append(submission_from_doc(doc))
        return submissions


store = FormStore(forms_collection, submissions_collection)


def get_store() -> FormStore:
    return store
