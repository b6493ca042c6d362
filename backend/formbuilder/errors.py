"""Error types shared by the store, the routers and the client."""

from typing import Optional


class FormBuilderError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"detail": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(FormBuilderError):
    """Malformed input (e.g. fields not an array)."""

    status_code = 400


class NotFoundError(FormBuilderError):
    status_code = 404


class PersistenceError(FormBuilderError):
    """The document store is unreachable or rejected a write."""

    status_code = 500


class DataSourceError(FormBuilderError):
    """A client-side data source could not complete a request."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message, details)
        self.status_code = status_code
