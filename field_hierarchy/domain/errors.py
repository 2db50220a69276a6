"""
Domain errors raised by the hierarchy engine and its persistence gateways.

Every error carries the HTTP status code the API layer reports it with, so
the middleware does not need to know about individual error types.
"""
from typing import Optional


class HierarchyError(Exception):
    """Base class for all engine failures."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        # Set by the coordinator when the error aborts a cascade delete
        self.failed_state = None


class NotFoundError(HierarchyError):
    """The mutated row or a referenced parent does not exist."""

    status_code = 404


class ValidationError(HierarchyError):
    """Caller-supplied data is missing, malformed or not allowed."""

    status_code = 400


class DuplicateKeyError(ValidationError):
    """A natural key collides with an existing row."""

    status_code = 409


class StoreError(HierarchyError):
    """The persistence gateway call itself failed."""

    status_code = 502
