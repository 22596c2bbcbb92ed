"""
Error Taxonomy

Every failure the order service reports to a client is one of these
exceptions. Each carries its HTTP status, a short human-readable
message and an optional machine-readable ``details`` payload; the
FastAPI exception handlers in ``order_api.main`` render them as
``{"error": ..., "details": ...}``.
"""

from typing import Any, Optional

from sqlalchemy.exc import IntegrityError


class OrderAPIError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"error": self.message, "details": self.details}


class Unauthenticated(OrderAPIError):
    status_code = 401
    default_message = "Unauthorized"


class ValidationFailed(OrderAPIError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(OrderAPIError):
    status_code = 404
    default_message = "Not found"


class Forbidden(OrderAPIError):
    status_code = 403
    default_message = "Forbidden"


class DuplicateEntry(OrderAPIError):
    status_code = 400
    default_message = "Duplicate entry found"


class RelatedRecordMissing(OrderAPIError):
    status_code = 400
    default_message = "Related record not found"


class ProcessingFailure(OrderAPIError):
    """
    Unexpected failure while handling a request.

    The original exception, when there is one, is kept on ``cause`` so
    the HTTP layer can attach a stack trace outside production.
    """

    status_code = 500
    default_message = "Failed to process request"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Any] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, details)
        self.cause = cause


# PostgreSQL SQLSTATE codes
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def translate_integrity_error(exc: IntegrityError) -> OrderAPIError:
    """
    Map a database constraint violation onto the error taxonomy.

    PostgreSQL drivers expose the SQLSTATE on the wrapped exception;
    SQLite only reports it in the message text.
    """
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    message = str(orig)
    details = {"message": message}

    if sqlstate == UNIQUE_VIOLATION or "UNIQUE constraint failed" in message:
        return DuplicateEntry(details=details)
    if sqlstate == FOREIGN_KEY_VIOLATION or "FOREIGN KEY constraint failed" in message:
        return RelatedRecordMissing(details=details)
    return ProcessingFailure("Failed to process order", details=details, cause=exc)
