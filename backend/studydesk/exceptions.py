"""Domain exceptions raised by StudyDesk services.

Every exception carries the HTTP status it maps to and a message key from
:mod:`studydesk.utils.messages`. When the backing store supplied its own
error text, ``message`` holds it and is passed through to the client.
"""

from __future__ import annotations


class StudyDeskError(Exception):
    """Base class for errors rendered as ``{"error": ...}`` responses."""

    status_code: int = 500
    message_key: str = "error.upstream"

    def __init__(
        self, message: str | None = None, *, message_key: str | None = None, **params: str
    ) -> None:
        if message_key is not None:
            self.message_key = message_key
        self.message = message
        self.params = params
        super().__init__(message or self.message_key)


class Unauthenticated(StudyDeskError):
    status_code = 401
    message_key = "auth.required"


class Forbidden(StudyDeskError):
    status_code = 403
    message_key = "auth.forbidden"


class NotFound(StudyDeskError):
    status_code = 404
    message_key = "note.not_found"


class ValidationFailure(StudyDeskError):
    status_code = 400
    message_key = "note.update_fields_required"


class UpstreamFailure(StudyDeskError):
    """The backing store rejected a read or write."""

    status_code = 500
    message_key = "error.upstream"


class OrderingError(UpstreamFailure):
    """A rank write failed part-way through a move or reorder.

    Attributes:
        applied: ids whose rank write already succeeded before the failure.
            They are not reverted; callers re-fetch to observe the real order.
    """

    message_key = "order.failed"

    def __init__(self, message: str | None = None, *, applied: list[str] | None = None) -> None:
        super().__init__(message)
        self.applied = list(applied or [])


class StorageError(UpstreamFailure):
    """Raised when the object storage service rejects a request."""

    message_key = "storage.failed"

    def __init__(self, path: str, message: str | None = None) -> None:
        super().__init__(message or f"Storage request failed for {path}")
        self.path = path


class PartialUpdateError(UpstreamFailure):
    """One or more independent steps of a note update failed.

    Attributes:
        errors: step name -> error message, in the order the steps ran.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        message = "; ".join(errors.values()) or None
        super().__init__(message)
        self.errors = dict(errors)
