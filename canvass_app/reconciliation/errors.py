"""Error taxonomy for the reconciliation engine.

Every error carries the HTTP status and a stable ``code`` that the blueprints
return in the JSON body, so routes never translate individual exception types.
"""

from __future__ import annotations

from http import HTTPStatus


class ReconciliationError(Exception):
    """Base exception for reconciliation failures."""

    http_status: int = HTTPStatus.BAD_REQUEST
    code: str = "ReconciliationError"

    def __init__(self, message: str, **details: object) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, object]:
        body: dict[str, object] = {"error": self.message, "code": self.code}
        body.update(self.details)
        return body


class ValidationError(ReconciliationError):
    """Missing or malformed input."""

    code = "ValidationError"


class NotFound(ReconciliationError):
    """Unknown leader, voter, sponsor or assignment."""

    http_status = HTTPStatus.NOT_FOUND
    code = "NotFound"


class ExactDuplicate(ReconciliationError):
    """Identical resubmission of an already processed capture."""

    code = "ExactDuplicate"

    def __init__(self, message: str, **details: object) -> None:
        details.setdefault("tipo_incidencia", "EXACT_DUPLICATE")
        super().__init__(message, **details)


class AlreadyAssigned(ReconciliationError):
    code = "AlreadyAssigned"


class NotAssigned(ReconciliationError):
    http_status = HTTPStatus.NOT_FOUND
    code = "NotAssigned"


class Conflict(ReconciliationError):
    """Rename collides with an existing identifier."""

    code = "Conflict"


class Undeletable(ReconciliationError):
    """Entity still has protective dependents."""

    code = "Undeletable"


class StorageError(ReconciliationError):
    """Unexpected persistence failure."""

    http_status = HTTPStatus.INTERNAL_SERVER_ERROR
    code = "StorageError"
