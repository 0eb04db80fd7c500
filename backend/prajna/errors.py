"""
Domain exceptions.

Services raise these; the handlers registered in prajna.main turn them into
JSON error responses with the status code carried by each class.
"""

from typing import List, Optional


class PrajnaError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    error_type = "server_error"

    def __init__(self, message: str, details: Optional[List[dict]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict:
        body = {"error": self.message, "type": self.error_type}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PrajnaError):
    """Malformed or missing request fields."""
    status_code = 400
    error_type = "validation_error"


class MissingFieldError(ValidationError):
    """A required identifier was absent or empty after schema parsing."""

    def __init__(self, field: str):
        super().__init__(
            "{} is required".format(field),
            details=[{"loc": [field], "msg": "field required"}]
        )
        self.field = field


class NotFoundError(PrajnaError):
    status_code = 404
    error_type = "not_found_error"


class ConflictError(PrajnaError):
    """The exam is not in a state that allows the requested transition."""
    status_code = 409
    error_type = "conflict_error"


class ExamNotReadyError(ConflictError):
    error_type = "exam_not_ready"


class ExternalServiceError(PrajnaError):
    """The AI provider failed. Recovered locally inside the scoring loop."""
    status_code = 502
    error_type = "external_service_error"


class PersistenceError(PrajnaError):
    """A datastore read or write failed. Not retried."""
    status_code = 500
    error_type = "persistence_error"
