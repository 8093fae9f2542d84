"""Exception taxonomy.

Every error raised across a component boundary derives from
``ComplianceError`` and carries the HTTP status the sidecar reports.
Missing or invalid extracted fields are not errors: the evaluator turns
them into non_compliant checklist items.
"""

from __future__ import annotations


class ComplianceError(Exception):
    """Base class for all contract-compliance errors."""

    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidDocumentError(ComplianceError):
    """Unsupported type, oversize upload, bad encoding or empty text."""

    status_code = 400


class NotFoundError(ComplianceError):
    status_code = 404


class LLMError(ComplianceError):
    """The text-generation service failed."""

    status_code = 500


class LLMUnavailableError(LLMError):
    """The text-generation service could not be reached."""

    status_code = 503


class LLMResponseError(LLMError):
    """The text-generation service answered with something unusable."""

    status_code = 502
