"""Service-layer exceptions.

Each carries the machine-readable ``reason`` and HTTP status the API
handler in main.py renders as ``{"error": reason, "detail": message}``.
Services raise these; routers never build error responses by hand.
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code = 500
    reason = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProgressValidationError(ServiceError):
    """A required identifier is missing or malformed."""

    status_code = 400
    reason = "validation_error"


class AccessDeniedError(ServiceError):
    """Caller may not see or act on this course, student, or quiz."""

    status_code = 403
    reason = "access_denied"


class NotFoundError(ServiceError):
    status_code = 404
    reason = "not_found"


class BusinessRuleError(ServiceError):
    """E.g. attempts exhausted, or submitting with no active attempt."""

    status_code = 400
    reason = "business_rule"
