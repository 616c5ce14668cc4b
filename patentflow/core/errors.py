"""
Error Taxonomy Module

Services raise these exceptions; the API layer maps them to HTTP responses
(see `patentflow.main`) and the HTML views render their message in place.
"""
from typing import Optional


class PatentFlowError(Exception):
    """Base class for all errors surfaced to users."""

    status_code = 500
    retryable = False

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"detail": self.message, "field": self.field, "retryable": self.retryable}


class ValidationFailed(PatentFlowError):
    """Malformed input or missing required value; nothing was written."""

    status_code = 422


class PermissionDenied(PatentFlowError):
    """The verified session lacks the role or assignment for the operation."""

    status_code = 403


class RecordNotFound(PatentFlowError):
    status_code = 404


class StoreUnavailable(PatentFlowError):
    """The record store rejected or failed the operation."""

    status_code = 503

    def __init__(self, message: str = "The record store is unavailable. Please try again.", field: Optional[str] = None):
        super().__init__(message, field)


class StoreTimeout(StoreUnavailable):
    retryable = True

    def __init__(self, message: str = "The record store timed out. Please retry.", field: Optional[str] = None):
        super().__init__(message, field)


class InsightFailed(PatentFlowError):
    """The hosted model failed or produced no output at all."""

    status_code = 502


class InsightTimeout(InsightFailed):
    retryable = True
