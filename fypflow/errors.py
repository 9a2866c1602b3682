"""
Error taxonomy for the submission workflow.

Services raise these; the API layer maps them to HTTP responses.
"""

from typing import Any, Dict, Optional


class FypflowError(Exception):
    """Base class for user-facing workflow errors."""

    code: str = "ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ValidationError(FypflowError):
    """Malformed or missing required input (e.g. empty revision feedback)."""

    code = "VALIDATION_ERROR"


class BusinessRuleViolation(FypflowError):
    """A workflow rule forbids the requested action."""

    code = "BUSINESS_RULE_VIOLATION"


class NotFound(FypflowError):
    """Unknown submission, project, deadline or result."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            details={"resource": resource, "id": str(identifier)},
        )


class ConcurrencyConflict(FypflowError):
    """Lost a race for a version number or a state transition."""

    code = "CONCURRENCY_CONFLICT"
