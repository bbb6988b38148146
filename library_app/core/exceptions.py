"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these; the application renders them as
``{"success": false, "error": <message>, "kind": <kind>}``.
"""

from fastapi import status


class LibraryError(Exception):
    """Base class for every failure a caller is expected to see."""

    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "kind": self.kind}


class ValidationError(LibraryError):
    """Missing or malformed input. Nothing was mutated."""

    kind = "validation"
    status_code = status.HTTP_400_BAD_REQUEST


class BusinessRuleError(LibraryError):
    """Eligibility failures, duplicate requests, wrong book state."""

    kind = "business_rule"
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(LibraryError):
    """Lost a race at commit time, or a uniqueness clash."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class NotFoundError(LibraryError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(LibraryError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class InternalError(LibraryError):
    """Unexpected persistence failure. Details are logged, never returned."""
