"""
Core Exceptions
================

Error taxonomy for the inbox console.

Workflow rules raise `DomainException` subclasses, bad input raises
`ValidationException` and the Admin API client raises
`ExternalServiceException` subclasses. The HTTP layer maps each family onto a
status code in one place.
"""

from typing import Any, Optional


class ApplicationException(Exception):
    """Root of every error the console raises on purpose."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """A workflow rule refused the action."""


class ValidationException(ApplicationException):
    """User input failed a local check; `details` names the field."""


class PermissionDeniedException(DomainException):
    """Actor is not allowed to run a workflow action on an item."""

    def __init__(
        self,
        item_id: str,
        action: str,
        message: str = "You do not have permission to act on this item.",
        details: Optional[dict] = None
    ):
        self.item_id = item_id
        self.action = action
        super().__init__(message, details or {"item_id": item_id, "action": action})


class ConflictException(DomainException):
    """Action is not possible in the item's current state."""

    def __init__(
        self,
        item_id: str,
        action: str,
        message: str,
        conflict_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.item_id = item_id
        self.action = action
        self.conflict_id = conflict_id
        super().__init__(message, details or {"item_id": item_id, "action": action})


class ResourceNotFoundException(ApplicationException):
    """Lookup by id found nothing."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ExternalServiceException(ApplicationException):
    """A downstream service misbehaved."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class InboxAPIException(ExternalServiceException):
    """Exception for Admin API transport failures (no usable HTTP response)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Inbox API", message, details)


class InboxAPIResponseError(ExternalServiceException):
    """Admin API answered with a non-2xx status. Payload is kept raw."""

    def __init__(self, status_code: int, payload: Any = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(
            "Inbox API",
            f"request failed with status {status_code}",
            {"status_code": status_code}
        )
