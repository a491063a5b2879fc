"""
Errors raised by the portal client.

``ValidationError`` is shared with the service (``core.exceptions``): input
the portal rejects before sending and input the service rejects with a 422
surface as the same type.
"""

from typing import Optional

from investor_portal.core.exceptions import ValidationError

__all__ = [
    "ActionInProgressError",
    "ConflictError",
    "NetworkError",
    "PortalError",
    "ValidationError",
]


class PortalError(Exception):
    """Base class for client-side failures talking to the portal API."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NetworkError(PortalError):
    """Transport failure, non-2xx response or malformed response body.

    The caller should suggest a retry; local state is left as it was.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConflictError(NetworkError):
    """The service refused a transition because the record is no longer pending."""

    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class ActionInProgressError(PortalError):
    """An action on the same request (or form) is already awaiting a response."""
