"""Domain exceptions raised by the service layer.

Services raise these instead of ``HTTPException`` so they stay usable outside
a request.  ``main.py`` registers one handler that renders every
:class:`PortalError` as ``{"success": false, "error": "..."}`` with the
class's ``status_code``.
"""

from fastapi import status


class PortalError(Exception):
    """Base class for errors surfaced to the caller as a structured result."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(PortalError):
    """Input rejected: missing required field, short password, bad value."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationFailed(PortalError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(PortalError):
    """The acting user's role does not grant the requested capability."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFound(PortalError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(PortalError):
    """Duplicate account, form or field identifier."""

    status_code = status.HTTP_409_CONFLICT


class IntegrationError(PortalError):
    """A third-party call (OAuth provider, cloud sync backend) failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
