# backend/noticeboard/exceptions.py
"""Domain errors raised by the service layer and mapped to HTTP responses in main.py."""


class PortalError(Exception):
    """Base exception for the noticeboard service."""

    error_code: str = "PORTAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "error_code": self.error_code}


class NotFoundError(PortalError):
    """Item, attachment or stored file is absent, or the id is malformed."""

    error_code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(PortalError):
    """Visibility or ownership rules reject the actor."""

    error_code = "FORBIDDEN"
    status_code = 403


class ValidationFailedError(PortalError):
    """Malformed filter, paging or attachment removal input."""

    error_code = "VALIDATION_FAILED"
    status_code = 422


class UpstreamError(PortalError):
    """Stored-file service failure that cannot be tolerated."""

    error_code = "UPSTREAM_ERROR"
    status_code = 502
