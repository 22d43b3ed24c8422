"""Errors raised by the admin entry points and mapped to HTTP responses."""

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for request-level failures."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthorizedError(ServiceError):
    """The privileged-operation gate rejected the request."""

    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized request"):
        super().__init__(message)


class NotFoundError(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class AlreadyInProgressError(ServiceError):
    status_code = 409
    code = "ALREADY_IN_PROGRESS"


class ThrottledError(ServiceError):
    """A requester exceeded a cooldown or daily cap."""

    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str, reason: str, retry_after_seconds: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.retry_after_seconds = retry_after_seconds
