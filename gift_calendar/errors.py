"""Service errors raised by the gift calendar and rendered as JSON by the blueprint."""

from __future__ import annotations

from typing import Any, Dict, Optional


class CalendarServiceError(Exception):
    """Raised when a gift calendar operation fails."""

    kind = "error"
    default_status = 400
    default_code = "error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = status_code or self.default_status
        self.payload = {
            "success": False,
            "error": self.code,
            "kind": self.kind,
            "message": message,
        }
        if payload:
            self.payload.update(payload)


class Unauthorized(CalendarServiceError):
    kind = "unauthorized"
    default_status = 401
    default_code = "unauthorized"


class Forbidden(CalendarServiceError):
    kind = "forbidden"
    default_status = 403
    default_code = "forbidden"


class NotFound(CalendarServiceError):
    kind = "not_found"
    default_status = 404
    default_code = "not_found"


class InvalidInput(CalendarServiceError):
    kind = "invalid_input"
    default_status = 400
    default_code = "invalid_input"


class Conflict(CalendarServiceError):
    kind = "conflict"
    default_status = 409
    default_code = "conflict"


class DependencyFailure(CalendarServiceError):
    kind = "dependency_failure"
    default_status = 503
    default_code = "dependency_failure"
