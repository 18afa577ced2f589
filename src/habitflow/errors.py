"""Error taxonomy shared by services and the HTTP layer."""

from __future__ import annotations

from typing import Any


class HabitFlowError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(HabitFlowError):
    """Malformed input; rejected before any computation or write."""

    status_code = 400
    default_message = "Invalid request"


class Unauthorized(HabitFlowError):
    status_code = 401
    default_message = "Invalid token"


class NotFound(HabitFlowError):
    """Resource missing or owned by someone else (never distinguished)."""

    status_code = 404
    default_message = "Not found or access denied"


class Conflict(HabitFlowError):
    status_code = 409
    default_message = "Habit already logged for this date"


class TransportError(HabitFlowError):
    """Outbound email delivery failed."""

    status_code = 502
    default_message = "Email sending failed"


__all__ = [
    "Conflict",
    "HabitFlowError",
    "NotFound",
    "TransportError",
    "Unauthorized",
    "ValidationError",
]
