"""
Domain error taxonomy.

Services raise these; the handlers registered in main.py turn them into
JSON responses so the frontend can tell the three kinds of failure apart:

- ValidationError: show inline next to the offending field (422)
- ConflictError: show with an explicit override / top-up action (409)
- InfrastructureError: already retried with backoff, surface to the user (503)
"""

from typing import Any, Optional


class SalonbookError(Exception):
    """Base class for errors raised by the service layer"""

    status_code = 500
    error = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "detail": self.detail}


class ValidationError(SalonbookError):
    status_code = 422
    error = "validation"

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(detail)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["field"] = self.field
        return body


class NotFoundError(SalonbookError):
    status_code = 404
    error = "not_found"


class ConflictError(SalonbookError):
    status_code = 409
    error = "conflict"
    action: Optional[str] = None

    def __init__(self, detail: str, action: Optional[str] = None):
        super().__init__(detail)
        if action is not None:
            self.action = action

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["action"] = self.action
        return body


class AppointmentConflictError(ConflictError):
    """The proposed window overlaps other bookings of the same professional"""

    error = "appointment_conflict"
    action = "force"

    def __init__(self, conflicts: list[dict], proposed_start, proposed_end):
        super().__init__(
            f"Time slot overlaps {len(conflicts)} existing appointment(s). "
            "Resend with force=true to book anyway."
        )
        self.conflicts = conflicts
        self.proposed_start = proposed_start
        self.proposed_end = proposed_end

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["conflicting_appointments"] = self.conflicts
        body["proposed_start"] = self.proposed_start.isoformat()
        body["proposed_end"] = self.proposed_end.isoformat()
        return body


class InfrastructureError(SalonbookError):
    """Database or upstream provider failure that survived the retry policy"""

    status_code = 503
    error = "infrastructure"
