"""Domain errors raised by services and turned into JSON responses in main.py."""

from __future__ import annotations

from typing import Any


class DeliveryFlowError(Exception):
    status_code = 400
    code = "delivery_flow_error"
    default_message = "The request could not be processed."

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def payload(self) -> dict[str, Any]:
        return {"status": "error", "message": self.code, "detail": self.message, **self.extra}


class NotFound(DeliveryFlowError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class NotAuthorized(DeliveryFlowError):
    status_code = 403
    code = "not_authorized"
    default_message = "Not authorized."


class AccessDenied(DeliveryFlowError):
    status_code = 401
    code = "access_denied"
    default_message = "Driver ID is not registered as an active driver for this company."


class FeedbackRequired(DeliveryFlowError):
    status_code = 403
    code = "feedback_required"
    default_message = "Please submit feedback for your previous delivery before looking up a new address."

    def __init__(self, pending_lookup_id: int, message: str | None = None) -> None:
        self.pending_lookup_id = pending_lookup_id
        super().__init__(message, requiresFeedback=True, pendingLookupId=pending_lookup_id)


class AlreadyCompleted(DeliveryFlowError):
    status_code = 409
    code = "already_completed"
    default_message = "Feedback for this delivery has already been recorded."


class AlternateInProgress(DeliveryFlowError):
    status_code = 409
    code = "alternate_in_progress"
    default_message = "An alternate delivery is in progress; complete it instead."


class NoAlternateLocations(DeliveryFlowError):
    code = "no_alternate_locations"
    default_message = "This address has no fallback contacts."


class FeedbackValidationError(DeliveryFlowError):
    code = "validation_error"
    default_message = "Invalid feedback."


class PrimaryAddressMissingLocation(DeliveryFlowError):
    code = "primary_address_missing_location"
    default_message = "Primary address does not have location data."


class SchedulingRequired(DeliveryFlowError):
    code = "scheduling_required"
    default_message = "Fallback locations beyond the free radius require a scheduled delivery."


class DuplicateDriverId(DeliveryFlowError):
    status_code = 409
    code = "duplicate_driver_id"
    default_message = "This driver ID is already registered for the company."
