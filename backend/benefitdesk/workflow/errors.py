"""Domain failures raised by the workflow, eligibility and availability code.

Every error carries a display-ready ``reason`` plus an HTTP-ish
``status_code`` and a stable ``code`` that the API layer renders.
"""
from __future__ import annotations

from typing import Optional, Sequence


class WorkflowError(Exception):
    status_code = 400
    code = "workflow_error"
    default_reason = "The request could not be processed"

    def __init__(self, reason: Optional[str] = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class UnknownRequestType(WorkflowError):
    code = "unknown_request_type"
    default_reason = "Invalid request type"


class PayloadMismatch(WorkflowError):
    status_code = 422
    code = "payload_mismatch"
    default_reason = "The request details do not match the request type"


class InvalidPayload(WorkflowError):
    status_code = 422
    code = "invalid_payload"


class AlreadyFinalized(WorkflowError):
    status_code = 409
    code = "already_finalized"
    default_reason = "Request is already finalized"


class NotYourStage(WorkflowError):
    status_code = 403
    code = "not_your_stage"
    default_reason = "You are not authorized to approve/reject at the current level"


class RoleMismatch(NotYourStage):
    code = "role_mismatch"
    default_reason = "Your approver role does not match the current approval stage"


class MissingRejectionReason(WorkflowError):
    code = "missing_rejection_reason"
    default_reason = "A detailed reason is required for rejection (at least 5 characters)"


class CancelNotAllowed(WorkflowError):
    status_code = 409
    code = "cancel_not_allowed"
    default_reason = "This request cannot be cancelled"


class PaymentNotAllowed(WorkflowError):
    status_code = 409
    code = "payment_not_allowed"
    default_reason = "Payments can only be recorded against approved loans"


class Overpayment(WorkflowError):
    status_code = 422
    code = "overpayment"
    default_reason = "The payment exceeds the outstanding loan balance"


class InvalidBookingRange(WorkflowError):
    status_code = 422
    code = "invalid_booking_range"
    default_reason = "Check-out must be after check-in"


class MaxStayExceeded(WorkflowError):
    status_code = 422
    code = "max_stay_exceeded"
    default_reason = "Maximum stay is 5 days"


class BookingUnavailable(WorkflowError):
    status_code = 409
    code = "booking_unavailable"
    default_reason = (
        "Sorry, this property is unavailable at the specified time. It might be already booked "
        "or within the 3-hour cleaning period after a previous checkout."
    )

    def __init__(self, reason: Optional[str] = None, conflicts: Sequence[object] = ()) -> None:
        super().__init__(reason)
        self.conflicts = list(conflicts)


class NotEligible(WorkflowError):
    status_code = 403
    code = "not_eligible"


class MalformedProfile(WorkflowError):
    status_code = 500
    code = "malformed_profile"
    default_reason = "Employee profile data is incomplete or invalid"


class ConcurrentUpdate(WorkflowError):
    status_code = 409
    code = "concurrent_update"
    default_reason = "The request was modified by someone else; please reload and try again"


class ChainIntegrityError(WorkflowError):
    """Stored chain violates its structural invariants; never auto-repaired."""

    status_code = 500
    code = "chain_integrity"
    default_reason = "Approval chain is corrupted"


class RequestNotFound(WorkflowError):
    status_code = 404
    code = "not_found"
    default_reason = "Request not found"


class EmployeeNotFound(WorkflowError):
    status_code = 404
    code = "employee_not_found"
    default_reason = "Employee not found"
