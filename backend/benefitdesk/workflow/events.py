from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import Field

from benefitdesk.models.enums import RequestType
from benefitdesk.schemas.base import FrozenModel


class RequestSubmitted(FrozenModel):
    name: Literal["request_submitted"] = "request_submitted"
    request_id: str
    requester_id: str
    request_type: RequestType
    active_level: int


class StageAdvanced(FrozenModel):
    name: Literal["stage_advanced"] = "stage_advanced"
    request_id: str
    request_type: RequestType
    new_active_level: int


class RequestApproved(FrozenModel):
    name: Literal["request_approved"] = "request_approved"
    request_id: str
    requester_id: str
    request_type: RequestType


class RequestRejected(FrozenModel):
    name: Literal["request_rejected"] = "request_rejected"
    request_id: str
    requester_id: str
    request_type: RequestType
    reason: str


class LoanPaymentRecorded(FrozenModel):
    name: Literal["loan_payment_recorded"] = "loan_payment_recorded"
    request_id: str
    requester_id: str
    request_type: RequestType
    transaction_id: str
    amount: Decimal
    balance: Decimal


class LoanCompleted(FrozenModel):
    name: Literal["loan_completed"] = "loan_completed"
    request_id: str
    requester_id: str
    request_type: RequestType


class BookingCancelled(FrozenModel):
    name: Literal["booking_cancelled"] = "booking_cancelled"
    request_id: str
    requester_id: str
    reason: Optional[str] = None


DomainEvent = Annotated[
    Union[
        RequestSubmitted,
        StageAdvanced,
        RequestApproved,
        RequestRejected,
        BookingCancelled,
        LoanPaymentRecorded,
        LoanCompleted,
    ],
    Field(discriminator="name"),
]
