from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Sequence, Union

from pydantic import Field, field_validator, model_validator

from benefitdesk.models.enums import (
    ApproverRole,
    ClaimMethod,
    Decision,
    PatientType,
    RequestStatus,
    RequestType,
    StageStatus,
)
from benefitdesk.schemas.base import FrozenModel, ORMModel


class AttachmentRef(FrozenModel):
    """Pointer to a file held by the attachment store."""

    storage_key: str = Field(min_length=1)
    filename: str
    content_type: Optional[str] = None


class SalaryLoanPayload(FrozenModel):
    kind: Literal["salary_loan"] = "salary_loan"
    amount: Decimal = Field(gt=0)
    purpose: str = Field(min_length=1)
    repayment_term_months: Literal[6, 12, 18, 24] = 12
    comaker_attachment: Optional[AttachmentRef] = None


class CarLoanPayload(FrozenModel):
    kind: Literal["car_loan"] = "car_loan"
    amount: Decimal = Field(gt=0)
    car_make: str = Field(min_length=1)
    car_model: str = Field(min_length=1)
    model_year: int = Field(ge=1990)
    purpose: Optional[str] = None
    attachments: tuple[AttachmentRef, ...] = ()


class HousingLoanPayload(FrozenModel):
    kind: Literal["housing_loan"] = "housing_loan"
    amount: Decimal = Field(gt=0)
    property_type: str = Field(min_length=1)
    property_address: str = Field(min_length=1)
    purpose: Optional[str] = None
    attachments: tuple[AttachmentRef, ...] = ()


class MedicalReimbursementPayload(FrozenModel):
    kind: Literal["medical_reimbursement"] = "medical_reimbursement"
    patient_type: PatientType
    admission_date: date
    discharge_date: Optional[date] = None
    total_amount: Decimal = Field(gt=0)
    claim_method: ClaimMethod
    attachments: tuple[AttachmentRef, ...] = ()

    @model_validator(mode="after")
    def validate_dates(self) -> "MedicalReimbursementPayload":
        if self.patient_type == PatientType.INPATIENT and self.discharge_date is None:
            raise ValueError("Discharge date is required for in-patient claims")
        if self.discharge_date is not None and self.discharge_date < self.admission_date:
            raise ValueError("Discharge date must be after admission date")
        return self


class MedicalLOAPayload(FrozenModel):
    kind: Literal["medical_loa"] = "medical_loa"
    hospital_id: str = Field(min_length=1)
    hospital_name: str = Field(min_length=1)
    visit_date: date
    reason_type: str = Field(min_length=1)
    patient_complaint: str = Field(min_length=1)
    preferred_doctor: Optional[str] = None


class HouseBookingPayload(FrozenModel):
    kind: Literal["house_booking"] = "house_booking"
    property_id: str = Field(min_length=1)
    check_in: datetime
    check_out: datetime
    guests: int = Field(ge=1)
    nature_of_stay: str = Field(min_length=1)
    reason_for_use: str = Field(min_length=1)

    @field_validator("check_in", "check_out")
    @classmethod
    def require_wall_clock(cls, value: datetime) -> datetime:
        # Staff-house times are local wall-clock values.
        if value.tzinfo is not None:
            raise ValueError("Check-in and check-out must be local times without a UTC offset")
        return value


RequestPayload = Annotated[
    Union[
        SalaryLoanPayload,
        CarLoanPayload,
        HousingLoanPayload,
        MedicalReimbursementPayload,
        MedicalLOAPayload,
        HouseBookingPayload,
    ],
    Field(discriminator="kind"),
]


class Stage(FrozenModel):
    level: int = Field(ge=1)
    role: ApproverRole
    status: StageStatus = StageStatus.PENDING
    actor_id: Optional[str] = None
    decided_at: Optional[datetime] = None
    comment: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == StageStatus.PENDING


def current_stage(chain: Sequence[Stage]) -> Optional[Stage]:
    for stage in chain:
        if stage.status == StageStatus.REJECTED:
            return None
        if stage.is_pending:
            return stage
    return None


class BenefitRequest(FrozenModel):
    """Snapshot of a request envelope with its approval chain.

    Instances are immutable; the workflow engine returns new snapshots
    via ``model_copy`` and the store persists them.
    """

    id: str
    token: Optional[str] = None
    request_type: RequestType
    requester_id: str
    submitted_at: datetime
    updated_at: datetime
    status: RequestStatus = RequestStatus.PENDING
    payload: RequestPayload
    chain: tuple[Stage, ...]
    version: int = 1
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancel_reason: Optional[str] = None

    @property
    def active_stage(self) -> Optional[Stage]:
        if self.status != RequestStatus.PENDING:
            return None
        return current_stage(self.chain)

    @property
    def active_level(self) -> Optional[int]:
        stage = self.active_stage
        return stage.level if stage else None


class RequestSummary(ORMModel):
    id: str
    token: Optional[str] = None
    request_type: RequestType
    status: RequestStatus


class Actor(FrozenModel):
    employee_id: str
    role: Optional[ApproverRole] = None


class RequestCreate(ORMModel):
    request_type: RequestType
    payload: RequestPayload


class DecisionPayload(ORMModel):
    level: int = Field(ge=1)
    decision: Decision
    comment: Optional[str] = Field(default=None, max_length=1000)


class CancelPayload(ORMModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class RequestRead(ORMModel):
    id: str
    token: Optional[str] = None
    request_type: RequestType
    requester_id: str
    submitted_at: datetime
    updated_at: datetime
    status: RequestStatus
    active_level: Optional[int] = None
    payload: RequestPayload
    chain: list[Stage]
    version: int
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancel_reason: Optional[str] = None

    @classmethod
    def from_snapshot(cls, request: BenefitRequest) -> "RequestRead":
        return cls.model_validate({**request.model_dump(), "active_level": request.active_level})
