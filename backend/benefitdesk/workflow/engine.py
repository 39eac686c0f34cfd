"""Approval workflow state machine.

Every function takes the snapshot the caller read from storage and returns
a new snapshot; nothing here performs I/O or mutates its inputs. The
caller persists the result with an optimistic check on ``version`` and
retries against a fresh read when that check fails.
"""
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import NamedTuple, Optional, Union

from benefitdesk.models.enums import ApproverRole, Decision, PaymentMethod, RequestStatus, RequestType, StageStatus
from benefitdesk.schemas.loan import LoanPaymentEntry
from benefitdesk.schemas.request import (
    Actor,
    BenefitRequest,
    CarLoanPayload,
    HouseBookingPayload,
    HousingLoanPayload,
    MedicalLOAPayload,
    MedicalReimbursementPayload,
    RequestPayload,
    SalaryLoanPayload,
)
from benefitdesk.workflow.chains import build_chain, coerce_request_type, verify_chain
from benefitdesk.workflow.clock import Clock, wall_time
from benefitdesk.workflow.errors import (
    AlreadyFinalized,
    CancelNotAllowed,
    InvalidPayload,
    MissingRejectionReason,
    NotYourStage,
    Overpayment,
    PayloadMismatch,
    PaymentNotAllowed,
    RoleMismatch,
)
from benefitdesk.workflow.events import (
    LoanCompleted,
    LoanPaymentRecorded,
    RequestApproved,
    RequestRejected,
    RequestSubmitted,
    StageAdvanced,
)

logger = logging.getLogger("benefitdesk.workflow")

MIN_REJECTION_REASON_LENGTH = 5
# Rounding slack when deciding whether a loan is fully repaid.
PAYMENT_TOLERANCE = Decimal("0.01")

PAYLOAD_TYPES = {
    RequestType.SALARY_LOAN: SalaryLoanPayload,
    RequestType.CAR_LOAN: CarLoanPayload,
    RequestType.HOUSING_LOAN: HousingLoanPayload,
    RequestType.MEDICAL_REIMBURSEMENT: MedicalReimbursementPayload,
    RequestType.MEDICAL_LOA: MedicalLOAPayload,
    RequestType.HOUSE_BOOKING: HouseBookingPayload,
}


class DecisionOutcome(NamedTuple):
    request: BenefitRequest
    event: Union[StageAdvanced, RequestApproved, RequestRejected]


def check_payload(request_type: RequestType, payload: RequestPayload, *, clock: Clock) -> None:
    """Validate the parts of a payload that depend on its type or on today's date."""
    if not isinstance(payload, PAYLOAD_TYPES[request_type]):
        raise PayloadMismatch(
            f"Expected {request_type.label} details, received {payload.kind.replace('_', ' ')}"
        )

    today = wall_time(clock.now()).date()
    if isinstance(payload, MedicalReimbursementPayload):
        if payload.admission_date > today:
            raise InvalidPayload("Admission date must be before current date")
        if payload.discharge_date is not None and payload.discharge_date > today:
            raise InvalidPayload("Discharge date must be before current date")
    elif isinstance(payload, MedicalLOAPayload):
        if payload.visit_date < today:
            raise InvalidPayload("Visit date cannot be in the past")


def open_request(
    request_type: RequestType | str,
    payload: RequestPayload,
    requester_id: str,
    *,
    clock: Clock,
) -> tuple[BenefitRequest, RequestSubmitted]:
    kind = coerce_request_type(request_type)
    check_payload(kind, payload, clock=clock)

    now = clock.now()
    request = BenefitRequest(
        id=str(uuid.uuid4()),
        request_type=kind,
        requester_id=requester_id,
        submitted_at=now,
        updated_at=now,
        status=RequestStatus.PENDING,
        payload=payload,
        chain=build_chain(kind),
    )
    event = RequestSubmitted(
        request_id=request.id,
        requester_id=requester_id,
        request_type=kind,
        active_level=1,
    )
    return request, event


def _rejection_reason(comment: Optional[str]) -> str:
    reason = (comment or "").strip()
    if len(reason) < MIN_REJECTION_REASON_LENGTH:
        raise MissingRejectionReason()
    return reason


def submit_decision(
    request: BenefitRequest,
    acting_level: int,
    actor: Actor,
    decision: Decision | str,
    comment: Optional[str] = None,
    *,
    clock: Clock,
) -> DecisionOutcome:
    decision = Decision(decision)
    if request.status.is_terminal:
        raise AlreadyFinalized(f"Request is already {request.status.lower()}")

    verify_chain(
        request.chain,
        request.status,
        request_type=request.request_type,
        request_id=request.id,
    )
    stage = request.active_stage
    if stage is None or stage.level != acting_level:
        raise NotYourStage()
    if actor.role != stage.role:
        raise RoleMismatch(f"Level {stage.level} must be decided by {stage.role}")

    if decision == Decision.REJECT:
        note: Optional[str] = _rejection_reason(comment)
    else:
        note = (comment or "").strip() or None

    now = clock.now()
    decided = stage.model_copy(
        update={
            "status": StageStatus.APPROVED if decision == Decision.APPROVE else StageStatus.REJECTED,
            "actor_id": actor.employee_id,
            "decided_at": now,
            "comment": note,
        }
    )
    chain = tuple(decided if s.level == stage.level else s for s in request.chain)

    event: Union[StageAdvanced, RequestApproved, RequestRejected]
    if decision == Decision.REJECT:
        status = RequestStatus.REJECTED
        event = RequestRejected(
            request_id=request.id,
            requester_id=request.requester_id,
            request_type=request.request_type,
            reason=note or "",
        )
    elif stage.level == len(chain):
        status = RequestStatus.APPROVED
        event = RequestApproved(
            request_id=request.id,
            requester_id=request.requester_id,
            request_type=request.request_type,
        )
    else:
        status = RequestStatus.PENDING
        event = StageAdvanced(
            request_id=request.id,
            request_type=request.request_type,
            new_active_level=stage.level + 1,
        )

    updated = request.model_copy(update={"chain": chain, "status": status, "updated_at": now})
    logger.info(
        "stage %s %s by %s",
        stage.level,
        decided.status.lower(),
        actor.employee_id,
        extra={
            "benefit_request_id": request.id,
            "request_type": str(request.request_type),
            "stage_level": stage.level,
        },
    )
    return DecisionOutcome(updated, event)


def cancel(
    request: BenefitRequest,
    actor_id: str,
    reason: Optional[str] = None,
    *,
    clock: Clock,
) -> BenefitRequest:
    if request.request_type != RequestType.HOUSE_BOOKING:
        raise CancelNotAllowed("Only staff house bookings can be cancelled")
    if request.status != RequestStatus.APPROVED:
        raise CancelNotAllowed(f"Only approved bookings can be cancelled; this booking is {request.status.lower()}")
    if actor_id != request.requester_id:
        raise CancelNotAllowed("Booking not found or you don't have permission to cancel it")

    now = clock.now()
    payload = request.payload
    if not isinstance(payload, HouseBookingPayload):
        raise PayloadMismatch()
    if payload.check_in <= wall_time(now):
        raise CancelNotAllowed("Bookings can only be cancelled before check-in")

    return request.model_copy(
        update={
            "status": RequestStatus.CANCELLED,
            "updated_at": now,
            "cancelled_at": now,
            "cancelled_by": actor_id,
            "cancel_reason": (reason or "").strip() or None,
        }
    )


class PaymentOutcome(NamedTuple):
    request: BenefitRequest
    payment: LoanPaymentEntry
    event: Union[LoanPaymentRecorded, LoanCompleted]
    balance: Decimal


def loan_principal(request: BenefitRequest) -> Decimal:
    if not request.request_type.is_loan:
        raise PaymentNotAllowed("Only loans carry a repayment balance")
    return Decimal(request.payload.amount)


def outstanding_balance(request: BenefitRequest, amount_paid: Decimal) -> Decimal:
    return max(Decimal("0"), loan_principal(request) - Decimal(amount_paid))


def apply_payment(
    request: BenefitRequest,
    amount: Decimal,
    amount_paid: Decimal,
    actor: Actor,
    method: PaymentMethod | str = PaymentMethod.PAYROLL_DEDUCTION,
    notes: Optional[str] = None,
    *,
    clock: Clock,
) -> PaymentOutcome:
    """Apply one repayment to an approved loan.

    ``amount_paid`` is the total already recorded for the loan. Once the
    payments cover the principal (to the cent) the loan becomes Completed
    and stops counting as outstanding for eligibility.
    """
    method = PaymentMethod(method)
    balance_before = outstanding_balance(request, amount_paid)
    if request.status == RequestStatus.COMPLETED:
        raise AlreadyFinalized("Loan is already fully paid")
    if request.status != RequestStatus.APPROVED:
        raise PaymentNotAllowed(
            f"Payments can only be recorded against approved loans; this loan is {request.status.lower()}"
        )
    if actor.role != ApproverRole.HR:
        raise RoleMismatch("Only HR can record loan payments")
    verify_chain(request.chain, request.status, request_type=request.request_type, request_id=request.id)

    amount = Decimal(amount)
    if amount <= 0:
        raise InvalidPayload("Payment amount must be greater than zero")
    if amount > balance_before + PAYMENT_TOLERANCE:
        raise Overpayment(f"The payment exceeds the outstanding balance of ₱{balance_before:,.2f}")

    now = clock.now()
    payment = LoanPaymentEntry(
        transaction_id=f"{method.transaction_prefix}-{uuid.uuid4().hex[:12].upper()}",
        amount=amount,
        method=method,
        paid_at=now,
        recorded_by=actor.employee_id,
        notes=(notes or "").strip() or f"{method.value} of ₱{amount:,.2f}",
    )
    balance = max(Decimal("0"), balance_before - amount)

    event: Union[LoanPaymentRecorded, LoanCompleted]
    if balance <= PAYMENT_TOLERANCE:
        balance = Decimal("0")
        status = RequestStatus.COMPLETED
        event = LoanCompleted(
            request_id=request.id,
            requester_id=request.requester_id,
            request_type=request.request_type,
        )
    else:
        status = RequestStatus.APPROVED
        event = LoanPaymentRecorded(
            request_id=request.id,
            requester_id=request.requester_id,
            request_type=request.request_type,
            transaction_id=payment.transaction_id,
            amount=amount,
            balance=balance,
        )

    updated = request.model_copy(update={"status": status, "updated_at": now})
    logger.info(
        "payment %s applied, balance %s",
        payment.transaction_id,
        balance,
        extra={"benefit_request_id": request.id, "request_type": str(request.request_type)},
    )
    return PaymentOutcome(updated, payment, event, balance)
