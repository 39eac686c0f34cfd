"""Request orchestration: eligibility gate, engine call, persistence, events.

Each operation reads a snapshot, hands it to the pure workflow engine and
writes the result back with a compare-and-swap. A lost race rolls the
session back and starts over from a fresh read, up to the configured
number of attempts.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from benefitdesk.core.settings import settings
from benefitdesk.models.booking import StaffHouse
from benefitdesk.models.enums import ApproverRole, Decision, PaymentMethod, RequestStatus, RequestType
from benefitdesk.schemas.booking import AvailabilityRead
from benefitdesk.schemas.loan import LoanBalanceRead
from benefitdesk.schemas.request import (
    Actor,
    BenefitRequest,
    HouseBookingPayload,
    MedicalReimbursementPayload,
    RequestPayload,
)
from benefitdesk.services.activity import log_activity
from benefitdesk.services.outbox import publish
from benefitdesk.services.store import RequestStore
from benefitdesk.workflow import engine
from benefitdesk.workflow.availability import (
    ConflictReason,
    explain_conflict,
    requester_overlaps,
)
from benefitdesk.workflow.chains import coerce_request_type
from benefitdesk.workflow.clock import Clock, wall_time
from benefitdesk.workflow.eligibility import EligibilityResult, evaluate
from benefitdesk.workflow.errors import (
    BookingUnavailable,
    ConcurrentUpdate,
    InvalidPayload,
    NotEligible,
    RequestNotFound,
)
from benefitdesk.workflow.events import BookingCancelled, RequestApproved

logger = logging.getLogger("benefitdesk.requests")


def _requested_amount(payload: RequestPayload) -> Optional[Decimal]:
    if isinstance(payload, MedicalReimbursementPayload):
        return payload.total_amount
    return getattr(payload, "amount", None)


def check_eligibility(
    db: Session,
    *,
    employee_id: str,
    request_type: RequestType | str,
    clock: Clock,
    amount: Optional[Decimal] = None,
) -> EligibilityResult:
    store = RequestStore(db)
    kind = coerce_request_type(request_type)
    return evaluate(
        kind,
        store.profile(employee_id),
        store.summaries_for_requester(employee_id),
        today=wall_time(clock.now()).date(),
        requested_amount=amount,
    )


def check_availability(
    db: Session,
    *,
    property_id: str,
    check_in: datetime,
    check_out: datetime,
    clock: Clock,
    exclude_request_id: Optional[str] = None,
) -> AvailabilityRead:
    store = RequestStore(db)
    store.property_version(property_id)
    conflicts = explain_conflict(
        property_id,
        check_in,
        check_out,
        store.booking_windows(property_id=property_id),
        now=clock.now(),
        exclude_request_id=exclude_request_id,
    )
    return AvailabilityRead(
        property_id=property_id,
        check_in=check_in,
        check_out=check_out,
        available=not conflicts,
        conflicts=conflicts,
    )


def list_properties(db: Session) -> list[StaffHouse]:
    return list(
        db.execute(
            select(StaffHouse).where(StaffHouse.is_active.is_(True)).order_by(StaffHouse.name.asc())
        ).scalars()
    )


def _reserve_stay(store: RequestStore, request: BenefitRequest, clock: Clock) -> None:
    """Re-check the stay against current bookings and claim the property."""
    payload = request.payload
    if not isinstance(payload, HouseBookingPayload):
        return
    version = store.property_version(payload.property_id)
    conflicts = explain_conflict(
        payload.property_id,
        payload.check_in,
        payload.check_out,
        store.booking_windows(property_id=payload.property_id),
        now=clock.now(),
    )
    past = [c for c in conflicts if c.reason == ConflictReason.PAST]
    if past:
        raise InvalidPayload(past[0].message)
    if conflicts:
        raise BookingUnavailable(conflicts=conflicts)

    overlapping = requester_overlaps(
        request.requester_id,
        payload.check_in,
        payload.check_out,
        store.booking_windows(requester_id=request.requester_id),
    )
    if overlapping:
        raise BookingUnavailable(
            "You already have an approved staff house booking that overlaps these dates",
            conflicts=overlapping,
        )
    store.claim_property(payload.property_id, version)


def create_request(
    db: Session,
    *,
    requester_id: str,
    request_type: RequestType | str,
    payload: RequestPayload,
    clock: Clock,
) -> BenefitRequest:
    kind = coerce_request_type(request_type)
    eligibility = check_eligibility(
        db,
        employee_id=requester_id,
        request_type=kind,
        clock=clock,
        amount=_requested_amount(payload),
    )
    if not eligibility.eligible:
        logger.info(
            "submission refused: %s",
            eligibility.reason,
            extra={"employee_id": requester_id, "request_type": str(kind)},
        )
        raise NotEligible(eligibility.reason)

    request, event = engine.open_request(kind, payload, requester_id, clock=clock)
    attempts = settings.booking_max_attempts if kind == RequestType.HOUSE_BOOKING else 1
    store = RequestStore(db)
    for attempt in range(1, attempts + 1):
        try:
            _reserve_stay(store, request, clock)
            stored = store.add(request)
        except ConcurrentUpdate:
            db.rollback()
            logger.warning(
                "booking claim lost, retrying",
                extra={"benefit_request_id": request.id, "attempt": attempt},
            )
            continue
        break
    else:
        raise ConcurrentUpdate("The property was booked by someone else at the same time; please try again")

    publish(db, event)
    log_activity(
        db,
        actor_id=requester_id,
        activity_type="REQUEST_SUBMITTED",
        request_id=stored.id,
        message=f"{kind.label} {stored.token} submitted",
    )
    return stored


def _apply_final_approval(store: RequestStore, request: BenefitRequest) -> None:
    payload = request.payload
    if not isinstance(payload, MedicalReimbursementPayload):
        return
    remaining = store.deduct_benefits(request.requester_id, payload.total_amount)
    logger.info(
        "benefits balance reduced to %s",
        remaining,
        extra={"benefit_request_id": request.id, "employee_id": request.requester_id},
    )


def decide(
    db: Session,
    *,
    request_id: str,
    actor: Actor,
    level: int,
    decision: Decision | str,
    comment: Optional[str] = None,
    clock: Clock,
) -> BenefitRequest:
    store = RequestStore(db)
    for attempt in range(1, settings.decision_max_attempts + 1):
        current = store.get(request_id)
        outcome = engine.submit_decision(current, level, actor, decision, comment, clock=clock)
        try:
            saved = store.save(outcome.request, expected_version=current.version)
        except ConcurrentUpdate:
            db.rollback()
            logger.warning(
                "decision lost a race, retrying",
                extra={"benefit_request_id": request_id, "stage_level": level, "attempt": attempt},
            )
            continue

        if isinstance(outcome.event, RequestApproved):
            _apply_final_approval(store, saved)
        publish(db, outcome.event)
        log_activity(
            db,
            actor_id=actor.employee_id,
            activity_type=f"REQUEST_{outcome.event.name.upper()}",
            request_id=saved.id,
            message=f"Level {level}: {Decision(decision).value}",
            payload={"level": level, "comment": comment},
        )
        return saved
    raise ConcurrentUpdate()


def cancel_booking(
    db: Session,
    *,
    request_id: str,
    actor_id: str,
    reason: Optional[str] = None,
    clock: Clock,
) -> BenefitRequest:
    store = RequestStore(db)
    for attempt in range(1, settings.decision_max_attempts + 1):
        current = store.get(request_id)
        cancelled = engine.cancel(current, actor_id, reason, clock=clock)
        try:
            saved = store.save(cancelled, expected_version=current.version)
        except ConcurrentUpdate:
            db.rollback()
            logger.warning(
                "cancellation lost a race, retrying",
                extra={"benefit_request_id": request_id, "attempt": attempt},
            )
            continue

        publish(
            db,
            BookingCancelled(request_id=saved.id, requester_id=saved.requester_id, reason=saved.cancel_reason),
        )
        log_activity(
            db,
            actor_id=actor_id,
            activity_type="BOOKING_CANCELLED",
            request_id=saved.id,
            message=saved.cancel_reason,
        )
        return saved
    raise ConcurrentUpdate()


def loan_balance(db: Session, request_id: str, *, viewer: Optional[Actor] = None) -> LoanBalanceRead:
    request = get_request(db, request_id, viewer=viewer)
    store = RequestStore(db)
    principal = engine.loan_principal(request)
    paid = store.amount_paid(request_id)
    return LoanBalanceRead(
        request_id=request.id,
        token=request.token,
        request_type=request.request_type,
        status=request.status,
        principal=principal,
        amount_paid=paid,
        balance=engine.outstanding_balance(request, paid),
        payments=store.payments(request_id),
    )


def record_payment(
    db: Session,
    *,
    request_id: str,
    actor: Actor,
    amount: Decimal,
    method: PaymentMethod | str = PaymentMethod.PAYROLL_DEDUCTION,
    notes: Optional[str] = None,
    clock: Clock,
) -> LoanBalanceRead:
    """Record a repayment; the loan moves to Completed once fully paid.

    The request version guards the running total, so two payments racing
    on the same loan are applied one after the other.
    """
    store = RequestStore(db)
    for attempt in range(1, settings.decision_max_attempts + 1):
        current = store.get(request_id)
        outcome = engine.apply_payment(
            current, amount, store.amount_paid(request_id), actor, method, notes, clock=clock
        )
        try:
            saved = store.save(outcome.request, expected_version=current.version)
        except ConcurrentUpdate:
            db.rollback()
            logger.warning(
                "payment lost a race, retrying",
                extra={"benefit_request_id": request_id, "attempt": attempt},
            )
            continue

        store.add_payment(saved.id, outcome.payment)
        publish(db, outcome.event)
        log_activity(
            db,
            actor_id=actor.employee_id,
            activity_type=outcome.event.name.upper(),
            request_id=saved.id,
            message=outcome.payment.notes,
            payload={
                "transaction_id": outcome.payment.transaction_id,
                "amount": str(outcome.payment.amount),
                "balance": str(outcome.balance),
            },
        )
        return loan_balance(db, saved.id)
    raise ConcurrentUpdate()


def get_request(db: Session, request_id: str, *, viewer: Optional[Actor] = None) -> BenefitRequest:
    """Fetch one request; with ``viewer``, only its requester or one of its approvers may see it."""
    request = RequestStore(db).get(request_id)
    if viewer is None or viewer.employee_id == request.requester_id:
        return request
    if viewer.role is not None and any(stage.role == viewer.role for stage in request.chain):
        return request
    raise RequestNotFound()


def list_requests(
    db: Session,
    requester_id: str,
    *,
    status: Optional[RequestStatus] = None,
) -> list[BenefitRequest]:
    requests = RequestStore(db).list_for_requester(requester_id)
    if status is not None:
        requests = [r for r in requests if r.status == status]
    return requests


def inbox(db: Session, role: ApproverRole) -> list[BenefitRequest]:
    return RequestStore(db).inbox(role)
