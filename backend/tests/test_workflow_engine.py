from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from benefitdesk.models.enums import (
    ApproverRole,
    ClaimMethod,
    Decision,
    PatientType,
    PaymentMethod,
    RequestStatus,
    RequestType,
    StageStatus,
)
from benefitdesk.schemas.request import (
    Actor,
    HouseBookingPayload,
    MedicalLOAPayload,
    MedicalReimbursementPayload,
    SalaryLoanPayload,
)
from benefitdesk.workflow.engine import apply_payment, cancel, open_request, submit_decision
from benefitdesk.workflow.errors import (
    AlreadyFinalized,
    CancelNotAllowed,
    ChainIntegrityError,
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

SALARY = SalaryLoanPayload(amount=Decimal("30000"), purpose="Tuition")


def _booking(check_in: datetime, check_out: datetime) -> HouseBookingPayload:
    return HouseBookingPayload(
        property_id="house-1",
        check_in=check_in,
        check_out=check_out,
        guests=2,
        nature_of_stay="Official",
        reason_for_use="Site visit",
    )


def _approve_all(request, approver, clock):
    for stage in request.chain:
        request, _ = submit_decision(request, stage.level, approver(stage.role), Decision.APPROVE, clock=clock)
    return request


def test_open_request_starts_at_level_one(clock):
    request, event = open_request(RequestType.SALARY_LOAN, SALARY, "E-100", clock=clock)

    assert request.status == RequestStatus.PENDING
    assert request.active_level == 1
    assert len(request.chain) == 4
    assert request.version == 1
    assert isinstance(event, RequestSubmitted)
    assert event.active_level == 1
    assert event.request_id == request.id


def test_open_request_rejects_mismatched_payload(clock):
    with pytest.raises(PayloadMismatch):
        open_request(RequestType.CAR_LOAN, SALARY, "E-100", clock=clock)


def test_full_chain_approval_emits_events_in_order(clock, approver):
    request, _ = open_request(RequestType.SALARY_LOAN, SALARY, "E-100", clock=clock)

    events = []
    for level, role in enumerate(
        [ApproverRole.HR, ApproverRole.SUPERVISOR, ApproverRole.VICE_PRESIDENT, ApproverRole.PRESIDENT],
        start=1,
    ):
        clock.advance(timedelta(minutes=5))
        request, event = submit_decision(request, level, approver(role), Decision.APPROVE, clock=clock)
        events.append(event)

    assert [type(e) for e in events] == [StageAdvanced, StageAdvanced, StageAdvanced, RequestApproved]
    assert [e.new_active_level for e in events[:3]] == [2, 3, 4]
    assert request.status == RequestStatus.APPROVED
    assert request.active_stage is None
    assert all(stage.status == StageStatus.APPROVED for stage in request.chain)
    assert [stage.actor_id for stage in request.chain] == ["E-HR", "E-SUP", "E-VP", "E-PRES"]


def test_inputs_are_not_mutated(clock, approver):
    request, _ = open_request(RequestType.MEDICAL_LOA, _loa(date(2026, 3, 5)), "E-100", clock=clock)
    updated, _ = submit_decision(request, 1, approver(ApproverRole.HR), Decision.APPROVE, clock=clock)

    assert request.status == RequestStatus.PENDING
    assert request.chain[0].status == StageStatus.PENDING
    assert updated.status == RequestStatus.APPROVED


def test_rejection_short_circuits_chain(clock, approver):
    request, _ = open_request(RequestType.SALARY_LOAN, SALARY, "E-100", clock=clock)
    request, _ = submit_decision(request, 1, approver(ApproverRole.HR), Decision.APPROVE, clock=clock)
    request, event = submit_decision(
        request,
        2,
        approver(ApproverRole.SUPERVISOR),
        Decision.REJECT,
        "  Budget freeze this quarter  ",
        clock=clock,
    )

    assert isinstance(event, RequestRejected)
    assert event.reason == "Budget freeze this quarter"
    assert request.status == RequestStatus.REJECTED
    assert [s.status for s in request.chain] == [
        StageStatus.APPROVED,
        StageStatus.REJECTED,
        StageStatus.PENDING,
        StageStatus.PENDING,
    ]

    with pytest.raises(AlreadyFinalized):
        submit_decision(request, 3, approver(ApproverRole.VICE_PRESIDENT), Decision.APPROVE, clock=clock)


@pytest.mark.parametrize("comment", [None, "", "   ", "no"])
def test_rejection_requires_a_reason(clock, approver, comment):
    request, _ = open_request(RequestType.SALARY_LOAN, SALARY, "E-100", clock=clock)
    with pytest.raises(MissingRejectionReason):
        submit_decision(request, 1, approver(ApproverRole.HR), Decision.REJECT, comment, clock=clock)


def test_decision_on_wrong_level_is_refused(clock, approver):
    request, _ = open_request(RequestType.SALARY_LOAN, SALARY, "E-100", clock=clock)
    with pytest.raises(NotYourStage):
        submit_decision(request, 2, approver(ApproverRole.SUPERVISOR), Decision.APPROVE, clock=clock)


def test_decision_by_wrong_role_is_refused(clock, approver):
    request, _ = open_request(RequestType.SALARY_LOAN, SALARY, "E-100", clock=clock)
    with pytest.raises(RoleMismatch):
        submit_decision(request, 1, approver(ApproverRole.PRESIDENT), Decision.APPROVE, clock=clock)
    with pytest.raises(RoleMismatch):
        submit_decision(request, 1, Actor(employee_id="E-100"), Decision.APPROVE, clock=clock)


def test_repeated_decision_on_same_stage_is_refused(clock, approver):
    request, _ = open_request(RequestType.HOUSE_BOOKING, _booking(
        datetime(2026, 3, 10, 14, 0), datetime(2026, 3, 12, 11, 0)
    ), "E-100", clock=clock)
    advanced, _ = submit_decision(request, 1, approver(ApproverRole.HR), Decision.APPROVE, clock=clock)

    with pytest.raises(NotYourStage):
        submit_decision(advanced, 1, approver(ApproverRole.HR), Decision.APPROVE, clock=clock)

    approved, _ = submit_decision(advanced, 2, approver(ApproverRole.SUPERVISOR), Decision.APPROVE, clock=clock)
    with pytest.raises(AlreadyFinalized):
        submit_decision(approved, 2, approver(ApproverRole.SUPERVISOR), Decision.APPROVE, clock=clock)


def test_corrupted_chain_is_reported_not_repaired(clock, approver):
    request, _ = open_request(RequestType.HOUSE_BOOKING, _booking(
        datetime(2026, 3, 10, 14, 0), datetime(2026, 3, 12, 11, 0)
    ), "E-100", clock=clock)
    broken = request.model_copy(
        update={"chain": (request.chain[0], request.chain[1].model_copy(update={"level": 3}))}
    )
    with pytest.raises(ChainIntegrityError):
        submit_decision(broken, 1, approver(ApproverRole.HR), Decision.APPROVE, clock=clock)


def _loa(visit_date: date) -> MedicalLOAPayload:
    return MedicalLOAPayload(
        hospital_id="H-01",
        hospital_name="General Hospital",
        visit_date=visit_date,
        reason_type="Consultation",
        patient_complaint="Persistent cough",
    )


def test_loa_visit_date_cannot_be_in_the_past(clock):
    with pytest.raises(InvalidPayload):
        open_request(RequestType.MEDICAL_LOA, _loa(date(2026, 3, 1)), "E-100", clock=clock)
    request, _ = open_request(RequestType.MEDICAL_LOA, _loa(date(2026, 3, 2)), "E-100", clock=clock)
    assert request.status == RequestStatus.PENDING


def test_reimbursement_dates_cannot_be_in_the_future(clock):
    payload = MedicalReimbursementPayload(
        patient_type=PatientType.OUTPATIENT,
        admission_date=date(2026, 3, 3),
        total_amount=Decimal("1500"),
        claim_method=ClaimMethod.CASH,
    )
    with pytest.raises(InvalidPayload):
        open_request(RequestType.MEDICAL_REIMBURSEMENT, payload, "E-100", clock=clock)


def _approved_booking(clock, approver, check_in, check_out):
    request, _ = open_request(RequestType.HOUSE_BOOKING, _booking(check_in, check_out), "E-100", clock=clock)
    return _approve_all(request, approver, clock)


def test_cancel_approved_booking_before_check_in(clock, approver):
    request = _approved_booking(clock, approver, datetime(2026, 3, 10, 14, 0), datetime(2026, 3, 12, 11, 0))
    cancelled = cancel(request, "E-100", " Trip postponed ", clock=clock)

    assert cancelled.status == RequestStatus.CANCELLED
    assert cancelled.cancelled_by == "E-100"
    assert cancelled.cancel_reason == "Trip postponed"
    assert cancelled.cancelled_at == clock.now()


def test_cancel_refused_after_check_in(clock, approver):
    request = _approved_booking(clock, approver, datetime(2026, 3, 2, 12, 0), datetime(2026, 3, 3, 11, 0))
    clock.advance(timedelta(hours=3))
    with pytest.raises(CancelNotAllowed):
        cancel(request, "E-100", clock=clock)


def test_cancel_refused_for_pending_foreign_or_non_booking(clock, approver):
    pending, _ = open_request(RequestType.HOUSE_BOOKING, _booking(
        datetime(2026, 3, 10, 14, 0), datetime(2026, 3, 12, 11, 0)
    ), "E-100", clock=clock)
    with pytest.raises(CancelNotAllowed):
        cancel(pending, "E-100", clock=clock)

    approved = _approve_all(pending, approver, clock)
    with pytest.raises(CancelNotAllowed):
        cancel(approved, "E-300", clock=clock)

    loan, _ = open_request(RequestType.SALARY_LOAN, SALARY, "E-100", clock=clock)
    loan = _approve_all(loan, approver, clock)
    with pytest.raises(CancelNotAllowed):
        cancel(loan, "E-100", clock=clock)


def test_partial_payment_keeps_loan_outstanding(clock, approver):
    loan = _approve_all(open_request(RequestType.SALARY_LOAN, SALARY, "E-100", clock=clock)[0], approver, clock)

    outcome = apply_payment(loan, Decimal("12500"), Decimal("0"), approver(ApproverRole.HR), clock=clock)

    assert outcome.request.status == RequestStatus.APPROVED
    assert outcome.balance == Decimal("17500")
    assert isinstance(outcome.event, LoanPaymentRecorded)
    assert outcome.payment.transaction_id.startswith("PD-")
    assert outcome.payment.recorded_by == "E-HR"
    assert loan.status == RequestStatus.APPROVED


def test_final_payment_completes_loan(clock, approver):
    loan = _approve_all(open_request(RequestType.SALARY_LOAN, SALARY, "E-100", clock=clock)[0], approver, clock)

    outcome = apply_payment(
        loan, Decimal("17500"), Decimal("12500"), approver(ApproverRole.HR), PaymentMethod.EARLY_PAYMENT, clock=clock
    )

    assert outcome.request.status == RequestStatus.COMPLETED
    assert outcome.balance == Decimal("0")
    assert isinstance(outcome.event, LoanCompleted)
    assert outcome.payment.transaction_id.startswith("EP-")

    with pytest.raises(AlreadyFinalized):
        apply_payment(outcome.request, Decimal("1"), Decimal("30000"), approver(ApproverRole.HR), clock=clock)


def test_payment_refusals(clock, approver):
    pending, _ = open_request(RequestType.SALARY_LOAN, SALARY, "E-100", clock=clock)
    loan = _approve_all(pending, approver, clock)
    hr = approver(ApproverRole.HR)

    with pytest.raises(PaymentNotAllowed):
        apply_payment(pending, Decimal("1000"), Decimal("0"), hr, clock=clock)
    with pytest.raises(RoleMismatch):
        apply_payment(loan, Decimal("1000"), Decimal("0"), approver(ApproverRole.PRESIDENT), clock=clock)
    with pytest.raises(Overpayment):
        apply_payment(loan, Decimal("20000"), Decimal("15000"), hr, clock=clock)

    loa, _ = open_request(RequestType.MEDICAL_LOA, _loa(date(2026, 3, 5)), "E-100", clock=clock)
    with pytest.raises(PaymentNotAllowed):
        apply_payment(_approve_all(loa, approver, clock), Decimal("1000"), Decimal("0"), hr, clock=clock)
