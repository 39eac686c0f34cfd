from __future__ import annotations

from datetime import datetime

import pytest

from benefitdesk.models.enums import ApproverRole, Decision, RequestStatus, RequestType, StageStatus
from benefitdesk.schemas.request import HouseBookingPayload, Stage
from benefitdesk.workflow.chains import active_stage, build_chain, chain_roles, verify_chain
from benefitdesk.workflow.engine import open_request, submit_decision
from benefitdesk.workflow.errors import ChainIntegrityError, UnknownRequestType

FULL = [ApproverRole.HR, ApproverRole.SUPERVISOR, ApproverRole.VICE_PRESIDENT, ApproverRole.PRESIDENT]
BOOKING = HouseBookingPayload(
    property_id="house-1",
    check_in=datetime(2026, 3, 10, 14, 0),
    check_out=datetime(2026, 3, 11, 11, 0),
    guests=1,
    nature_of_stay="Official",
    reason_for_use="Audit",
)


@pytest.mark.parametrize(
    "request_type, roles",
    [
        (RequestType.SALARY_LOAN, FULL),
        (RequestType.CAR_LOAN, FULL),
        (RequestType.HOUSING_LOAN, FULL),
        (RequestType.MEDICAL_REIMBURSEMENT, FULL),
        (RequestType.HOUSE_BOOKING, [ApproverRole.HR, ApproverRole.SUPERVISOR]),
        (RequestType.MEDICAL_LOA, [ApproverRole.HR]),
    ],
)
def test_build_chain_follows_hierarchy(request_type, roles):
    chain = build_chain(request_type)
    assert [stage.role for stage in chain] == roles
    assert [stage.level for stage in chain] == list(range(1, len(roles) + 1))
    assert all(stage.status == StageStatus.PENDING for stage in chain)
    assert active_stage(chain).level == 1


def test_chain_roles_accepts_string_values():
    assert chain_roles("medical_loa") == (ApproverRole.HR,)


def test_unknown_request_type_is_rejected():
    with pytest.raises(UnknownRequestType):
        build_chain("pet_insurance")


def _decided(stage: Stage, status: StageStatus) -> Stage:
    return stage.model_copy(update={"status": status, "actor_id": "E-X"})


def test_verify_chain_accepts_partially_approved_chain():
    chain = build_chain(RequestType.HOUSE_BOOKING)
    chain = (_decided(chain[0], StageStatus.APPROVED), chain[1])
    verify_chain(chain, RequestStatus.PENDING, request_type=RequestType.HOUSE_BOOKING)
    assert active_stage(chain).level == 2


def test_verify_chain_rejects_level_gap():
    chain = (Stage(level=1, role=ApproverRole.HR), Stage(level=3, role=ApproverRole.SUPERVISOR))
    with pytest.raises(ChainIntegrityError):
        verify_chain(chain, RequestStatus.PENDING)


def test_verify_chain_rejects_decision_above_pending_stage():
    chain = build_chain(RequestType.HOUSE_BOOKING)
    chain = (chain[0], _decided(chain[1], StageStatus.APPROVED))
    with pytest.raises(ChainIntegrityError):
        verify_chain(chain, RequestStatus.PENDING)


def test_verify_chain_rejects_roles_out_of_order():
    chain = (Stage(level=1, role=ApproverRole.SUPERVISOR), Stage(level=2, role=ApproverRole.HR))
    with pytest.raises(ChainIntegrityError):
        verify_chain(chain, RequestStatus.PENDING, request_type=RequestType.HOUSE_BOOKING)


def test_verify_chain_rejects_status_disagreement():
    chain = build_chain(RequestType.MEDICAL_LOA)
    with pytest.raises(ChainIntegrityError):
        verify_chain(chain, RequestStatus.APPROVED)
    with pytest.raises(ChainIntegrityError):
        verify_chain(chain, RequestStatus.COMPLETED)

    rejected = (_decided(chain[0], StageStatus.REJECTED),)
    with pytest.raises(ChainIntegrityError):
        verify_chain(rejected, RequestStatus.PENDING)


def test_verify_chain_rejects_empty_chain():
    with pytest.raises(ChainIntegrityError):
        verify_chain((), RequestStatus.PENDING)


def test_active_stage_is_none_after_rejection():
    chain = build_chain(RequestType.SALARY_LOAN)
    chain = (_decided(chain[0], StageStatus.REJECTED),) + chain[1:]
    assert active_stage(chain) is None


def test_snapshot_active_stage_agrees_with_chain_helper(clock, approver):
    request, _ = open_request(RequestType.HOUSE_BOOKING, BOOKING, "E-100", clock=clock)
    assert request.active_stage == active_stage(request.chain)

    request, _ = submit_decision(request, 1, approver(ApproverRole.HR), Decision.APPROVE, clock=clock)
    assert request.active_stage == active_stage(request.chain)
    assert request.active_level == 2

    request, _ = submit_decision(request, 2, approver(ApproverRole.SUPERVISOR), Decision.APPROVE, clock=clock)
    assert request.active_stage is None
    assert active_stage(request.chain) is None
    assert request.status == RequestStatus.APPROVED


def test_verify_chain_accepts_fully_approved_completed_loan():
    chain = tuple(_decided(stage, StageStatus.APPROVED) for stage in build_chain(RequestType.SALARY_LOAN))
    verify_chain(chain, RequestStatus.COMPLETED, request_type=RequestType.SALARY_LOAN)
