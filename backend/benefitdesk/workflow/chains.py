from __future__ import annotations

import logging
from typing import Optional, Sequence

from benefitdesk.models.enums import ApproverRole, RequestStatus, RequestType, StageStatus
from benefitdesk.schemas.request import Stage, current_stage
from benefitdesk.workflow.errors import ChainIntegrityError, UnknownRequestType

logger = logging.getLogger("benefitdesk.workflow")

_FULL_HIERARCHY = (
    ApproverRole.HR,
    ApproverRole.SUPERVISOR,
    ApproverRole.VICE_PRESIDENT,
    ApproverRole.PRESIDENT,
)

APPROVAL_ROUTING: dict[RequestType, tuple[ApproverRole, ...]] = {
    RequestType.SALARY_LOAN: _FULL_HIERARCHY,
    RequestType.CAR_LOAN: _FULL_HIERARCHY,
    RequestType.HOUSING_LOAN: _FULL_HIERARCHY,
    RequestType.MEDICAL_REIMBURSEMENT: _FULL_HIERARCHY,
    RequestType.HOUSE_BOOKING: (ApproverRole.HR, ApproverRole.SUPERVISOR),
    RequestType.MEDICAL_LOA: (ApproverRole.HR,),
}


def coerce_request_type(request_type: RequestType | str) -> RequestType:
    try:
        return RequestType(request_type)
    except ValueError:
        raise UnknownRequestType(f"Invalid request type: {request_type!r}") from None


def chain_roles(request_type: RequestType | str) -> tuple[ApproverRole, ...]:
    return APPROVAL_ROUTING[coerce_request_type(request_type)]


def build_chain(request_type: RequestType | str) -> tuple[Stage, ...]:
    return tuple(
        Stage(level=index + 1, role=role)
        for index, role in enumerate(chain_roles(request_type))
    )


def active_stage(chain: Sequence[Stage]) -> Optional[Stage]:
    """Lowest-level stage still Pending, or None once the chain is terminal."""
    return current_stage(chain)


def _fail(message: str, request_id: Optional[str]) -> None:
    logger.error(
        "approval chain integrity violation: %s",
        message,
        extra={"benefit_request_id": request_id},
    )
    raise ChainIntegrityError(message)


def verify_chain(
    chain: Sequence[Stage],
    status: RequestStatus,
    *,
    request_type: Optional[RequestType] = None,
    request_id: Optional[str] = None,
) -> None:
    """Check the structural invariants of a stored chain.

    Levels run 1..N without gaps; decided stages form a prefix of the
    chain with at most one Rejected stage at its end; the request status
    agrees with the stages. Violations are logged and raised, never fixed.
    """
    if not chain:
        _fail("chain has no stages", request_id)

    if request_type is not None:
        roles = tuple(stage.role for stage in chain)
        if roles != chain_roles(request_type):
            _fail(f"stage roles do not match the {request_type} hierarchy", request_id)

    for expected, stage in enumerate(chain, start=1):
        if stage.level != expected:
            _fail(f"expected level {expected}, found level {stage.level}", request_id)

    seen_pending = False
    rejected_level: Optional[int] = None
    for stage in chain:
        if stage.is_pending:
            seen_pending = True
            continue
        if seen_pending:
            _fail(f"level {stage.level} decided above a pending stage", request_id)
        if rejected_level is not None:
            _fail(f"level {stage.level} decided after rejection at level {rejected_level}", request_id)
        if stage.status == StageStatus.REJECTED:
            rejected_level = stage.level

    all_approved = all(stage.status == StageStatus.APPROVED for stage in chain)
    if rejected_level is not None and status != RequestStatus.REJECTED:
        _fail(f"stage {rejected_level} rejected but request is {status}", request_id)
    if status == RequestStatus.REJECTED and rejected_level is None:
        _fail("request rejected without a rejected stage", request_id)
    if status in (RequestStatus.APPROVED, RequestStatus.CANCELLED, RequestStatus.COMPLETED) and not all_approved:
        _fail(f"request is {status} with undecided stages", request_id)
    if status == RequestStatus.PENDING and all_approved:
        _fail("every stage approved but request still pending", request_id)
