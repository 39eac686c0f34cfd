from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from benefitdesk.core.deps import get_actor, get_clock, require_approver
from benefitdesk.db.session import get_db
from benefitdesk.models.enums import RequestStatus
from benefitdesk.schemas.loan import LoanBalanceRead, LoanPaymentCreate
from benefitdesk.schemas.request import Actor, DecisionPayload, RequestCreate, RequestRead
from benefitdesk.services import requests as request_service
from benefitdesk.workflow.clock import Clock

router = APIRouter(prefix="/api/requests", tags=["requests"])


@router.post("", response_model=RequestRead, status_code=status.HTTP_201_CREATED)
def create_request(
    request_in: RequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
) -> RequestRead:
    created = request_service.create_request(
        db,
        requester_id=actor.employee_id,
        request_type=request_in.request_type,
        payload=request_in.payload,
        clock=clock,
    )
    db.commit()
    return RequestRead.from_snapshot(created)


@router.get("", response_model=List[RequestRead])
def list_my_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status", description="Filter by status"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> List[RequestRead]:
    requests = request_service.list_requests(db, actor.employee_id, status=status_filter)
    return [RequestRead.from_snapshot(r) for r in requests]


@router.get("/inbox", response_model=List[RequestRead])
def inbox(
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_approver),
) -> List[RequestRead]:
    """Pending requests whose active stage belongs to the caller's approver role."""
    return [RequestRead.from_snapshot(r) for r in request_service.inbox(db, actor.role)]


@router.get("/{request_id}", response_model=RequestRead)
def get_request(
    request_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> RequestRead:
    return RequestRead.from_snapshot(request_service.get_request(db, request_id, viewer=actor))


@router.post("/{request_id}/decision", response_model=RequestRead)
def decide(
    request_id: str,
    payload: DecisionPayload,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_approver),
    clock: Clock = Depends(get_clock),
) -> RequestRead:
    updated = request_service.decide(
        db,
        request_id=request_id,
        actor=actor,
        level=payload.level,
        decision=payload.decision,
        comment=payload.comment,
        clock=clock,
    )
    db.commit()
    return RequestRead.from_snapshot(updated)


@router.get("/{request_id}/payments", response_model=LoanBalanceRead)
def loan_balance(
    request_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> LoanBalanceRead:
    return request_service.loan_balance(db, request_id, viewer=actor)


@router.post("/{request_id}/payments", response_model=LoanBalanceRead, status_code=status.HTTP_201_CREATED)
def record_payment(
    request_id: str,
    payment: LoanPaymentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_approver),
    clock: Clock = Depends(get_clock),
) -> LoanBalanceRead:
    """HR records a payroll deduction or early payment against an approved loan."""
    balance = request_service.record_payment(
        db,
        request_id=request_id,
        actor=actor,
        amount=payment.amount,
        method=payment.method,
        notes=payment.notes,
        clock=clock,
    )
    db.commit()
    return balance
