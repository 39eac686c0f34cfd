from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from benefitdesk.core.deps import get_actor, get_clock
from benefitdesk.db.session import get_db
from benefitdesk.schemas.request import Actor
from benefitdesk.services import requests as request_service
from benefitdesk.workflow.clock import Clock
from benefitdesk.workflow.eligibility import EligibilityResult

router = APIRouter(prefix="/api/eligibility", tags=["eligibility"])


@router.get("/{request_type}", response_model=EligibilityResult)
def check_eligibility(
    request_type: str,
    amount: Optional[Decimal] = Query(None, gt=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
) -> EligibilityResult:
    return request_service.check_eligibility(
        db,
        employee_id=actor.employee_id,
        request_type=request_type,
        clock=clock,
        amount=amount,
    )
