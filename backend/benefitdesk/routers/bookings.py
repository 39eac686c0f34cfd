from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from benefitdesk.core.deps import get_actor, get_clock
from benefitdesk.db.session import get_db
from benefitdesk.schemas.booking import AvailabilityRead, StaffHouseRead
from benefitdesk.schemas.request import Actor, CancelPayload, RequestRead
from benefitdesk.services import requests as request_service
from benefitdesk.workflow.clock import Clock

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.get("/properties", response_model=List[StaffHouseRead])
def list_properties(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> List[StaffHouseRead]:
    return [StaffHouseRead.model_validate(house) for house in request_service.list_properties(db)]


@router.get("/availability", response_model=AvailabilityRead)
def availability(
    property_id: str = Query(..., min_length=1),
    check_in: datetime = Query(..., description="Local wall-clock time, no UTC offset"),
    check_out: datetime = Query(..., description="Local wall-clock time, no UTC offset"),
    exclude_request_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
) -> AvailabilityRead:
    return request_service.check_availability(
        db,
        property_id=property_id,
        check_in=check_in.replace(tzinfo=None),
        check_out=check_out.replace(tzinfo=None),
        clock=clock,
        exclude_request_id=exclude_request_id,
    )


@router.post("/{request_id}/cancel", response_model=RequestRead)
def cancel_booking(
    request_id: str,
    payload: Optional[CancelPayload] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
) -> RequestRead:
    cancelled = request_service.cancel_booking(
        db,
        request_id=request_id,
        actor_id=actor.employee_id,
        reason=payload.reason if payload else None,
        clock=clock,
    )
    db.commit()
    return RequestRead.from_snapshot(cancelled)
