from __future__ import annotations

from datetime import datetime
from typing import Optional

from benefitdesk.schemas.base import FrozenModel, ORMModel
from benefitdesk.workflow.availability import Conflict


class AvailabilityRead(FrozenModel):
    property_id: str
    check_in: datetime
    check_out: datetime
    available: bool
    conflicts: list[Conflict] = []


class StaffHouseRead(ORMModel):
    id: str
    name: str
    location: Optional[str] = None
    is_active: bool
