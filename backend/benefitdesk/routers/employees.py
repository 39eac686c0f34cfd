from __future__ import annotations

from fastapi import APIRouter, Depends

from benefitdesk.core.deps import get_current_user
from benefitdesk.models.employee import Employee
from benefitdesk.schemas.employee import EmployeeRead

router = APIRouter(prefix="/api/employees", tags=["employees"])


@router.get("/me", response_model=EmployeeRead)
def read_me(current_user: Employee = Depends(get_current_user)) -> EmployeeRead:
    return EmployeeRead.model_validate(current_user)
