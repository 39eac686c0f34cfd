from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import EmailStr

from benefitdesk.models.enums import ApproverRole, BenefitsPackage, RoleClass
from benefitdesk.schemas.base import FrozenModel, ORMModel


class EmployeeProfile(FrozenModel):
    employee_id: str
    first_name: str = ""
    last_name: str = ""
    position: Optional[str] = None
    role_class: RoleClass = RoleClass.CLASS_C
    # Left unconstrained so the eligibility evaluator can report bad data.
    hire_date: Optional[date] = None
    monthly_salary: Optional[Decimal] = None
    benefits_package: Optional[BenefitsPackage] = None
    benefits_amount_remaining: Optional[Decimal] = None
    approver_role: Optional[ApproverRole] = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class EmployeeRead(ORMModel):
    employee_id: str
    first_name: str
    last_name: str
    email: Optional[EmailStr] = None
    position: Optional[str] = None
    department: Optional[str] = None
    role_class: RoleClass
    approver_role: Optional[ApproverRole] = None
    benefits_package: Optional[BenefitsPackage] = None
    benefits_amount_remaining: Optional[Decimal] = None
