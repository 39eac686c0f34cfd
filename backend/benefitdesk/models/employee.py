from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, Date, Enum, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from benefitdesk.db.base import Base, TimestampMixin
from benefitdesk.models.enums import ApproverRole, BenefitsPackage, RoleClass


class Employee(TimestampMixin, Base):
    __tablename__ = "employees"

    employee_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    position: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    role_class: Mapped[RoleClass] = mapped_column(
        Enum(RoleClass, name="role_class"),
        default=RoleClass.CLASS_C,
        nullable=False,
    )
    hire_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    monthly_salary: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    benefits_package: Mapped[Optional[BenefitsPackage]] = mapped_column(
        Enum(BenefitsPackage, name="benefits_package"),
        nullable=True,
    )
    benefits_amount_remaining: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    approver_role: Mapped[Optional[ApproverRole]] = mapped_column(
        Enum(ApproverRole, name="approver_role"),
        nullable=True,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    requests: Mapped[List["RequestRecord"]] = relationship(back_populates="requester")
