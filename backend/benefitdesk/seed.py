from __future__ import annotations

import argparse
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from benefitdesk.core.settings import settings
from benefitdesk.db.session import SessionLocal, engine
from benefitdesk.models import Base, Employee, StaffHouse
from benefitdesk.models.enums import ApproverRole, BenefitsPackage, RoleClass
from benefitdesk.workflow.eligibility import package_ceiling

STAFF_HOUSES = (
    ("staff-house-a", "Staff House A", "Main compound"),
    ("staff-house-b", "Staff House B", "Main compound"),
    ("staff-house-c", "Staff House C", "Annex"),
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the benefit desk database with demo data")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables before seeding")
    return parser.parse_args()


def reset_db() -> None:
    if settings.is_production:
        raise RuntimeError("Destructive actions are disabled in this environment.")
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def get_or_create_employee(
    db: Session,
    *,
    employee_id: str,
    first_name: str,
    last_name: str,
    position: str,
    role_class: RoleClass,
    hire_date: date,
    monthly_salary: str,
    approver_role: Optional[ApproverRole] = None,
    benefits_package: Optional[BenefitsPackage] = None,
) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee:
        return employee
    employee = Employee(
        employee_id=employee_id,
        first_name=first_name,
        last_name=last_name,
        email=f"{first_name.lower()}.{last_name.lower()}@benefitdesk.com",
        position=position,
        role_class=role_class,
        hire_date=hire_date,
        monthly_salary=Decimal(monthly_salary),
        approver_role=approver_role,
        benefits_package=benefits_package,
        benefits_amount_remaining=package_ceiling(benefits_package) if benefits_package else None,
    )
    db.add(employee)
    db.flush()
    return employee


def seed_staff_houses(db: Session) -> None:
    for house_id, name, location in STAFF_HOUSES:
        if db.get(StaffHouse, house_id) is None:
            db.add(StaffHouse(id=house_id, name=name, location=location))
    db.flush()


def main() -> None:
    args = parse_args()
    if args.reset:
        reset_db()
    else:
        Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        seed_staff_houses(db)
        get_or_create_employee(
            db, employee_id="EMP-0001", first_name="Hana", last_name="Reyes", position="HR Manager",
            role_class=RoleClass.CLASS_A, hire_date=date(2012, 6, 1), monthly_salary="85000",
            approver_role=ApproverRole.HR, benefits_package=BenefitsPackage.PACKAGE_B,
        )
        get_or_create_employee(
            db, employee_id="EMP-0002", first_name="Dario", last_name="Santos", position="Division Manager",
            role_class=RoleClass.CLASS_A, hire_date=date(2010, 3, 15), monthly_salary="120000",
            approver_role=ApproverRole.SUPERVISOR, benefits_package=BenefitsPackage.PACKAGE_B,
        )
        get_or_create_employee(
            db, employee_id="EMP-0003", first_name="Vera", last_name="Cruz", position="Vice President",
            role_class=RoleClass.CLASS_A, hire_date=date(2008, 1, 7), monthly_salary="250000",
            approver_role=ApproverRole.VICE_PRESIDENT, benefits_package=BenefitsPackage.PACKAGE_B,
        )
        get_or_create_employee(
            db, employee_id="EMP-0004", first_name="Paolo", last_name="Lim", position="President",
            role_class=RoleClass.CLASS_A, hire_date=date(2005, 9, 1), monthly_salary="400000",
            approver_role=ApproverRole.PRESIDENT, benefits_package=BenefitsPackage.PACKAGE_B,
        )
        get_or_create_employee(
            db, employee_id="EMP-0100", first_name="Mia", last_name="Tan", position="Assistant Manager",
            role_class=RoleClass.CLASS_B, hire_date=date(2018, 2, 12), monthly_salary="45000",
            benefits_package=BenefitsPackage.PACKAGE_A,
        )
        get_or_create_employee(
            db, employee_id="EMP-0200", first_name="Leo", last_name="Garcia", position="Staff",
            role_class=RoleClass.CLASS_C, hire_date=date(2021, 8, 2), monthly_salary="22000",
        )
        db.commit()
        print("Seed complete.")


if __name__ == "__main__":
    main()
