from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from benefitdesk.core.deps import get_clock, get_current_user
from benefitdesk.db.session import create_db_engine, get_db, make_sessionmaker
from benefitdesk.main import app
from benefitdesk.models import Base, Employee, StaffHouse
from benefitdesk.models.enums import ApproverRole, BenefitsPackage, RoleClass
from benefitdesk.schemas.request import Actor
from benefitdesk.workflow.clock import FixedClock

MANILA = ZoneInfo("Asia/Manila")
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=MANILA)

APPROVERS = {
    ApproverRole.HR: "E-HR",
    ApproverRole.SUPERVISOR: "E-SUP",
    ApproverRole.VICE_PRESIDENT: "E-VP",
    ApproverRole.PRESIDENT: "E-PRES",
}


def _employee(employee_id: str, **overrides) -> Employee:
    values = dict(
        employee_id=employee_id,
        first_name=employee_id.split("-")[1].title(),
        last_name="Tester",
        email=f"{employee_id.lower()}@benefitdesk.com",
        position="Manager",
        role_class=RoleClass.CLASS_B,
        hire_date=date(2015, 1, 5),
        monthly_salary=Decimal("50000.00"),
        benefits_package=BenefitsPackage.PACKAGE_A,
        benefits_amount_remaining=Decimal("100000.00"),
        is_active=True,
    )
    values.update(overrides)
    return Employee(**values)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture()
def db():
    engine = create_db_engine("sqlite+pysqlite://", poolclass=StaticPool)
    TestingSessionLocal = make_sessionmaker(engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    for role, employee_id in APPROVERS.items():
        session.add(
            _employee(
                employee_id,
                position=role.value,
                role_class=RoleClass.CLASS_A,
                hire_date=date(2010, 6, 1),
                approver_role=role,
                benefits_package=BenefitsPackage.PACKAGE_B,
                benefits_amount_remaining=Decimal("200000.00"),
            )
        )
    # Seven years of service, Package A.
    session.add(_employee("E-100", hire_date=date(2019, 1, 15)))
    session.add(
        _employee(
            "E-200",
            position="Staff",
            role_class=RoleClass.CLASS_C,
            hire_date=date(2020, 5, 1),
            monthly_salary=Decimal("20000.00"),
            benefits_package=None,
            benefits_amount_remaining=None,
        )
    )
    session.add(_employee("E-300", hire_date=date(2025, 1, 6)))
    session.add(StaffHouse(id="house-1", name="Staff House 1", location="Main compound"))
    session.add(StaffHouse(id="house-2", name="Staff House 2", location="Annex"))
    session.commit()

    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def actor_for(role: ApproverRole) -> Actor:
    return Actor(employee_id=APPROVERS[role], role=role)


@pytest.fixture()
def api(db, clock):
    """TestClient plus a ``login`` helper that switches the calling employee."""
    current = {"employee_id": "E-100"}

    def override_get_db():
        try:
            yield db
        finally:
            pass

    def override_get_current_user():
        return db.get(Employee, current["employee_id"])

    def login(employee_id: str) -> None:
        current["employee_id"] = employee_id

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_clock] = lambda: clock

    client_instance = TestClient(app)
    try:
        yield client_instance, login
    finally:
        client_instance.close()
        app.dependency_overrides.clear()


@pytest.fixture()
def approver():
    return actor_for
