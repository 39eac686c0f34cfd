from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from benefitdesk.models.enums import BenefitsPackage, RequestStatus, RequestType, RoleClass
from benefitdesk.schemas.employee import EmployeeProfile
from benefitdesk.schemas.request import RequestSummary
from benefitdesk.workflow.eligibility import (
    evaluate,
    package_ceiling,
    years_of_service,
)
from benefitdesk.workflow.errors import MalformedProfile, UnknownRequestType

TODAY = date(2026, 3, 2)


def _profile(**overrides) -> EmployeeProfile:
    values = dict(
        employee_id="E-100",
        position="Manager",
        role_class=RoleClass.CLASS_B,
        hire_date=date(2019, 1, 15),
        monthly_salary=Decimal("50000"),
        benefits_package=BenefitsPackage.PACKAGE_A,
        benefits_amount_remaining=Decimal("100000"),
    )
    values.update(overrides)
    return EmployeeProfile(**values)


def _held(request_type: RequestType, status: RequestStatus = RequestStatus.APPROVED) -> RequestSummary:
    return RequestSummary(id=f"{request_type}-1", request_type=request_type, status=status)


def test_years_of_service_counts_completed_years():
    assert years_of_service(date(2023, 3, 2), TODAY) == 3
    assert years_of_service(date(2023, 3, 3), TODAY) == 2
    assert years_of_service(date(2027, 1, 1), TODAY) == 0


def test_loans_require_three_years_of_service():
    result = evaluate(RequestType.SALARY_LOAN, _profile(hire_date=date(2023, 3, 3)), [], today=TODAY)
    assert not result.eligible
    assert result.years_of_service == 2
    assert "3 years" in result.reason

    assert evaluate(RequestType.SALARY_LOAN, _profile(hire_date=date(2023, 3, 2)), [], today=TODAY).eligible


def test_salary_loan_ceiling_doubles_after_five_years():
    junior = evaluate(RequestType.SALARY_LOAN, _profile(hire_date=date(2022, 1, 10)), [], today=TODAY)
    senior = evaluate(RequestType.SALARY_LOAN, _profile(), [], today=TODAY)

    assert junior.max_amount == Decimal("50000")
    assert senior.max_amount == Decimal("100000")
    assert senior.min_amount == Decimal("10000")


def test_housing_loan_ceiling_is_thirty_months_salary():
    result = evaluate(RequestType.HOUSING_LOAN, _profile(), [], today=TODAY)
    assert result.eligible
    assert result.max_amount == Decimal("1500000")


@pytest.mark.parametrize(
    "position, ceiling",
    [("President", "2000000"), ("Department Supervisor", "850000"), ("Assistant Manager", "800000")],
)
def test_car_loan_ceiling_follows_position(position, ceiling):
    result = evaluate(RequestType.CAR_LOAN, _profile(position=position), [], today=TODAY)
    assert result.eligible
    assert result.max_amount == Decimal(ceiling)


def test_car_loan_refused_for_unlisted_position():
    result = evaluate(RequestType.CAR_LOAN, _profile(position="Clerk"), [], today=TODAY)
    assert not result.eligible
    assert "Clerk" in result.reason


def test_class_c_may_only_take_salary_loans():
    profile = _profile(role_class=RoleClass.CLASS_C)
    assert not evaluate(RequestType.CAR_LOAN, profile, [], today=TODAY).eligible
    assert not evaluate(RequestType.HOUSING_LOAN, profile, [], today=TODAY).eligible
    assert evaluate(RequestType.SALARY_LOAN, profile, [], today=TODAY).eligible


@pytest.mark.parametrize(
    "requested, held",
    [
        (RequestType.HOUSING_LOAN, RequestType.CAR_LOAN),
        (RequestType.HOUSING_LOAN, RequestType.SALARY_LOAN),
        (RequestType.CAR_LOAN, RequestType.HOUSING_LOAN),
        (RequestType.SALARY_LOAN, RequestType.HOUSING_LOAN),
        (RequestType.SALARY_LOAN, RequestType.SALARY_LOAN),
    ],
)
def test_conflicting_active_loans_are_refused(requested, held):
    for status in (RequestStatus.PENDING, RequestStatus.APPROVED):
        result = evaluate(requested, _profile(), [_held(held, status)], today=TODAY)
        assert not result.eligible, (requested, held, status)


def test_finished_loans_do_not_block():
    history = [
        _held(RequestType.HOUSING_LOAN, RequestStatus.REJECTED),
        _held(RequestType.SALARY_LOAN, RequestStatus.CANCELLED),
    ]
    assert evaluate(RequestType.SALARY_LOAN, _profile(), history, today=TODAY).eligible
    # A repaid housing loan no longer excludes a salary loan.
    repaid = [_held(RequestType.HOUSING_LOAN, RequestStatus.COMPLETED)]
    assert evaluate(RequestType.SALARY_LOAN, _profile(), repaid, today=TODAY).eligible
    # Car and salary loans may be held together.
    assert evaluate(RequestType.CAR_LOAN, _profile(), [_held(RequestType.SALARY_LOAN)], today=TODAY).eligible


def test_requested_amount_must_sit_between_floor_and_ceiling():
    profile = _profile()
    assert not evaluate(RequestType.SALARY_LOAN, profile, [], today=TODAY, requested_amount=Decimal("9999")).eligible
    assert not evaluate(RequestType.SALARY_LOAN, profile, [], today=TODAY, requested_amount=Decimal("100001")).eligible
    assert evaluate(RequestType.SALARY_LOAN, profile, [], today=TODAY, requested_amount=Decimal("100000")).eligible


def test_ceiling_below_floor_is_refused():
    result = evaluate(
        RequestType.SALARY_LOAN,
        _profile(hire_date=date(2022, 1, 10), monthly_salary=Decimal("8000")),
        [],
        today=TODAY,
    )
    assert not result.eligible
    assert result.max_amount == Decimal("8000")


def test_reimbursement_limited_by_remaining_balance():
    profile = _profile(benefits_amount_remaining=Decimal("2500"))
    result = evaluate(RequestType.MEDICAL_REIMBURSEMENT, profile, [], today=TODAY, requested_amount=Decimal("2500"))
    assert result.eligible

    result = evaluate(
        RequestType.MEDICAL_REIMBURSEMENT, profile, [], today=TODAY, requested_amount=Decimal("2500.01")
    )
    assert not result.eligible
    assert result.max_amount == Decimal("2500")


def test_reimbursement_requires_a_package():
    result = evaluate(
        RequestType.MEDICAL_REIMBURSEMENT,
        _profile(benefits_package=None, benefits_amount_remaining=None),
        [],
        today=TODAY,
    )
    assert not result.eligible


@pytest.mark.parametrize("request_type", [RequestType.MEDICAL_LOA, RequestType.HOUSE_BOOKING])
def test_non_monetary_requests_are_always_eligible(request_type):
    assert evaluate(request_type, _profile(hire_date=date(2026, 1, 5)), [], today=TODAY).eligible


def test_malformed_profile_raises():
    with pytest.raises(MalformedProfile):
        evaluate(RequestType.SALARY_LOAN, _profile(hire_date=None), [], today=TODAY)
    with pytest.raises(MalformedProfile):
        evaluate(RequestType.SALARY_LOAN, _profile(monthly_salary=Decimal("-1")), [], today=TODAY)


def test_unknown_request_type_raises():
    with pytest.raises(UnknownRequestType):
        evaluate("pet_insurance", _profile(), [], today=TODAY)


def test_package_balances():
    assert package_ceiling(BenefitsPackage.PACKAGE_A) == Decimal("100000")
    assert package_ceiling(BenefitsPackage.PACKAGE_B) == Decimal("200000")
    assert package_ceiling(None) == Decimal("0")
