"""Benefit eligibility rules.

Business-rule failures come back as ``EligibilityResult(eligible=False)``
with a reason that can be shown to the employee as-is. Only malformed
profile data raises.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Protocol

from benefitdesk.models.enums import BenefitsPackage, RequestStatus, RequestType, RoleClass
from benefitdesk.schemas.base import FrozenModel
from benefitdesk.schemas.employee import EmployeeProfile
from benefitdesk.workflow.chains import coerce_request_type
from benefitdesk.workflow.errors import MalformedProfile

MIN_LOAN_TENURE_YEARS = 3
DOUBLE_SALARY_TENURE_YEARS = 5
LOAN_FLOOR = Decimal("10000")
HOUSING_SALARY_MULTIPLIER = 30

CAR_LOAN_LIMITS: dict[str, Decimal] = {
    "President": Decimal("2000000"),
    "Vice President": Decimal("1500000"),
    "Senior Manager": Decimal("1000000"),
    "Division Manager": Decimal("900000"),
    "Department Supervisor": Decimal("850000"),
    "Manager": Decimal("900000"),
    "HR Manager": Decimal("900000"),
    "Assistant Manager": Decimal("800000"),
}

PACKAGE_CEILINGS: dict[BenefitsPackage, Decimal] = {
    BenefitsPackage.PACKAGE_A: Decimal("100000"),
    BenefitsPackage.PACKAGE_B: Decimal("200000"),
}

# Loan types that may not be held alongside the key type.
_EXCLUSIVE_WITH: dict[RequestType, tuple[RequestType, ...]] = {
    RequestType.HOUSING_LOAN: (RequestType.CAR_LOAN, RequestType.SALARY_LOAN),
    RequestType.CAR_LOAN: (RequestType.HOUSING_LOAN,),
    RequestType.SALARY_LOAN: (RequestType.HOUSING_LOAN,),
}

_OUTSTANDING = frozenset({RequestStatus.PENDING, RequestStatus.APPROVED})


class HasTypeAndStatus(Protocol):
    request_type: RequestType
    status: RequestStatus


class EligibilityResult(FrozenModel):
    eligible: bool
    reason: Optional[str] = None
    max_amount: Optional[Decimal] = None
    min_amount: Optional[Decimal] = None
    years_of_service: Optional[int] = None

    @classmethod
    def deny(cls, reason: str, **extra) -> "EligibilityResult":
        return cls(eligible=False, reason=reason, **extra)


def years_of_service(hire_date: date, today: date) -> int:
    years = today.year - hire_date.year
    if (today.month, today.day) < (hire_date.month, hire_date.day):
        years -= 1
    return max(0, years)


def _check_profile(profile: EmployeeProfile) -> None:
    if profile.hire_date is None:
        raise MalformedProfile(f"Employee {profile.employee_id} has no hire date on file")
    if profile.monthly_salary is None or profile.monthly_salary < 0:
        raise MalformedProfile(f"Employee {profile.employee_id} has an invalid monthly salary")


def _outstanding_types(active_requests: Iterable[HasTypeAndStatus]) -> set[RequestType]:
    return {r.request_type for r in active_requests if r.status in _OUTSTANDING}


def _combination_denial(kind: RequestType, held: set[RequestType]) -> Optional[str]:
    for other in _EXCLUSIVE_WITH[kind]:
        if other in held:
            return (
                f"You have an active or pending {other.label}. "
                f"{kind.label} cannot be combined with {other.label}."
            )
    if kind in held:
        return f"You already have an active or pending {kind.label}."
    return None


def loan_ceiling(kind: RequestType, profile: EmployeeProfile, service_years: int) -> Optional[Decimal]:
    salary = Decimal(profile.monthly_salary)
    if kind == RequestType.SALARY_LOAN:
        multiplier = 2 if service_years >= DOUBLE_SALARY_TENURE_YEARS else 1
        return salary * multiplier
    if kind == RequestType.HOUSING_LOAN:
        return salary * HOUSING_SALARY_MULTIPLIER
    return CAR_LOAN_LIMITS.get(profile.position or "")


def _evaluate_loan(
    kind: RequestType,
    profile: EmployeeProfile,
    active_requests: Iterable[HasTypeAndStatus],
    today: date,
    requested_amount: Optional[Decimal],
) -> EligibilityResult:
    service_years = years_of_service(profile.hire_date, today)
    if service_years < MIN_LOAN_TENURE_YEARS:
        return EligibilityResult.deny(
            f"Sorry, you are not yet eligible to apply for a {kind.label}. "
            f"Employees need at least {MIN_LOAN_TENURE_YEARS} years in the company "
            f"(you have {service_years}).",
            years_of_service=service_years,
        )

    if profile.role_class == RoleClass.CLASS_C and kind != RequestType.SALARY_LOAN:
        return EligibilityResult.deny(
            "Class C employees can only apply for Salary Loans.",
            years_of_service=service_years,
        )

    denial = _combination_denial(kind, _outstanding_types(active_requests))
    if denial:
        return EligibilityResult.deny(denial, years_of_service=service_years)

    ceiling = loan_ceiling(kind, profile, service_years)
    if ceiling is None:
        return EligibilityResult.deny(
            f"Your position ({profile.position or 'unassigned'}) is not eligible for a {kind.label}.",
            years_of_service=service_years,
        )
    limits = {"max_amount": ceiling, "min_amount": LOAN_FLOOR, "years_of_service": service_years}
    if ceiling < LOAN_FLOOR:
        return EligibilityResult.deny(
            f"Your maximum {kind.label} amount (₱{ceiling:,.2f}) is below the minimum of ₱{LOAN_FLOOR:,.0f}.",
            **limits,
        )
    if requested_amount is not None:
        if requested_amount < LOAN_FLOOR:
            return EligibilityResult.deny(f"Minimum loan amount is ₱{LOAN_FLOOR:,.0f}.", **limits)
        if requested_amount > ceiling:
            return EligibilityResult.deny(
                f"The requested amount exceeds your maximum {kind.label} amount of ₱{ceiling:,.2f}.",
                **limits,
            )
    return EligibilityResult(eligible=True, **limits)


def _evaluate_reimbursement(profile: EmployeeProfile, requested_amount: Optional[Decimal]) -> EligibilityResult:
    if profile.benefits_package is None or profile.benefits_amount_remaining is None:
        return EligibilityResult.deny("You do not have a benefits package. Please contact HR.")
    remaining = Decimal(profile.benefits_amount_remaining)
    if remaining < 0:
        raise MalformedProfile(f"Employee {profile.employee_id} has a negative benefits balance")
    if requested_amount is not None and requested_amount > remaining:
        return EligibilityResult.deny(
            f"The requested amount (₱{requested_amount:,.2f}) exceeds your remaining benefits "
            f"balance (₱{remaining:,.2f})",
            max_amount=remaining,
        )
    return EligibilityResult(eligible=True, max_amount=remaining)


def evaluate(
    request_type: RequestType | str,
    profile: EmployeeProfile,
    active_requests: Iterable[HasTypeAndStatus],
    *,
    today: date,
    requested_amount: Optional[Decimal] = None,
) -> EligibilityResult:
    kind = coerce_request_type(request_type)
    _check_profile(profile)
    if requested_amount is not None:
        requested_amount = Decimal(requested_amount)

    if kind.is_loan:
        return _evaluate_loan(kind, profile, active_requests, today, requested_amount)
    if kind == RequestType.MEDICAL_REIMBURSEMENT:
        return _evaluate_reimbursement(profile, requested_amount)
    return EligibilityResult(eligible=True)


def package_ceiling(package: Optional[BenefitsPackage]) -> Decimal:
    return PACKAGE_CEILINGS.get(package, Decimal("0")) if package else Decimal("0")
