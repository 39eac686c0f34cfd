from __future__ import annotations

from enum import StrEnum


class RequestType(StrEnum):
    SALARY_LOAN = "salary_loan"
    CAR_LOAN = "car_loan"
    HOUSING_LOAN = "housing_loan"
    MEDICAL_REIMBURSEMENT = "medical_reimbursement"
    MEDICAL_LOA = "medical_loa"
    HOUSE_BOOKING = "house_booking"

    @property
    def label(self) -> str:
        return REQUEST_TYPE_LABELS[self]

    @property
    def token_prefix(self) -> str:
        return TOKEN_PREFIXES[self]

    @property
    def is_loan(self) -> bool:
        return self in LOAN_TYPES


REQUEST_TYPE_LABELS = {
    RequestType.SALARY_LOAN: "Salary Loan",
    RequestType.CAR_LOAN: "Car Loan",
    RequestType.HOUSING_LOAN: "Housing Loan",
    RequestType.MEDICAL_REIMBURSEMENT: "Medical Reimbursement",
    RequestType.MEDICAL_LOA: "Medical LOA",
    RequestType.HOUSE_BOOKING: "Staff House Booking",
}

TOKEN_PREFIXES = {
    RequestType.SALARY_LOAN: "SL",
    RequestType.CAR_LOAN: "CL",
    RequestType.HOUSING_LOAN: "HL",
    RequestType.MEDICAL_REIMBURSEMENT: "MR",
    RequestType.MEDICAL_LOA: "ML",
    RequestType.HOUSE_BOOKING: "HB",
}

LOAN_TYPES = frozenset({RequestType.SALARY_LOAN, RequestType.CAR_LOAN, RequestType.HOUSING_LOAN})


class RequestStatus(StrEnum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"
    # Loan repaid in full.
    COMPLETED = "Completed"

    @property
    def is_terminal(self) -> bool:
        return self != RequestStatus.PENDING


class StageStatus(StrEnum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Decision(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"


class ApproverRole(StrEnum):
    HR = "HR"
    SUPERVISOR = "Supervisor/Division Manager"
    VICE_PRESIDENT = "Vice President"
    PRESIDENT = "President"


class RoleClass(StrEnum):
    CLASS_A = "Class A"
    CLASS_B = "Class B"
    CLASS_C = "Class C"


class BenefitsPackage(StrEnum):
    PACKAGE_A = "Package A"
    PACKAGE_B = "Package B"


class PatientType(StrEnum):
    INPATIENT = "inpatient"
    OUTPATIENT = "outpatient"


class ClaimMethod(StrEnum):
    CASH = "cash"
    SALARY = "salary"


class PaymentMethod(StrEnum):
    PAYROLL_DEDUCTION = "Payroll Deduction"
    EARLY_PAYMENT = "Early Payment"

    @property
    def transaction_prefix(self) -> str:
        return "PD" if self == PaymentMethod.PAYROLL_DEDUCTION else "EP"
