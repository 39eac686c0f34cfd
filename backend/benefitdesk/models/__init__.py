"""Import all models so SQLAlchemy metadata is fully registered."""

from benefitdesk.db.base import Base

from benefitdesk.models.audit import ActivityLog
from benefitdesk.models.benefit_request import ApprovalStage, RequestRecord
from benefitdesk.models.booking import Booking, StaffHouse
from benefitdesk.models.employee import Employee
from benefitdesk.models.loan_payment import LoanPayment
from benefitdesk.models.outbox import OutboxEvent

__all__ = [
    "ActivityLog",
    "ApprovalStage",
    "Base",
    "Booking",
    "Employee",
    "LoanPayment",
    "OutboxEvent",
    "RequestRecord",
    "StaffHouse",
]
