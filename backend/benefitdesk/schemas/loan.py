from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from benefitdesk.models.enums import PaymentMethod, RequestStatus, RequestType
from benefitdesk.schemas.base import FrozenModel, ORMModel


class LoanPaymentEntry(FrozenModel):
    transaction_id: str
    amount: Decimal
    method: PaymentMethod
    paid_at: datetime
    recorded_by: Optional[str] = None
    notes: Optional[str] = None


class LoanPaymentCreate(ORMModel):
    amount: Decimal = Field(gt=0, decimal_places=2)
    method: PaymentMethod = PaymentMethod.PAYROLL_DEDUCTION
    notes: Optional[str] = Field(default=None, max_length=1000)


class LoanBalanceRead(FrozenModel):
    request_id: str
    token: Optional[str] = None
    request_type: RequestType
    status: RequestStatus
    principal: Decimal
    amount_paid: Decimal
    balance: Decimal
    payments: list[LoanPaymentEntry] = []
