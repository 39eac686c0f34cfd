from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from benefitdesk.db.base import Base, IDMixin, TimestampMixin, UTCDateTime
from benefitdesk.models.enums import PaymentMethod


class LoanPayment(IDMixin, TimestampMixin, Base):
    """One repayment applied to an approved loan."""

    __tablename__ = "loan_payments"

    request_id: Mapped[int] = mapped_column(
        ForeignKey("benefit_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod, name="payment_method"), nullable=False)
    paid_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    recorded_by: Mapped[Optional[str]] = mapped_column(ForeignKey("employees.employee_id"), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    request: Mapped["RequestRecord"] = relationship(back_populates="payments")
