from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from benefitdesk.db.base import Base, IDMixin, TimestampMixin
from benefitdesk.models.enums import RequestStatus


class StaffHouse(TimestampMixin, Base):
    __tablename__ = "staff_houses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Bumped on every booking insert; writers compare-and-swap on it.
    booking_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    bookings: Mapped[List["Booking"]] = relationship(back_populates="property")


class Booking(IDMixin, TimestampMixin, Base):
    __tablename__ = "bookings"

    request_id: Mapped[int] = mapped_column(
        ForeignKey("benefit_requests.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    property_id: Mapped[str] = mapped_column(ForeignKey("staff_houses.id"), nullable=False, index=True)
    requester_id: Mapped[str] = mapped_column(ForeignKey("employees.employee_id"), nullable=False, index=True)
    # Local wall-clock times.
    check_in: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, index=True)
    check_out: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, index=True)
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name="request_status"),
        default=RequestStatus.PENDING,
        nullable=False,
        index=True,
    )

    request: Mapped["RequestRecord"] = relationship(back_populates="booking")
    property: Mapped["StaffHouse"] = relationship(back_populates="bookings")
