from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Enum, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from benefitdesk.db.base import Base, IDMixin, TimestampMixin, UTCDateTime
from benefitdesk.models.enums import ApproverRole, RequestStatus, RequestType, StageStatus


class RequestRecord(IDMixin, TimestampMixin, Base):
    __tablename__ = "benefit_requests"

    public_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, index=True)
    token: Mapped[Optional[str]] = mapped_column(String(16), nullable=True, unique=True)
    request_type: Mapped[RequestType] = mapped_column(
        Enum(RequestType, name="request_type"),
        nullable=False,
        index=True,
    )
    requester_id: Mapped[str] = mapped_column(ForeignKey("employees.employee_id"), nullable=False, index=True)
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name="request_status"),
        default=RequestStatus.PENDING,
        nullable=False,
        index=True,
    )
    # Index of the active stage, kept alongside the stages for inbox queries.
    current_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    payload_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    requester: Mapped["Employee"] = relationship(back_populates="requests")
    stages: Mapped[List["ApprovalStage"]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="ApprovalStage.level",
    )
    booking: Mapped[Optional["Booking"]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        uselist=False,
    )
    payments: Mapped[List["LoanPayment"]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="LoanPayment.paid_at",
    )


class ApprovalStage(IDMixin, Base):
    __tablename__ = "approval_stages"
    __table_args__ = (
        UniqueConstraint("request_id", "level", name="uq_approval_stage_request_level"),
    )

    request_id: Mapped[int] = mapped_column(
        ForeignKey("benefit_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[ApproverRole] = mapped_column(Enum(ApproverRole, name="approver_role"), nullable=False)
    status: Mapped[StageStatus] = mapped_column(
        Enum(StageStatus, name="stage_status"),
        default=StageStatus.PENDING,
        nullable=False,
    )
    actor_id: Mapped[Optional[str]] = mapped_column(ForeignKey("employees.employee_id"), nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    request: Mapped["RequestRecord"] = relationship(back_populates="stages")
