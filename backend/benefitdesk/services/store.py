"""SQLAlchemy adapter that persists request snapshots.

Writes are conditional on the version that was read, so two callers
acting on the same snapshot cannot both succeed; the loser gets
``ConcurrentUpdate`` and must re-read.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.orm import Session, selectinload

from benefitdesk.models.benefit_request import ApprovalStage, RequestRecord
from benefitdesk.models.booking import Booking, StaffHouse
from benefitdesk.models.employee import Employee
from benefitdesk.models.loan_payment import LoanPayment
from benefitdesk.models.enums import ApproverRole, RequestStatus, RequestType
from benefitdesk.schemas.employee import EmployeeProfile
from benefitdesk.schemas.loan import LoanPaymentEntry
from benefitdesk.schemas.request import BenefitRequest, HouseBookingPayload, RequestSummary, Stage
from benefitdesk.workflow.availability import BLOCKING_STATUSES, BookingWindow
from benefitdesk.workflow.errors import ConcurrentUpdate, EmployeeNotFound, InvalidPayload, RequestNotFound

logger = logging.getLogger("benefitdesk.store")

CENT = Decimal("0.01")


def to_snapshot(record: RequestRecord) -> BenefitRequest:
    return BenefitRequest(
        id=record.public_id,
        token=record.token,
        request_type=record.request_type,
        requester_id=record.requester_id,
        submitted_at=record.submitted_at,
        updated_at=record.updated_at,
        status=record.status,
        payload=record.payload_json,
        chain=tuple(Stage.model_validate(row) for row in record.stages),
        version=record.version,
        cancelled_at=record.cancelled_at,
        cancelled_by=record.cancelled_by,
        cancel_reason=record.cancel_reason,
    )


def format_token(request_type: RequestType, sequence: int) -> str:
    return f"{request_type.token_prefix}-{sequence:06d}"


class RequestStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # -- requests -----------------------------------------------------------

    def _load(self, request_id: str) -> RequestRecord:
        record = self.db.execute(
            select(RequestRecord)
            .options(selectinload(RequestRecord.stages))
            .where(RequestRecord.public_id == request_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise RequestNotFound()
        return record

    def get(self, request_id: str) -> BenefitRequest:
        return to_snapshot(self._load(request_id))

    def add(self, request: BenefitRequest) -> BenefitRequest:
        record = RequestRecord(
            public_id=request.id,
            request_type=request.request_type,
            requester_id=request.requester_id,
            status=request.status,
            current_level=request.active_level,
            payload_json=request.payload.model_dump(mode="json"),
            version=1,
            submitted_at=request.submitted_at,
            updated_at=request.updated_at,
            stages=[
                ApprovalStage(level=stage.level, role=stage.role, status=stage.status)
                for stage in request.chain
            ],
        )
        payload = request.payload
        if isinstance(payload, HouseBookingPayload):
            record.booking = Booking(
                property_id=payload.property_id,
                requester_id=request.requester_id,
                check_in=payload.check_in,
                check_out=payload.check_out,
                status=request.status,
            )
        self.db.add(record)
        self.db.flush()

        record.token = format_token(record.request_type, record.id)
        self.db.flush()
        logger.info(
            "request stored as %s",
            record.token,
            extra={"benefit_request_id": record.public_id, "request_type": str(record.request_type)},
        )
        return to_snapshot(record)

    def save(self, updated: BenefitRequest, *, expected_version: int) -> BenefitRequest:
        """Persist ``updated`` only if the stored version is still ``expected_version``."""
        result = self.db.execute(
            update(RequestRecord)
            .where(
                RequestRecord.public_id == updated.id,
                RequestRecord.version == expected_version,
            )
            .values(
                status=updated.status,
                current_level=updated.active_level,
                updated_at=updated.updated_at,
                version=expected_version + 1,
                cancelled_at=updated.cancelled_at,
                cancelled_by=updated.cancelled_by,
                cancel_reason=updated.cancel_reason,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "stale write rejected at version %s",
                expected_version,
                extra={"benefit_request_id": updated.id},
            )
            raise ConcurrentUpdate()

        record_id = self.db.execute(
            select(RequestRecord.id).where(RequestRecord.public_id == updated.id)
        ).scalar_one()
        for stage in updated.chain:
            self.db.execute(
                update(ApprovalStage)
                .where(and_(ApprovalStage.request_id == record_id, ApprovalStage.level == stage.level))
                .values(
                    status=stage.status,
                    actor_id=stage.actor_id,
                    decided_at=stage.decided_at,
                    comment=stage.comment,
                )
                .execution_options(synchronize_session=False)
            )
        if updated.request_type == RequestType.HOUSE_BOOKING:
            self.db.execute(
                update(Booking)
                .where(Booking.request_id == record_id)
                .values(status=updated.status)
                .execution_options(synchronize_session=False)
            )
        self.db.flush()
        return self.get(updated.id)

    def list_for_requester(self, requester_id: str) -> list[BenefitRequest]:
        records = self.db.execute(
            select(RequestRecord)
            .options(selectinload(RequestRecord.stages))
            .where(RequestRecord.requester_id == requester_id)
            .order_by(RequestRecord.submitted_at.desc())
            .execution_options(populate_existing=True)
        ).scalars()
        return [to_snapshot(record) for record in records]

    def summaries_for_requester(self, requester_id: str) -> list[RequestSummary]:
        rows = self.db.execute(
            select(RequestRecord.public_id, RequestRecord.token, RequestRecord.request_type, RequestRecord.status)
            .where(RequestRecord.requester_id == requester_id)
        ).all()
        return [
            RequestSummary(id=row.public_id, token=row.token, request_type=row.request_type, status=row.status)
            for row in rows
        ]

    def inbox(self, role: ApproverRole) -> list[BenefitRequest]:
        """Pending requests whose active stage is waiting on ``role``."""
        records = self.db.execute(
            select(RequestRecord)
            .join(
                ApprovalStage,
                and_(
                    ApprovalStage.request_id == RequestRecord.id,
                    ApprovalStage.level == RequestRecord.current_level,
                ),
            )
            .options(selectinload(RequestRecord.stages))
            .where(RequestRecord.status == RequestStatus.PENDING, ApprovalStage.role == role)
            .order_by(RequestRecord.submitted_at.asc())
            .execution_options(populate_existing=True)
        ).scalars()
        return [to_snapshot(record) for record in records]

    # -- loan payments ------------------------------------------------------

    def _record_id(self, request_id: str) -> int:
        record_id = self.db.execute(
            select(RequestRecord.id).where(RequestRecord.public_id == request_id)
        ).scalar_one_or_none()
        if record_id is None:
            raise RequestNotFound()
        return record_id

    def payments(self, request_id: str) -> list[LoanPaymentEntry]:
        rows = self.db.execute(
            select(LoanPayment)
            .where(LoanPayment.request_id == self._record_id(request_id))
            .order_by(LoanPayment.paid_at.asc(), LoanPayment.id.asc())
        ).scalars()
        return [LoanPaymentEntry.model_validate(row) for row in rows]

    def amount_paid(self, request_id: str) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(LoanPayment.amount), 0))
            .where(LoanPayment.request_id == self._record_id(request_id))
        ).scalar_one()
        return Decimal(str(total)).quantize(CENT)

    def add_payment(self, request_id: str, payment: LoanPaymentEntry) -> None:
        self.db.add(LoanPayment(request_id=self._record_id(request_id), **payment.model_dump()))
        self.db.flush()

    # -- bookings -----------------------------------------------------------

    def booking_windows(
        self,
        *,
        property_id: Optional[str] = None,
        requester_id: Optional[str] = None,
    ) -> list[BookingWindow]:
        query = (
            select(Booking, RequestRecord.public_id)
            .join(RequestRecord, RequestRecord.id == Booking.request_id)
            .where(Booking.status.in_(sorted(BLOCKING_STATUSES)))
        )
        if property_id is not None:
            query = query.where(Booking.property_id == property_id)
        if requester_id is not None:
            query = query.where(Booking.requester_id == requester_id)
        return [
            BookingWindow(
                request_id=public_id,
                property_id=booking.property_id,
                requester_id=booking.requester_id,
                check_in=booking.check_in,
                check_out=booking.check_out,
                status=booking.status,
            )
            for booking, public_id in self.db.execute(query).all()
        ]

    def property_version(self, property_id: str) -> int:
        house = self.db.get(StaffHouse, property_id, populate_existing=True)
        if house is None or not house.is_active:
            raise InvalidPayload(f"Unknown staff house: {property_id}")
        return house.booking_version

    def claim_property(self, property_id: str, expected_version: int) -> None:
        result = self.db.execute(
            update(StaffHouse)
            .where(StaffHouse.id == property_id, StaffHouse.booking_version == expected_version)
            .values(booking_version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentUpdate("Another booking for this property was submitted at the same time")

    # -- employees ----------------------------------------------------------

    def employee(self, employee_id: str) -> Employee:
        employee = self.db.get(Employee, employee_id, populate_existing=True)
        if employee is None or not employee.is_active:
            raise EmployeeNotFound(f"Employee {employee_id} not found")
        return employee

    def profile(self, employee_id: str) -> EmployeeProfile:
        return EmployeeProfile.model_validate(self.employee(employee_id))

    def deduct_benefits(self, employee_id: str, amount: Decimal) -> Decimal:
        """Subtract ``amount`` from the stored balance, clamping at zero.

        The arithmetic runs in the UPDATE so concurrent approvals each apply
        to the committed balance rather than to a value read earlier.
        """
        balance = Employee.benefits_amount_remaining
        result = self.db.execute(
            update(Employee)
            .where(Employee.employee_id == employee_id, balance.is_not(None))
            .values(benefits_amount_remaining=case((balance < amount, 0), else_=balance - amount))
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise EmployeeNotFound(f"Employee {employee_id} has no benefits balance")
        return self.db.execute(select(balance).where(Employee.employee_id == employee_id)).scalar_one()
