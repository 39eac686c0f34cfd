"""Staff-house availability and conflict detection.

All datetimes are local wall-clock values. An existing booking blocks
every calendar day from its check-in date to its check-out date
inclusive, and the property needs a cleaning buffer after each checkout
before anyone may check in again.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from enum import StrEnum
from typing import Iterable, Iterator, Optional

from benefitdesk.models.enums import RequestStatus
from benefitdesk.schemas.base import FrozenModel
from benefitdesk.workflow.clock import wall_time
from benefitdesk.workflow.errors import InvalidBookingRange, MaxStayExceeded

CLEANING_BUFFER = timedelta(hours=3)
MAX_STAY_DAYS = 5

BLOCKING_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.APPROVED})


class ConflictReason(StrEnum):
    PAST = "past"
    BOOKED = "booked"
    CLEANING_BUFFER = "cleaning_buffer"


class BookingWindow(FrozenModel):
    request_id: str
    property_id: str
    requester_id: Optional[str] = None
    check_in: datetime
    check_out: datetime
    status: RequestStatus

    @property
    def buffer_end(self) -> datetime:
        return self.check_out + CLEANING_BUFFER

    def blocked_days(self) -> Iterator[date]:
        yield from _days(self.check_in.date(), self.check_out.date())


class Conflict(FrozenModel):
    day: date
    reason: ConflictReason
    request_id: Optional[str] = None
    message: str


def _days(first: date, last: date) -> Iterator[date]:
    day = first
    while day <= last:
        yield day
        day += timedelta(days=1)


def stay_length(check_in: datetime, check_out: datetime) -> int:
    return (check_out.date() - check_in.date()).days


def validate_range(check_in: datetime, check_out: datetime) -> None:
    if stay_length(check_in, check_out) > MAX_STAY_DAYS:
        raise MaxStayExceeded(f"Maximum stay is {MAX_STAY_DAYS} days")
    if check_out <= check_in:
        raise InvalidBookingRange()


def _past_conflict(check_in: datetime, now: datetime) -> Optional[Conflict]:
    if check_in.date() < now.date():
        return Conflict(
            day=check_in.date(),
            reason=ConflictReason.PAST,
            message="Check-in date must be in the future",
        )
    if check_in.date() == now.date() and check_in <= now:
        return Conflict(
            day=check_in.date(),
            reason=ConflictReason.PAST,
            message="Check-in time must be in the future",
        )
    return None


def _buffer_message(booking: BookingWindow) -> str:
    return (
        f"Within the {int(CLEANING_BUFFER.total_seconds() // 3600)}-hour cleaning period after a checkout "
        f"at {booking.check_out:%Y-%m-%d %H:%M}; earliest check-in is {booking.buffer_end:%Y-%m-%d %H:%M}"
    )


def _booking_conflicts(
    booking: BookingWindow,
    check_in: datetime,
    proposed_days: set[date],
) -> Iterator[Conflict]:
    arrival_day = check_in.date()
    checkout_day = booking.check_out.date()
    for day in booking.blocked_days():
        if day not in proposed_days:
            continue
        if day == arrival_day == checkout_day:
            if check_in >= booking.buffer_end:
                continue
            yield Conflict(
                day=day,
                reason=ConflictReason.CLEANING_BUFFER,
                request_id=booking.request_id,
                message=_buffer_message(booking),
            )
            continue
        yield Conflict(
            day=day,
            reason=ConflictReason.BOOKED,
            request_id=booking.request_id,
            message=f"Already booked from {booking.check_in:%Y-%m-%d %H:%M} to {booking.check_out:%Y-%m-%d %H:%M}",
        )

    # A late checkout pushes the buffer past midnight into the next day.
    buffer_end = booking.buffer_end
    if buffer_end.date() > checkout_day and arrival_day == buffer_end.date() and check_in < buffer_end:
        yield Conflict(
            day=arrival_day,
            reason=ConflictReason.CLEANING_BUFFER,
            request_id=booking.request_id,
            message=_buffer_message(booking),
        )


def explain_conflict(
    property_id: str,
    check_in: datetime,
    check_out: datetime,
    existing: Iterable[BookingWindow],
    *,
    now: datetime,
    exclude_request_id: Optional[str] = None,
) -> list[Conflict]:
    """Every reason the proposed stay cannot be booked, ordered by day.

    Raises ``MaxStayExceeded`` or ``InvalidBookingRange`` before looking
    at any other booking.
    """
    validate_range(check_in, check_out)

    conflicts: list[Conflict] = []
    past = _past_conflict(check_in, wall_time(now))
    if past:
        conflicts.append(past)

    proposed_days = set(_days(check_in.date(), check_out.date()))
    for booking in existing:
        if booking.property_id != property_id or booking.status not in BLOCKING_STATUSES:
            continue
        if exclude_request_id and booking.request_id == exclude_request_id:
            continue
        conflicts.extend(_booking_conflicts(booking, check_in, proposed_days))

    conflicts.sort(key=lambda c: (c.day, c.reason != ConflictReason.PAST))
    return conflicts


def is_range_available(
    property_id: str,
    check_in: datetime,
    check_out: datetime,
    existing: Iterable[BookingWindow],
    *,
    now: datetime,
    exclude_request_id: Optional[str] = None,
) -> bool:
    return not explain_conflict(
        property_id,
        check_in,
        check_out,
        existing,
        now=now,
        exclude_request_id=exclude_request_id,
    )


def requester_overlaps(
    requester_id: str,
    check_in: datetime,
    check_out: datetime,
    existing: Iterable[BookingWindow],
    *,
    exclude_request_id: Optional[str] = None,
) -> list[BookingWindow]:
    """Approved stays of the same employee, at any property, that overlap the proposal."""
    return [
        booking
        for booking in existing
        if booking.requester_id == requester_id
        and booking.status == RequestStatus.APPROVED
        and booking.request_id != exclude_request_id
        and check_in < booking.check_out
        and check_out > booking.check_in
    ]
