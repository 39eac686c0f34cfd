from __future__ import annotations

from datetime import datetime, timezone

from benefitdesk.models.enums import RequestType
from benefitdesk.services.outbox import decode, mark_dispatched, pending_events, publish
from benefitdesk.workflow.events import RequestRejected, RequestSubmitted


def test_pending_events_are_decoded_and_dispatched_once(db):
    publish(
        db,
        RequestSubmitted(request_id="R-1", requester_id="E-100", request_type=RequestType.CAR_LOAN, active_level=1),
    )
    publish(
        db,
        RequestRejected(
            request_id="R-1", requester_id="E-100", request_type=RequestType.CAR_LOAN, reason="Missing OR/CR"
        ),
    )
    db.commit()

    rows = pending_events(db)
    events = [decode(row) for row in rows]
    assert [type(e) for e in events] == [RequestSubmitted, RequestRejected]
    assert events[1].reason == "Missing OR/CR"

    mark_dispatched(db, rows[0], datetime(2026, 3, 2, 1, 0, tzinfo=timezone.utc))
    db.commit()

    assert [row.name for row in pending_events(db)] == ["request_rejected"]
