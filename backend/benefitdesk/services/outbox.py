"""Outbox writer for domain events.

Events are inserted in the caller's transaction so they commit or roll
back together with the state change; a separate dispatcher delivers them
and stamps ``dispatched_at``.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from pydantic import TypeAdapter
from sqlalchemy import select
from sqlalchemy.orm import Session

from benefitdesk.db.base import utcnow
from benefitdesk.models.outbox import OutboxEvent
from benefitdesk.workflow.events import DomainEvent

logger = logging.getLogger("benefitdesk.outbox")

_EVENT_ADAPTER: TypeAdapter[DomainEvent] = TypeAdapter(DomainEvent)


def publish(db: Session, event: DomainEvent) -> OutboxEvent:
    row = OutboxEvent(
        name=event.name,
        request_id=event.request_id,
        payload_json=event.model_dump(mode="json"),
    )
    db.add(row)
    db.flush()
    logger.info(
        "event %s queued",
        event.name,
        extra={"benefit_request_id": event.request_id, "event_type": event.name},
    )
    return row


def pending_events(db: Session, limit: int = 100) -> list[OutboxEvent]:
    return list(
        db.execute(
            select(OutboxEvent)
            .where(OutboxEvent.dispatched_at.is_(None))
            .order_by(OutboxEvent.id.asc())
            .limit(limit)
        ).scalars()
    )


def mark_dispatched(db: Session, event: OutboxEvent, when: Optional[datetime] = None) -> None:
    event.dispatched_at = when or utcnow()
    db.add(event)
    db.flush()


def decode(row: OutboxEvent) -> DomainEvent:
    return _EVENT_ADAPTER.validate_python(row.payload_json)
