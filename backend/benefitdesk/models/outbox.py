from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from benefitdesk.db.base import Base, IDMixin, TimestampMixin, UTCDateTime


class OutboxEvent(IDMixin, TimestampMixin, Base):
    __tablename__ = "outbox_events"

    name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    request_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    payload_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True, index=True)
