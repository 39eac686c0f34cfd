from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from benefitdesk.models.audit import ActivityLog


def log_activity(
    db: Session,
    *,
    actor_id: Optional[str],
    activity_type: str,
    request_id: Optional[str] = None,
    message: Optional[str] = None,
    payload: Optional[dict] = None,
) -> ActivityLog:
    activity = ActivityLog(
        actor_id=actor_id,
        type=activity_type,
        request_id=request_id,
        message=message,
        payload_json=payload,
    )
    db.add(activity)
    db.flush()
    return activity
