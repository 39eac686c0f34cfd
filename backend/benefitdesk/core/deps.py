from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from benefitdesk.core.security import decode_token
from benefitdesk.core.settings import settings
from benefitdesk.db.session import get_db
from benefitdesk.models.employee import Employee
from benefitdesk.schemas.request import Actor
from benefitdesk.workflow.clock import Clock, build_clock

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("benefitdesk.security")


def _log_auth_event(event: str, *, request: Request, extra: Optional[dict] = None) -> None:
    payload = {
        "event": event,
        "request_id": getattr(request.state, "request_id", None),
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else None,
    }
    if extra:
        payload.update(extra)
    logger.info(json.dumps(payload, default=str))


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_db),
) -> Employee:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        _log_auth_event("token_missing", request=request)
        raise credentials_exception

    try:
        payload = decode_token(credentials.credentials)
        employee_id: Optional[str] = payload.get("sub")
        if not employee_id:
            _log_auth_event("token_missing_sub", request=request)
            raise credentials_exception
    except (JWTError, ValueError, TypeError):
        _log_auth_event("token_invalid", request=request)
        raise credentials_exception

    employee = db.get(Employee, str(employee_id))
    if not employee or not employee.is_active:
        _log_auth_event("employee_inactive_or_missing", request=request, extra={"employee_id": employee_id})
        raise credentials_exception
    return employee


def get_actor(current_user: Employee = Depends(get_current_user)) -> Actor:
    return Actor(employee_id=current_user.employee_id, role=current_user.approver_role)


def require_approver(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorised to process approvals")
    return actor


def get_clock() -> Clock:
    return build_clock(settings.timezone, settings.date_override)
