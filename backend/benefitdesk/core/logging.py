from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request, Response
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware

from benefitdesk.core.security import decode_token

# Set per HTTP request so service and workflow logs carry the same id.
current_request_id: ContextVar[Optional[str]] = ContextVar("current_request_id", default=None)

EXTRA_KEYS = (
    "request_id",
    "employee_id",
    "path",
    "method",
    "status_code",
    "latency_ms",
    "benefit_request_id",
    "request_type",
    "stage_level",
    "attempt",
    "event_type",
)


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            request_id = current_request_id.get()
            if request_id is not None:
                record.request_id = request_id
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line. Known ``extra`` keys are lifted to the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({key: getattr(record, key) for key in EXTRA_KEYS if hasattr(record, key)})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())
    logging.basicConfig(level=level, handlers=[handler], force=True)


def _bearer_subject(request: Request) -> Optional[str]:
    scheme, _, token = (request.headers.get("authorization") or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    try:
        subject = decode_token(token.strip()).get("sub")
    except (JWTError, ValueError, TypeError):
        return None
    return str(subject) if subject is not None else None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, logger_name: str = "benefitdesk.access") -> None:
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)
        self.security_logger = logging.getLogger("benefitdesk.security")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        token = current_request_id.set(request_id)
        start = time.perf_counter()
        extra: dict[str, Any] = {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "employee_id": _bearer_subject(request),
        }
        try:
            response = await call_next(request)
        except Exception:
            extra["latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
            self.logger.exception("unhandled_exception", extra=extra)
            raise
        finally:
            current_request_id.reset(token)

        extra["status_code"] = response.status_code
        extra["latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        self.logger.info("request", extra=extra)
        if response.status_code in (401, 403):
            self.security_logger.info("denied", extra=extra)

        response.headers["X-Request-Id"] = request_id
        return response
