from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from benefitdesk.core.logging import RequestLoggingMiddleware, configure_logging
from benefitdesk.core.settings import settings
from benefitdesk.db.session import get_db
from benefitdesk.routers.registry import include_all_routers
from benefitdesk.workflow.errors import BookingUnavailable, WorkflowError

configure_logging(level=settings.log_level)
logger = logging.getLogger("benefitdesk")

app = FastAPI(title=settings.project_name, version=settings.project_version)

# Always allow localhost during development.
allow_origin_regex = None
if not settings.is_production:
    allow_origin_regex = r"^http://(localhost|127\.0\.0\.1)(:\d+)?$"
else:
    if any(origin.strip() == "*" for origin in settings.allow_origins):
        raise RuntimeError("ALLOW_ORIGINS cannot include '*' in production")
    if settings.jwt_secret.startswith("change_me"):
        raise RuntimeError("JWT_SECRET must be set in production")
    if settings.date_override is not None:
        raise RuntimeError("DATE_OVERRIDE cannot be set in production")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-Id", "Accept"],
)
app.add_middleware(RequestLoggingMiddleware)

include_all_routers(app)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "workflow fault: %s",
            exc.reason,
            extra={"path": request.url.path, "method": request.method},
        )
    body = {"detail": exc.reason, "code": exc.code}
    if isinstance(exc, BookingUnavailable) and exc.conflicts:
        body["conflicts"] = jsonable_encoder(exc.conflicts)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.get("/healthz", tags=["health"])
def healthcheck(db: Session = Depends(get_db)) -> dict[str, str]:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Healthcheck failed: %s", exc, exc_info=True)
        raise HTTPException(status_code=503, detail="Service unavailable") from exc
    return {"status": "ok", "database": "ok"}
