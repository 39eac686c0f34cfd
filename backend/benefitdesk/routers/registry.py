"""Central router registry."""
from __future__ import annotations

from fastapi import FastAPI

from benefitdesk.routers import bookings, eligibility, employees, requests

ALL_ROUTERS = [requests.router, bookings.router, eligibility.router, employees.router]


def include_all_routers(app: FastAPI) -> None:
    for router in ALL_ROUTERS:
        app.include_router(router)
