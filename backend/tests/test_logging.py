from __future__ import annotations

import json
import logging

from benefitdesk.core.logging import JsonFormatter, RequestIdFilter, current_request_id


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("benefitdesk.requests", logging.INFO, __file__, 1, "decision %s", ("approve",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_lifts_known_extra_keys():
    line = JsonFormatter().format(_record(benefit_request_id="R-1", stage_level=2, unrelated="x"))
    entry = json.loads(line)
    assert entry["message"] == "decision approve"
    assert entry["benefit_request_id"] == "R-1"
    assert entry["stage_level"] == 2
    assert "unrelated" not in entry


def test_request_id_filter_uses_context():
    token = current_request_id.set("req-42")
    try:
        record = _record()
        RequestIdFilter().filter(record)
    finally:
        current_request_id.reset(token)
    assert record.request_id == "req-42"

    explicit = _record(request_id="given")
    RequestIdFilter().filter(explicit)
    assert explicit.request_id == "given"


def test_response_echoes_request_id(api):
    client, _ = api
    response = client.get("/api/bookings/properties", headers={"X-Request-Id": "trace-me"})
    assert response.status_code == 200
    assert response.headers["X-Request-Id"] == "trace-me"
