"""Tests: structured log formatters."""

import json
import logging

from tramitation.middleware.logging_config import JSONFormatter, ReadableFormatter


def _record(**extra):
    record = logging.LogRecord(
        "tramitation.services.tramitation_engine", logging.INFO, __file__, 10,
        "Process tramitated", None, None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_promotes_routing_fields():
    record = _record(process_id=7, actor_id="tech1", from_role="TECHNICAL_ANALYSIS",
                     to_role="FINANCE_OFFICE", action="forward", sequence=3)

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "Process tramitated"
    assert payload["process_id"] == 7
    assert payload["actor_id"] == "tech1"
    assert payload["to_role"] == "FINANCE_OFFICE"
    assert payload["sequence"] == 3
    assert "error_kind" not in payload


def test_json_formatter_ignores_request_fields():
    record = _record(method="POST", path="/api/v1/processes", status=201, duration_ms=4.2)

    payload = json.loads(JSONFormatter().format(record))

    for key in ("method", "path", "status", "duration_ms"):
        assert key not in payload


def test_readable_formatter_appends_process_context():
    line = ReadableFormatter().format(_record(process_id=42))
    assert line.endswith("Process tramitated [process=42]")
