"""Tests for structured logging."""
import json
import logging

from marketplace.logging_config import JSONFormatter, RequestIDFilter, setup_logging
from marketplace.middleware.request_id import request_id_var


def _record(msg="report %s resolved", args=("r-1",)):
    return logging.LogRecord("marketplace.test", logging.INFO, __file__, 1, msg, args, None)


def test_json_formatter():
    line = json.loads(JSONFormatter().format(_record()))
    assert line["level"] == "INFO"
    assert line["logger"] == "marketplace.test"
    assert line["message"] == "report r-1 resolved"
    assert "request_id" not in line


def test_request_id_attached():
    token = request_id_var.set("req-42")
    try:
        record = _record()
        assert RequestIDFilter().filter(record) is True
    finally:
        request_id_var.reset(token)
    assert json.loads(JSONFormatter().format(record))["request_id"] == "req-42"


def test_context_fields_from_extra():
    record = _record()
    record.report_id = "r-1"
    record.moderator_id = "m-9"
    RequestIDFilter().filter(record)
    line = json.loads(JSONFormatter().format(record))
    assert line["report_id"] == "r-1"
    assert line["moderator_id"] == "m-9"
    # no request in flight
    assert "request_id" not in line


def test_setup_logging_json():
    handler = setup_logging(log_format="json", level="debug")
    try:
        assert isinstance(handler.formatter, JSONFormatter)
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    finally:
        setup_logging()
