"""
Tests for structured logging with request context
"""
import json
import logging

import pytest

from core.logging import (
    JSONFormatter,
    RequestContextFilter,
    bind_log_context,
    current_log_context,
    reset_log_context,
    start_log_context,
)


def _record(message="hello", **extra_fields):
    record = logging.LogRecord("services.test", logging.INFO, __file__, 10, message, None, None)
    if extra_fields:
        record.extra_fields = extra_fields
    return record


@pytest.fixture
def request_context():
    token = start_log_context(request_id="req-1")
    yield
    reset_log_context(token)


class _Collect(logging.Handler):
    """Formats at emit time, while the request context is still live."""

    def __init__(self):
        super().__init__()
        self.entries = []
        self.formatter = JSONFormatter()

    def emit(self, record):
        self.entries.append(json.loads(self.formatter.format(record)))


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "services.test"
        assert "request_id" not in data

    def test_extra_fields(self):
        data = json.loads(JSONFormatter().format(_record(chakra_index=2, points=20)))
        assert data["chakra_index"] == 2
        assert data["points"] == 20

    def test_request_context_included(self, request_context):
        bind_log_context(user_id="u-1")
        data = json.loads(JSONFormatter().format(_record()))
        assert data["request_id"] == "req-1"
        assert data["user_id"] == "u-1"

    def test_extra_fields_win(self, request_context):
        data = json.loads(JSONFormatter().format(_record(request_id="explicit")))
        assert data["request_id"] == "explicit"

    def test_non_json_values(self):
        from uuid import uuid4
        value = uuid4()
        data = json.loads(JSONFormatter().format(_record(user_id=value)))
        assert data["user_id"] == str(value)


class TestContext:
    def test_bind_outside_request_is_noop(self):
        bind_log_context(user_id="nobody")
        assert current_log_context() == {}

    def test_reset_restores_previous(self):
        token = start_log_context(request_id="outer")
        inner = start_log_context(request_id="inner")
        reset_log_context(inner)
        assert current_log_context() == {"request_id": "outer"}
        reset_log_context(token)
        assert current_log_context() == {}

    def test_filter_sets_placeholders(self):
        record = _record()
        RequestContextFilter().filter(record)
        assert record.request_id == "-"
        assert record.user_id == "-"

    def test_filter_copies_context(self, request_context):
        record = _record()
        RequestContextFilter().filter(record)
        assert record.request_id == "req-1"


class TestRequestLogs:
    def test_engine_logs_carry_request_and_user(self, client, auth_headers, user_id):
        engine_logger = logging.getLogger("services.activation_ledger")
        handler = _Collect()
        previous_level = engine_logger.level
        engine_logger.addHandler(handler)
        engine_logger.setLevel(logging.INFO)
        try:
            response = client.post(
                "/v1/energy/chakras/2/activate",
                headers=dict(auth_headers, **{"X-Request-ID": "req-42"}),
            )
        finally:
            engine_logger.removeHandler(handler)
            engine_logger.setLevel(previous_level)

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "req-42"
        activated = [e for e in handler.entries if e["message"].startswith("Chakra 2 activated")]
        assert len(activated) == 1
        assert activated[0]["request_id"] == "req-42"
        assert activated[0]["user_id"] == str(user_id)

    def test_request_id_generated(self, client, auth_headers):
        response = client.get("/v1/energy/progress", headers=auth_headers)
        assert response.headers["X-Request-ID"]
