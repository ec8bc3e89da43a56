import json
import logging

from teachback.logging import REQUEST_ID_HEADER, JsonFormatter, _request_context, _resolve_level


def _record(msg="relay: starting"):
    return logging.LogRecord("teachback.relay", logging.INFO, __file__, 1, msg, None, None)


def test_formatter_without_request():
    data = json.loads(JsonFormatter().format(_record()))
    assert data["level"] == "INFO"
    assert data["logger"] == "teachback.relay"
    assert data["message"] == "relay: starting"
    assert "request_id" not in data


def test_formatter_tags_records_with_current_request():
    token = _request_context.set(("abc123", "/api/chat"))
    try:
        data = json.loads(JsonFormatter().format(_record()))
    finally:
        _request_context.reset(token)
    assert data["request_id"] == "abc123"
    assert data["path"] == "/api/chat"


def test_resolve_level():
    assert _resolve_level("debug") == logging.DEBUG
    assert _resolve_level("10") == 10
    assert _resolve_level("nonsense") == logging.INFO
    assert _resolve_level(None, logging.WARNING) == logging.WARNING


def test_response_carries_generated_request_id(client):
    r = client.get("/health")
    assert len(r.headers[REQUEST_ID_HEADER]) == 12


def test_response_echoes_incoming_request_id(client):
    r = client.get("/health", headers={REQUEST_ID_HEADER: "req-42"})
    assert r.headers[REQUEST_ID_HEADER] == "req-42"
