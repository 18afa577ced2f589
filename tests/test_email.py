"""Tests for the outbound email transports."""

from __future__ import annotations

import logging

import pytest
import requests

from habitflow.config import TestConfig
from habitflow.errors import TransportError
from habitflow.services.email import (
    ConsoleTransport,
    OutboxTransport,
    ResendTransport,
    build_transport,
)


class FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def make_transport(session: FakeSession) -> ResendTransport:
    return ResendTransport(api_key="re_test", sender="HabitFlow <hi@habitflow.test>", session=session)


class TestResendTransport:
    def test_success_returns_message_id(self):
        session = FakeSession(FakeResponse(200, {"id": "msg_123"}))

        message_id = make_transport(session).send("ada@example.com", "Hello", "Body")

        assert message_id == "msg_123"
        url, kwargs = session.calls[0]
        assert url == "https://api.resend.com/emails"
        assert kwargs["headers"] == {"Authorization": "Bearer re_test"}
        assert kwargs["json"] == {
            "from": "HabitFlow <hi@habitflow.test>",
            "to": ["ada@example.com"],
            "subject": "Hello",
            "text": "Body",
        }
        assert kwargs["timeout"] == 10

    def test_error_status_uses_provider_message(self):
        session = FakeSession(FakeResponse(422, {"message": "Invalid `to` field"}))

        with pytest.raises(TransportError) as excinfo:
            make_transport(session).send("bad", "Hello", "Body")

        assert excinfo.value.message == "Email sending failed: Invalid `to` field"
        assert excinfo.value.details == {"status": 422}

    def test_error_status_without_json(self):
        session = FakeSession(FakeResponse(503, None, text="Service Unavailable"))
        with pytest.raises(TransportError, match="Service Unavailable"):
            make_transport(session).send("ada@example.com", "Hello", "Body")

    def test_network_error(self):
        session = FakeSession(error=requests.ConnectionError("connection refused"))
        with pytest.raises(TransportError, match="connection refused"):
            make_transport(session).send("ada@example.com", "Hello", "Body")

    def test_success_status_with_non_json_body(self):
        session = FakeSession(FakeResponse(200, None, text="<html>ok</html>"))
        with pytest.raises(TransportError, match="not JSON"):
            make_transport(session).send("ada@example.com", "Hello", "Body")

    def test_missing_id(self):
        session = FakeSession(FakeResponse(200, {}))
        with pytest.raises(TransportError):
            make_transport(session).send("ada@example.com", "Hello", "Body")


def test_console_transport_logs(caplog):
    caplog.set_level(logging.INFO, logger="habitflow.services.email")

    message_id = ConsoleTransport().send("ada@example.com", "Hello", "Body")

    assert message_id.startswith("console-")
    record = caplog.records[-1]
    assert record.to == "ada@example.com"
    assert record.subject == "Hello"


def test_build_transport_selects_backend(tmp_path, monkeypatch):
    monkeypatch.setenv("HABITFLOW_DATA_DIR", str(tmp_path))
    config = TestConfig()
    assert isinstance(build_transport(config), OutboxTransport)

    config.EMAIL_BACKEND = "console"
    assert isinstance(build_transport(config), ConsoleTransport)

    config.EMAIL_BACKEND = "resend"
    config.RESEND_API_KEY = "re_live"
    transport = build_transport(config)
    assert isinstance(transport, ResendTransport)
    assert transport.api_key == "re_live"
