"""Tests for the terminal client helpers."""

import httpx
import pytest

from ai_assistant.client import cli
from ai_assistant.common import format_chat_message


def test_format_chat_message_hides_thoughts() -> None:
    message = {
        "role": "model",
        "parts": [
            {"type": "text", "text": "pondering", "channel": "thought"},
            {"type": "text", "text": "Here you go."},
            {"type": "function_call", "function_call": {"name": "get_post", "args": {"id": 1}}},
        ],
    }
    assert format_chat_message(message) == "Here you go.\n-> get_post({'id': 1})"


def test_call_api_returns_json() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/sessions"
        return httpx.Response(200, json={"session_id": "abc"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    assert cli.call_api("POST", "/sessions", client=client) == {"session_id": "abc"}


def test_call_api_reports_error_detail() -> None:
    client = httpx.Client(
        transport=httpx.MockTransport(
            lambda request: httpx.Response(400, json={"detail": "Invalid session id"})
        )
    )
    with pytest.raises(cli.ApiError, match="Invalid session id"):
        cli.call_api("GET", "/sessions/x/messages", client=client)


def test_call_api_retries_connection_errors(monkeypatch) -> None:
    """Connection failures are retried with backoff until the budget runs out."""
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("refused", request=request)

    monkeypatch.setattr(cli.time, "sleep", lambda seconds: None)
    client = httpx.Client(transport=httpx.MockTransport(handler))

    with pytest.raises(cli.ApiError, match="Error connecting to API"):
        cli.call_api("GET", "/health", max_retries=3, client=client)
    assert len(attempts) == 3
