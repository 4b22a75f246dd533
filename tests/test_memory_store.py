"""Tests for the session message stores."""

import pytest

from ai_assistant.core.schema import (
    FunctionCall,
    FunctionCallPart,
    Message,
    MessageRole,
)
from ai_assistant.memory.memory_store import (
    InMemoryMessageStore,
    JsonlMessageStore,
    MessageStore,
)


@pytest.fixture(params=["memory", "jsonl"])
def store(request, tmp_path) -> MessageStore:
    if request.param == "memory":
        return InMemoryMessageStore()
    return JsonlMessageStore(tmp_path / "sessions")


def _history():
    call = FunctionCall(id="call_1", name="get-post", args={"id": 3})
    return [
        Message.user_text("Show me post 3"),
        Message(role=MessageRole.MODEL, parts=(FunctionCallPart(function_call=call),)),
        Message.function_response("call_1", "get-post", {"id": 3, "title": "Hi"}),
        Message.model_text("Post 3 is titled Hi."),
    ]


def test_unknown_session_is_empty(store: MessageStore) -> None:
    assert store.load("nobody") == []


def test_append_preserves_order(store: MessageStore) -> None:
    history = _history()
    store.append("s1", history[:2])
    store.append("s1", history[2:])

    assert store.load("s1") == history


def test_reset_and_sessions(store: MessageStore) -> None:
    store.append("a", [Message.user_text("x")])
    store.append("b", [])

    assert sorted(store.sessions()) == ["a", "b"]

    store.reset("a")
    store.reset("never-existed")

    assert store.load("a") == []
    assert store.sessions() == ["b"]


def test_jsonl_writes_one_line_per_message(tmp_path) -> None:
    store = JsonlMessageStore(tmp_path)
    store.append("s1", _history())

    lines = (tmp_path / "s1.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 4
    # A second store over the same directory sees the same history.
    assert JsonlMessageStore(tmp_path).load("s1") == _history()


@pytest.mark.parametrize("session_id", ["../etc/passwd", "a b", "", "abc\n", "x" * 129])
def test_jsonl_rejects_unsafe_session_ids(tmp_path, session_id: str) -> None:
    with pytest.raises(ValueError):
        JsonlMessageStore(tmp_path).load(session_id)


def test_jsonl_sessions_without_directory(tmp_path) -> None:
    assert JsonlMessageStore(tmp_path / "missing").sessions() == []
