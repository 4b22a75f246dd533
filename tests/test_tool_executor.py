"""
Tests for the tool executor.

Run with:
$ pytest -q
"""

from typing import (
    Any,
    Mapping,
)

from stubs import echo_tool

from ai_assistant.agent.tool_executor import (
    execute_tool_call,
    execute_tool_calls,
)
from ai_assistant.core.errors import (
    ToolExecutionError,
    ToolPermissionDenied,
)
from ai_assistant.core.schema import (
    FunctionCall,
    FunctionResponsePart,
    MessageRole,
)
from ai_assistant.tools import (
    ToolDescriptor,
    ToolRegistry,
)


def _add(args: Mapping[str, Any]) -> int:
    """Return the sum of two integers (used only for tests)."""
    return args["a"] + args["b"]


def _registry() -> ToolRegistry:
    return ToolRegistry([ToolDescriptor(name="add", description="Add two numbers", execute=_add)])


def test_execute_tool_success() -> None:
    """Executor should wrap the tool's return value in a user-role function response."""
    call = FunctionCall(id="c1", name="add", args={"a": 2, "b": 3})
    outcome = execute_tool_call(call, _registry())

    assert outcome.ok
    assert outcome.message is not None
    assert outcome.message.role == MessageRole.USER
    (part,) = outcome.message.parts
    assert isinstance(part, FunctionResponsePart)
    assert part.function_response.id == "c1"
    assert part.function_response.name == "add"
    assert part.function_response.response == 5


def test_execute_tool_missing() -> None:
    """Executor should report a ToolExecutionError for an unknown tool."""
    outcome = execute_tool_call(FunctionCall(name="not_a_tool"), _registry())

    assert not outcome.ok
    assert isinstance(outcome.error, ToolExecutionError)
    assert "not_a_tool" in str(outcome.error)


def test_execute_tool_bad_args() -> None:
    """A tool raising on bad arguments is reported, not raised."""
    outcome = execute_tool_call(FunctionCall(name="add", args={"a": 2}), _registry())

    assert not outcome.ok
    assert isinstance(outcome.error, ToolExecutionError)
    assert "raised an error" in str(outcome.error)


def test_permission_denied_is_not_executed() -> None:
    """A denied call must not reach the tool's execute function."""
    calls = []

    def execute(args: Mapping[str, Any]) -> Any:
        calls.append(args)
        return "ran"

    registry = ToolRegistry(
        [
            ToolDescriptor(
                name="guarded", description="", execute=execute, permission_check=lambda _: False
            )
        ]
    )
    outcome = execute_tool_call(FunctionCall(name="guarded"), registry)

    assert isinstance(outcome.error, ToolPermissionDenied)
    assert not calls


def test_denied_call_does_not_abort_the_batch() -> None:
    """Of a denied and an allowed call, exactly one response (the allowed one) is returned."""
    registry = ToolRegistry([echo_tool("locked", allowed=False), echo_tool("open")])
    calls = [
        FunctionCall(id="first", name="locked", args={"text": "a"}),
        FunctionCall(id="second", name="open", args={"text": "b"}),
    ]

    messages = execute_tool_calls(calls, registry)

    assert len(messages) == 1
    (response,) = messages[0].function_responses
    assert response.id == "second"
    assert response.response == {"echo": "b"}


def test_failing_tool_is_skipped_and_order_kept() -> None:
    """Failures are dropped and the remaining responses keep the model's call order."""
    registry = _registry()
    registry.register(echo_tool())
    calls = [
        FunctionCall(id="1", name="echo", args={"text": "x"}),
        FunctionCall(id="2", name="add", args={}),
        FunctionCall(id="3", name="add", args={"a": 1, "b": 1}),
    ]

    messages = execute_tool_calls(calls, registry)

    assert [m.function_responses[0].id for m in messages] == ["1", "3"]


def test_call_name_is_sanitized_for_lookup() -> None:
    """Hyphenated call names resolve to the registered tool; the response keeps the call name."""
    registry = ToolRegistry([echo_tool("say_it")])
    outcome = execute_tool_call(FunctionCall(name="say-it", args={"text": "hi"}), registry)

    assert outcome.message is not None
    assert outcome.message.function_responses[0].name == "say-it"
