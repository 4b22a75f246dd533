"""Tests for the tool registry and the tool-call extractor."""

from stubs import (
    call_message,
    echo_tool,
)

from ai_assistant.core.schema import (
    FunctionCall,
    Message,
)
from ai_assistant.tools import (
    PermissionResult,
    ToolRegistry,
    sanitize_tool_name,
)
from ai_assistant.tools.tool_call_extractor import extract_tool_calls


def test_sanitize_is_idempotent() -> None:
    """Sanitizing an already-sanitized name changes nothing."""
    assert sanitize_tool_name("get_post") == "get_post"
    assert sanitize_tool_name(sanitize_tool_name("site/get-post")) == "site_get_post"


def test_hyphen_and_underscore_names_collide() -> None:
    assert sanitize_tool_name("get-post") == sanitize_tool_name("get_post") == "get_post"


def test_register_replaces_by_sanitized_name() -> None:
    registry = ToolRegistry([echo_tool("say-it")])
    registry.register(echo_tool("say_it"))

    assert len(registry) == 1
    assert registry.find("say-it").name == "say_it"  # type: ignore[union-attr]


def test_find_unknown_returns_none() -> None:
    assert ToolRegistry().find("missing") is None


def test_list_keeps_registration_order() -> None:
    registry = ToolRegistry([echo_tool("b"), echo_tool("a")])
    assert [tool.name for tool in registry.list()] == ["b", "a"]


def test_decorator_registration() -> None:
    registry = ToolRegistry()

    @registry.tool("site/ping", "Reply with pong")
    def ping(args):  # pylint: disable=unused-argument
        return "pong"

    assert "site_ping" in registry
    assert registry.find("site/ping").execute({}) == "pong"  # type: ignore[union-attr]


def test_declarations_use_function_safe_names() -> None:
    registry = ToolRegistry([echo_tool("site/say-it")])
    (declaration,) = registry.declarations()

    assert declaration.name == "site_say_it"
    assert declaration.parameters == {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    }


def test_bool_permission_is_normalized() -> None:
    tool = echo_tool()
    assert tool.check_permission({}) == PermissionResult(True, None)


def test_no_calls_short_circuit() -> None:
    """A plain text message yields no executable calls and no invalid names."""
    registry = ToolRegistry([echo_tool()])
    assert extract_tool_calls(Message.model_text("Done!"), registry) == ([], [])


def test_extractor_partitions_calls() -> None:
    """Unknown names are reported unsanitized; known ones stay in order."""
    registry = ToolRegistry([echo_tool("say_it"), echo_tool("other")])
    first = FunctionCall(name="say-it")
    second = FunctionCall(name="other")
    message = call_message(first, FunctionCall(name="made-up/tool"), second)

    executable, invalid_names = extract_tool_calls(message, registry)

    assert executable == [first, second]
    assert invalid_names == ["made-up/tool"]
