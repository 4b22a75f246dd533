"""
Tool registry for the AI assistant.

A tool (or "ability") is described by a :class:`ToolDescriptor`: a name, a natural-language
description, JSON-Schema-like input and output schemas, a permission predicate and an ``execute``
callable.  A :class:`ToolRegistry` indexes descriptors by their *sanitized* name so that
path-like registry names such as ``"site/create-post-draft"`` can be exposed to the model as valid
function identifiers (``"site_create_post_draft"``).

Registries are built explicitly and handed to the agent; there is no global registry.
"""

import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Union,
)

from ai_assistant.core.schema import FunctionDeclaration

logger = logging.getLogger(__name__)


def sanitize_tool_name(name: str) -> str:
    """Normalise ``-`` and ``/`` to ``_`` so the name is usable as a function identifier."""
    return name.replace("-", "_").replace("/", "_")


class PermissionResult(NamedTuple):
    """Outcome of a tool's permission check."""

    allowed: bool
    reason: Optional[str] = None


PermissionCheck = Callable[[Mapping[str, Any]], Union[bool, PermissionResult]]
ToolFunction = Callable[[Mapping[str, Any]], Any]


def allow_all(args: Mapping[str, Any]) -> PermissionResult:  # pylint: disable=unused-argument
    """Permission check that always allows the call."""
    return PermissionResult(True)


def require_capability(
    capabilities: Iterable[str], capability: str, action: str
) -> PermissionCheck:
    """Permission check allowing the call only when *capability* is among *capabilities*."""
    granted = frozenset(capabilities)

    def check(args: Mapping[str, Any]) -> PermissionResult:  # pylint: disable=unused-argument
        if capability in granted:
            return PermissionResult(True)
        return PermissionResult(False, f"Sorry, you are not allowed to {action}.")

    return check


@dataclass(frozen=True)
class ToolDescriptor:
    """Metadata and callables for a single tool."""

    name: str
    description: str
    execute: ToolFunction
    input_schema: Mapping[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    output_schema: Mapping[str, Any] = field(default_factory=dict)
    permission_check: PermissionCheck = allow_all

    @property
    def function_name(self) -> str:
        """Name under which the tool is declared to the model."""
        return sanitize_tool_name(self.name)

    def check_permission(self, args: Mapping[str, Any]) -> PermissionResult:
        """Run the permission predicate and normalise its result."""
        result = self.permission_check(args)
        if isinstance(result, PermissionResult):
            return result
        return PermissionResult(bool(result))

    def declaration(self) -> FunctionDeclaration:
        """Reduce the descriptor to name + description + input schema."""
        return FunctionDeclaration(
            name=self.function_name,
            description=self.description,
            parameters={
                "type": "object",
                "properties": dict(self.input_schema.get("properties", {})),
                "required": list(self.input_schema.get("required", [])),
            },
        )


class ToolRegistry:
    """Name-indexed collection of the tools available to one conversation."""

    def __init__(self, tools: Optional[List[ToolDescriptor]] = None) -> None:
        self._tools: Dict[str, ToolDescriptor] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolDescriptor) -> None:
        """Add *tool*, replacing any tool with the same sanitized name."""
        key = sanitize_tool_name(tool.name)
        if key in self._tools:
            logger.debug("Replacing tool '%s' (was '%s')", key, self._tools[key].name)
        else:
            logger.debug("Registering tool '%s'", key)
        self._tools[key] = tool

    def tool(
        self,
        name: str,
        description: str,
        *,
        input_schema: Optional[Mapping[str, Any]] = None,
        output_schema: Optional[Mapping[str, Any]] = None,
        permission_check: PermissionCheck = allow_all,
    ) -> Callable[[ToolFunction], ToolFunction]:
        """
        Register the decorated function as a tool.

        The function is registered as a decorator, so it can be used like this:
            @registry.tool("my-tool", "Does something useful")
            def my_tool(args):
                return result
        """

        def wrapper(fn: ToolFunction) -> ToolFunction:
            self.register(
                ToolDescriptor(
                    name=name,
                    description=description,
                    execute=fn,
                    input_schema=input_schema or {"type": "object", "properties": {}},
                    output_schema=output_schema or {},
                    permission_check=permission_check,
                )
            )
            return fn

        return wrapper

    def find(self, name: str) -> Optional[ToolDescriptor]:
        """Look up a tool by raw or sanitized name."""
        return self._tools.get(sanitize_tool_name(name))

    def list(self) -> List[ToolDescriptor]:
        """Return all tools in registration order."""
        return list(self._tools.values())

    def declarations(self) -> List[FunctionDeclaration]:
        """Model-facing declarations for every registered tool."""
        return [tool.declaration() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and sanitize_tool_name(name) in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self.list())
