"""Dispatches validated function calls to the tool registry and wraps errors."""

import logging
from dataclasses import dataclass
from typing import (
    List,
    Optional,
    Sequence,
)

from ai_assistant.core.errors import (
    ToolExecutionError,
    ToolPermissionDenied,
)
from ai_assistant.core.schema import (
    FunctionCall,
    Message,
)
from ai_assistant.tools import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCallOutcome:
    """Result of one function call: a response message or the error that prevented it."""

    call: FunctionCall
    message: Optional[Message] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.message is not None


def execute_tool_call(call: FunctionCall, registry: ToolRegistry) -> ToolCallOutcome:
    """
    Look up the tool for *call*, check its permission and invoke it.

    Parameters
    ----------
    call:
        A function call whose name is registered (see ``extract_tool_calls``).
    registry:
        The registry the call was validated against.

    Returns
    -------
    ToolCallOutcome
        Holds the user-role function response message on success, otherwise a
        :class:`ToolPermissionDenied` or :class:`ToolExecutionError`.
    """
    tool = registry.find(call.name)
    if tool is None:
        return ToolCallOutcome(
            call, error=ToolExecutionError(f"Tool '{call.name}' is not registered.")
        )

    permission = tool.check_permission(call.args)
    if not permission.allowed:
        return ToolCallOutcome(call, error=ToolPermissionDenied(call.name, permission.reason))

    try:
        logger.debug("Executing tool '%s' with args=%s", call.name, call.args)
        result = tool.execute(call.args)
    except ToolExecutionError as exc:
        logger.exception("Tool '%s' failed", call.name)
        return ToolCallOutcome(call, error=exc)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Unhandled error in tool '%s'", call.name)
        return ToolCallOutcome(
            call, error=ToolExecutionError(f"Tool '{call.name}' raised an error: {exc}")
        )

    return ToolCallOutcome(call, message=Message.function_response(call.id, call.name, result))


def execute_tool_calls(calls: Sequence[FunctionCall], registry: ToolRegistry) -> List[Message]:
    """
    Execute *calls* in order and return one response message per successful call.

    Denied and failing calls are logged and produce no message; they never stop the remaining
    calls from running.
    """
    messages: List[Message] = []
    for call in calls:
        outcome = execute_tool_call(call, registry)
        if outcome.ok:
            messages.append(outcome.message)  # type: ignore[arg-type]
        elif isinstance(outcome.error, ToolPermissionDenied):
            logger.warning("Skipping tool call %s: %s", call.id, outcome.error)
        else:
            logger.warning("Skipping failed tool call %s: %s", call.id, outcome.error)
    return messages
