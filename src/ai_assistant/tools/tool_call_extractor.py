"""
Extract and validate the function calls in a model message.

Calls whose (sanitized) name is registered are *executable*; the rest are reported by the
unsanitized name the model used, so a corrective message can quote it exactly.
"""

from typing import (
    List,
    NamedTuple,
)

from ai_assistant.core.schema import (
    FunctionCall,
    FunctionCallPart,
    Message,
)
from ai_assistant.tools import ToolRegistry


class ExtractedCalls(NamedTuple):
    """Function calls partitioned by whether a tool exists for them."""

    executable: List[FunctionCall]
    invalid_names: List[str]


def extract_tool_calls(message: Message, registry: ToolRegistry) -> ExtractedCalls:
    """
    Partition the function calls in *message* against *registry*.

    A message without any function call yields two empty lists: the absence of calls is never
    reported as a failed call.
    """
    if not any(isinstance(part, FunctionCallPart) for part in message.parts):
        return ExtractedCalls([], [])

    executable: List[FunctionCall] = []
    invalid_names: List[str] = []
    for call in message.function_calls:
        if registry.find(call.name) is not None:
            executable.append(call)
        else:
            invalid_names.append(call.name)
    return ExtractedCalls(executable, invalid_names)
