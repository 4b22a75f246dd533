"""
Retry controller for malformed tool calls.

Model providers sometimes hallucinate function names.  Instead of failing the turn right away we
re-prompt the same model with a corrective user message, a bounded number of times:

    ATTEMPTING --(no invalid names)--> SUCCEEDED
    ATTEMPTING --(invalid names, attempts < max)--> ATTEMPTING
    ATTEMPTING --(invalid names, attempts == max)--> FAILED

The controller returns a :class:`RetryOutcome` instead of raising, so the transitions can be
inspected directly; the step orchestrator turns ``FAILED`` into :class:`StepRetriesExhausted`.
"""

import logging
from dataclasses import (
    dataclass,
    field,
)
from enum import Enum
from typing import (
    Callable,
    List,
    Sequence,
)

from ai_assistant.agent.prompt import Prompt
from ai_assistant.core.schema import (
    FunctionCall,
    Message,
)
from ai_assistant.tools import ToolRegistry
from ai_assistant.tools.tool_call_extractor import extract_tool_calls

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEP_RETRIES = 3


class RetryState(str, Enum):
    """States of the retry controller."""

    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RetryOutcome:
    """Terminal state of one retry-controller run."""

    state: RetryState
    attempts: int
    messages: List[Message] = field(default_factory=list)
    executable: List[FunctionCall] = field(default_factory=list)
    invalid_names: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == RetryState.SUCCEEDED


def invalid_function_calls_message(invalid_names: Sequence[str]) -> Message:
    """Corrective user message listing the function names the model may not use."""
    return Message.user_text(
        f"The following function calls are not available: {', '.join(invalid_names)}. "
        "Please use only the functions that are available to you."
    )


def run_with_retries(
    build: Callable[[Sequence[Message]], Prompt],
    invoke: Callable[[Prompt], Message],
    registry: ToolRegistry,
    max_step_retries: int = DEFAULT_MAX_STEP_RETRIES,
) -> RetryOutcome:
    """
    Invoke the model until it only calls registered tools or the budget is spent.

    Parameters
    ----------
    build:
        Builds a prompt from the messages produced so far in this step.
    invoke:
        Model invocation; its errors propagate unchanged.
    registry:
        Tools the model is allowed to call.
    max_step_retries:
        Maximum number of model invocations.

    Returns
    -------
    RetryOutcome
        ``SUCCEEDED`` with the executable calls of the last model message, or ``FAILED``.
        ``messages`` holds every model and corrective message produced along the way.
    """
    if max_step_retries < 1:
        raise ValueError("max_step_retries must be at least 1")

    state = RetryState.ATTEMPTING
    attempts = 0
    buffer: List[Message] = []
    executable: List[FunctionCall] = []
    invalid_names: List[str] = []

    while state == RetryState.ATTEMPTING:
        attempts += 1
        result_message = invoke(build(buffer))
        executable, invalid_names = extract_tool_calls(result_message, registry)
        buffer.append(result_message)

        if not invalid_names:
            state = RetryState.SUCCEEDED
            continue

        logger.warning(
            "Model called unavailable functions %s (attempt %d/%d)",
            invalid_names,
            attempts,
            max_step_retries,
        )
        buffer.append(invalid_function_calls_message(invalid_names))
        if attempts >= max_step_retries:
            state = RetryState.FAILED

    return RetryOutcome(
        state=state,
        attempts=attempts,
        messages=buffer,
        executable=executable if state == RetryState.SUCCEEDED else [],
        invalid_names=invalid_names,
    )
