"""Main orchestration loop: one discrete agent step at a time."""

from __future__ import annotations

import logging
import threading
from typing import (
    Callable,
    List,
    Optional,
    Sequence,
    Tuple,
)

from pydantic import (
    BaseModel,
    Field,
)

from ai_assistant.agent.prompt import (
    Prompt,
    build_prompt,
    default_system_instruction,
)
from ai_assistant.agent.provider_gateway import (
    ModelHandle,
    invoke_model,
)
from ai_assistant.agent.retry import (
    DEFAULT_MAX_STEP_RETRIES,
    run_with_retries,
)
from ai_assistant.agent.termination import is_finished
from ai_assistant.agent.tool_executor import execute_tool_calls
from ai_assistant.core.errors import StepRetriesExhausted
from ai_assistant.core.schema import (
    AgentStepResult,
    Message,
)
from ai_assistant.tools import ToolRegistry

logger = logging.getLogger(__name__)


class AgentOptions(BaseModel):
    """Tunables consumed by the agent at construction."""

    max_step_retries: int = Field(DEFAULT_MAX_STEP_RETRIES, ge=1)


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------
class Agent:
    """
    Owns one conversation's trajectory and step counter.

    Each call to :meth:`step` runs the model (retrying malformed tool calls), executes the valid
    tool calls, appends everything to the trajectory and reports whether the turn is finished.
    Calls to :meth:`step` are serialised; the registry must not change while a step runs.
    """

    def __init__(
        self,
        model: ModelHandle | Callable[[Prompt], Message],
        registry: ToolRegistry,
        trajectory: Sequence[Message],
        *,
        system_instruction: Optional[str] = None,
        options: Optional[AgentOptions] = None,
    ) -> None:
        self._invoke: Callable[[Prompt], Message]
        if isinstance(model, ModelHandle):
            handle = model
            self._invoke = lambda prompt: invoke_model(handle, prompt)
        else:
            self._invoke = model
        self._registry = registry
        self._trajectory: List[Message] = list(trajectory)
        self._system_instruction = system_instruction or default_system_instruction()
        self._options = options or AgentOptions()
        self._step_index = 0
        self._lock = threading.Lock()

    @property
    def trajectory(self) -> Tuple[Message, ...]:
        """Read-only view of the full message history."""
        return tuple(self._trajectory)

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def options(self) -> AgentOptions:
        return self._options

    def _build(self, new_messages: Sequence[Message]) -> Prompt:
        return build_prompt(
            [*self._trajectory, *new_messages], self._system_instruction, self._registry
        )

    def step(self) -> AgentStepResult:
        """
        Execute a single step.

        Raises
        ------
        StepRetriesExhausted
            If the model kept calling unavailable functions for ``max_step_retries`` attempts.
        ProviderUnavailable, ModelInvocationError
            Propagated from model invocation.
        """
        with self._lock:
            outcome = run_with_retries(
                self._build, self._invoke, self._registry, self._options.max_step_retries
            )
            if not outcome.succeeded:
                logger.error(
                    "Step %d failed after %d attempts; unavailable functions: %s",
                    self._step_index,
                    outcome.attempts,
                    outcome.invalid_names,
                )
                raise StepRetriesExhausted(outcome.attempts, outcome.invalid_names)

            new_messages = list(outcome.messages)
            if outcome.executable:
                logger.info(
                    "Model returned %d tool calls: %s",
                    len(outcome.executable),
                    [call.name for call in outcome.executable],
                )
                new_messages.extend(execute_tool_calls(outcome.executable, self._registry))

            finished = is_finished(new_messages)
            return self._complete_step(finished, new_messages)

    def _complete_step(self, finished: bool, new_messages: List[Message]) -> AgentStepResult:
        self._trajectory.extend(new_messages)
        result = AgentStepResult(
            step_index=self._step_index, finished=finished, new_messages=tuple(new_messages)
        )
        self._step_index += 1
        logger.debug(
            "Step %d complete (finished=%s, new_messages=%d)",
            result.step_index,
            finished,
            len(new_messages),
        )
        return result


def run_until_finished(
    agent: Agent,
    max_steps: int = 10,
    on_step: Optional[Callable[[AgentStepResult], None]] = None,
) -> List[AgentStepResult]:
    """
    Call ``agent.step()`` until a step reports ``finished`` or *max_steps* is reached.

    *on_step* is called after every successful step, typically to persist its new messages so
    that work done before a later failing step is not lost.  Errors raised by ``step()``
    propagate.
    """
    results: List[AgentStepResult] = []
    for _ in range(max_steps):
        result = agent.step()
        results.append(result)
        if on_step is not None:
            on_step(result)
        if result.finished:
            break
    else:
        logger.warning("Agent did not finish within %d steps", max_steps)
    return results
