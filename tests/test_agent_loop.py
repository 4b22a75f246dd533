"""Tests for the agent step orchestrator."""

import pytest
from stubs import (
    ScriptedModel,
    call_message,
    echo_tool,
)

from ai_assistant.agent.agent_loop import (
    Agent,
    AgentOptions,
    run_until_finished,
)
from ai_assistant.agent.termination import is_finished
from ai_assistant.core.errors import (
    ModelInvocationError,
    StepRetriesExhausted,
)
from ai_assistant.core.schema import (
    FunctionCall,
    FunctionResponsePart,
    Message,
    MessageRole,
)
from ai_assistant.tools import ToolRegistry
from ai_assistant.tools.posts import PostStore


def test_is_finished_rule() -> None:
    """A trailing user-role message means the model must run again."""
    response = Message.function_response("c1", "create_post_draft", {"id": 1})
    assert is_finished([response]) is False
    assert is_finished([Message.model_text("Done!")]) is True
    assert is_finished([Message.model_text("Calling"), response]) is False


def test_two_step_draft_scenario(registry: ToolRegistry, post_store: PostStore) -> None:
    """A tool call needs a second step for the model to react to the tool's result."""
    call = FunctionCall(id="call_1", name="create-post-draft", args={"title": "Hello"})
    model = ScriptedModel([call_message(call), Message.model_text("Draft created.")])
    agent = Agent(model, registry, [Message.user_text("Create a draft post titled Hello")])

    first = agent.step()

    assert first.step_index == 0
    assert first.finished is False
    model_message, response_message = first.new_messages
    assert model_message.role == MessageRole.MODEL
    (part,) = response_message.parts
    assert isinstance(part, FunctionResponsePart)
    assert part.function_response.id == "call_1"
    assert part.function_response.response["title"] == "Hello"
    assert post_store.get(1).title == "Hello"  # type: ignore[union-attr]

    second = agent.step()

    assert second.step_index == 1
    assert second.finished is True
    assert second.last_message.text == "Draft created."  # type: ignore[union-attr]
    # The second invocation saw the tool result.
    assert model.prompts[1].messages[-1] == response_message


def test_step_index_and_append_only_trajectory() -> None:
    """Step indexes count successful steps; the trajectory only ever grows by new messages."""
    registry = ToolRegistry([echo_tool()])
    replies = [
        call_message(FunctionCall(name="ghost")),
        Message.model_text("one"),
        call_message(FunctionCall(name="echo", args={"text": "t"})),
        Message.model_text("two"),
    ]
    start = [Message.user_text("hi")]
    agent = Agent(ScriptedModel(replies), registry, start)

    indexes = []
    for _ in range(3):
        before = agent.trajectory
        result = agent.step()
        indexes.append(result.step_index)
        assert agent.trajectory[: len(before)] == before
        assert len(agent.trajectory) == len(before) + len(result.new_messages)

    assert indexes == [0, 1, 2]
    assert agent.trajectory[0] == start[0]


def test_retries_exhausted_with_default_budget() -> None:
    """An always-hallucinating model fails the step after three invocations."""
    model = ScriptedModel([call_message(FunctionCall(name="ghost"))], repeat_last=True)
    agent = Agent(model, ToolRegistry([echo_tool()]), [Message.user_text("hi")])

    with pytest.raises(StepRetriesExhausted) as excinfo:
        agent.step()

    assert excinfo.value.retries == 3
    assert len(model.prompts) == 3
    assert len(agent.trajectory) == 1


def test_retry_budget_is_configurable() -> None:
    model = ScriptedModel([call_message(FunctionCall(name="ghost"))], repeat_last=True)
    agent = Agent(
        model,
        ToolRegistry(),
        [Message.user_text("hi")],
        options=AgentOptions(max_step_retries=1),
    )

    with pytest.raises(StepRetriesExhausted):
        agent.step()
    assert len(model.prompts) == 1


def test_step_after_retry_keeps_corrective_messages() -> None:
    """A step that needed a retry returns the bad reply, the correction and the good reply."""
    registry = ToolRegistry([echo_tool()])
    replies = [call_message(FunctionCall(name="ghost")), Message.model_text("ok")]
    agent = Agent(ScriptedModel(replies), registry, [Message.user_text("hi")])

    result = agent.step()

    assert result.finished is True
    assert [m.role for m in result.new_messages] == [
        MessageRole.MODEL,
        MessageRole.USER,
        MessageRole.MODEL,
    ]


def test_denied_tool_call_finishes_step() -> None:
    """With its only call denied, the step ends on the model message and is finished."""
    registry = ToolRegistry([echo_tool(allowed=False)])
    replies = [call_message(FunctionCall(name="echo", args={"text": "x"}))]
    agent = Agent(ScriptedModel(replies), registry, [Message.user_text("hi")])

    result = agent.step()

    assert len(result.new_messages) == 1
    assert result.finished is True


def test_model_errors_propagate() -> None:
    """Transport failures are not retried by the agent."""

    class Broken(ScriptedModel):
        def invoke(self, prompt):
            self.prompts.append(prompt)
            raise ConnectionError("boom")

    model = Broken([])
    agent = Agent(model, ToolRegistry(), [Message.user_text("hi")])

    with pytest.raises(ModelInvocationError):
        agent.step()
    assert len(model.prompts) == 1


def test_non_model_reply_is_rejected() -> None:
    agent = Agent(ScriptedModel([Message.user_text("spoof")]), ToolRegistry(), [])
    with pytest.raises(ModelInvocationError):
        agent.step()


def test_run_until_finished(registry: ToolRegistry) -> None:
    call = FunctionCall(name="create-post-draft", args={"title": "Hello"})
    model = ScriptedModel([call_message(call), Message.model_text("Draft created.")])
    agent = Agent(model, registry, [Message.user_text("Create a draft post titled Hello")])
    seen = []

    results = run_until_finished(agent, max_steps=5, on_step=seen.append)

    assert [r.step_index for r in results] == [0, 1]
    assert results[-1].finished
    assert seen == results


def test_run_until_finished_respects_max_steps() -> None:
    registry = ToolRegistry([echo_tool()])
    reply = call_message(FunctionCall(name="echo", args={"text": "again"}))
    agent = Agent(ScriptedModel([reply], repeat_last=True), registry, [])

    results = run_until_finished(agent, max_steps=3)

    assert len(results) == 3
    assert not results[-1].finished


def test_options_reject_zero_retries() -> None:
    with pytest.raises(ValueError):
        AgentOptions(max_step_retries=0)
