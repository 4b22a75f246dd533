"""Decides whether a step finished the agent's turn."""

from typing import Sequence

from ai_assistant.core.schema import Message


def is_finished(new_messages: Sequence[Message]) -> bool:
    """
    Return False when the last new message is user-role (a tool result or corrective message),
    since the model must then be given another turn to react to it.
    """
    if not new_messages:
        return True
    return not new_messages[-1].is_user()
