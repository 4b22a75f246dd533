"""
Pydantic models for the assistant API requests and responses.
This module defines the request and response schemas used by the chat session API.
"""

from typing import (
    Literal,
    Tuple,
)

from pydantic import (
    BaseModel,
    Field,
)

from ai_assistant.core.schema import (
    Message,
    MessagePart,
    MessageRole,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class SessionResponse(BaseModel):
    """Response with session information."""

    session_id: str


class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., min_length=1, description="User message for the assistant")


class ChatMessage(BaseModel):
    """A message as shown to the caller, tagged as a regular reply or an error."""

    type: Literal["regular", "error"] = "regular"
    role: MessageRole
    parts: Tuple[MessagePart, ...] = ()

    @classmethod
    def regular(cls, message: Message) -> "ChatMessage":
        return cls(type="regular", role=message.role, parts=message.parts)

    @classmethod
    def error(cls, text: str) -> "ChatMessage":
        return cls(type="error", role=MessageRole.MODEL, parts=Message.model_text(text).parts)


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: ChatMessage
    steps: int = 0
    session_id: str
