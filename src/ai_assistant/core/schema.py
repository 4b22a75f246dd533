"""
Schema definitions for the messages exchanged between user, model and abilities.

These data models serve as the contract between the provider gateway, the agent step loop, the
tools and the message store.  We keep them separate from runtime logic so they can be imported
anywhere without side-effects.  All models are frozen: once a message is appended to a trajectory
it is never mutated.
"""

import uuid
from enum import Enum
from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Tuple,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class MessageRole(str, Enum):
    """Who authored a message."""

    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


class PartChannel(str, Enum):
    """Channel a text part belongs to."""

    CONTENT = "content"
    THOUGHT = "thought"


def _new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


# ---------------------------------------------------------------------------
# Function calling payloads
# ---------------------------------------------------------------------------
class FunctionCall(BaseModel):
    """A tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_call_id, description="Call id echoed by the response")
    name: str = Field(..., description="Tool name as emitted by the model")
    args: Dict[str, Any] = Field(default_factory=dict, description="Keyword arguments for the tool")


class FunctionResponse(BaseModel):
    """The result of executing a function call."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    response: Any = None


class FunctionDeclaration(BaseModel):
    """Model-facing declaration of a callable tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )


# ---------------------------------------------------------------------------
# Message parts (tagged union on ``type``)
# ---------------------------------------------------------------------------
class TextPart(BaseModel):
    """Plain text content."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    channel: PartChannel = PartChannel.CONTENT
    text: str


class FunctionCallPart(BaseModel):
    """A function call emitted by the model."""

    model_config = ConfigDict(frozen=True)

    type: Literal["function_call"] = "function_call"
    channel: PartChannel = PartChannel.CONTENT
    function_call: FunctionCall


class FunctionResponsePart(BaseModel):
    """A function response fed back to the model."""

    model_config = ConfigDict(frozen=True)

    type: Literal["function_response"] = "function_response"
    channel: PartChannel = PartChannel.CONTENT
    function_response: FunctionResponse


MessagePart = Annotated[
    Union[TextPart, FunctionCallPart, FunctionResponsePart],
    Field(discriminator="type"),
]


class Message(BaseModel):
    """One turn's content: a role plus an ordered sequence of parts."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    parts: Tuple[MessagePart, ...] = ()

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Any:
        # Providers and stored histories use "assistant" for the model role.
        if isinstance(value, str) and value.lower() == "assistant":
            return MessageRole.MODEL
        return value

    @model_validator(mode="after")
    def _check_function_response(self) -> "Message":
        has_response = any(isinstance(part, FunctionResponsePart) for part in self.parts)
        if has_response and len(self.parts) != 1:
            raise ValueError("a function response message must contain exactly one part")
        return self

    # ------------------------------------------------------------------ #
    # Constructors
    # ------------------------------------------------------------------ #
    @classmethod
    def user_text(cls, text: str) -> "Message":
        """Build a user message holding a single text part."""
        return cls(role=MessageRole.USER, parts=(TextPart(text=text),))

    @classmethod
    def model_text(cls, text: str) -> "Message":
        """Build a model message holding a single text part."""
        return cls(role=MessageRole.MODEL, parts=(TextPart(text=text),))

    @classmethod
    def function_response(cls, call_id: str, name: str, response: Any) -> "Message":
        """Build the user-role message carrying a tool result back to the model."""
        return cls(
            role=MessageRole.USER,
            parts=(
                FunctionResponsePart(
                    function_response=FunctionResponse(id=call_id, name=name, response=response)
                ),
            ),
        )

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #
    @property
    def text(self) -> str:
        """Concatenated text of all content-channel text parts."""
        return "".join(
            part.text
            for part in self.parts
            if isinstance(part, TextPart) and part.channel == PartChannel.CONTENT
        )

    @property
    def function_calls(self) -> List[FunctionCall]:
        """Function calls in the order the model emitted them."""
        return [part.function_call for part in self.parts if isinstance(part, FunctionCallPart)]

    @property
    def function_responses(self) -> List[FunctionResponse]:
        return [
            part.function_response
            for part in self.parts
            if isinstance(part, FunctionResponsePart)
        ]

    def is_user(self) -> bool:
        """Return True if the message was authored on the user side."""
        return self.role == MessageRole.USER


class AgentStepResult(BaseModel):
    """Outcome of a single call to ``Agent.step``."""

    model_config = ConfigDict(frozen=True)

    step_index: int = Field(..., ge=0)
    finished: bool
    new_messages: Tuple[Message, ...] = ()

    @property
    def last_message(self) -> Optional[Message]:
        """The last message produced by the step, if any."""
        return self.new_messages[-1] if self.new_messages else None
