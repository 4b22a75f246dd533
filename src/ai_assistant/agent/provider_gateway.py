"""
Provider gateway for the AI assistant.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
memory) stays model-agnostic and talks to a :class:`ModelHandle` resolved by the
:class:`ProviderGateway`.

We support two back-ends out of the box, through their official SDKs (imported lazily):

1. **OpenAI** Chat Completions with function calling.
2. **Anthropic** Messages API with tool use.

Both SDKs accept an ``httpx.Client``; the gateway forwards one when given (tests use a mock
transport).

Additional providers can be added by subclassing :class:`ModelHandle` and registering via
:func:`register_provider`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Type,
)

import httpx

from ai_assistant.agent.prompt import Prompt
from ai_assistant.config import Settings
from ai_assistant.core.errors import (
    AgentError,
    ModelInvocationError,
    ModelUnavailable,
    ProviderUnavailable,
)
from ai_assistant.core.schema import (
    FunctionCall,
    FunctionCallPart,
    FunctionResponsePart,
    Message,
    MessageRole,
    TextPart,
)

logger = logging.getLogger(__name__)

DEFAULT_MODELS: Dict[str, str] = {
    "anthropic": "claude-sonnet-4-20250514",
    "openai": "gpt-4-turbo",
}


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PROVIDER_REGISTRY: Dict[str, Type["ModelHandle"]] = {}


def register_provider(name: str) -> Callable:
    """Decorator to register a model handle class under provider id *name*."""

    def wrapper(cls: Type["ModelHandle"]) -> Type["ModelHandle"]:
        cls.provider_id = name
        _PROVIDER_REGISTRY[name] = cls
        return cls

    return wrapper


def registered_providers() -> List[str]:
    """Provider ids with a registered implementation."""
    return list(_PROVIDER_REGISTRY)


# ---------------------------------------------------------------------------
# Wire helpers
# ---------------------------------------------------------------------------
EMPTY_MESSAGE_PLACEHOLDER = "(no response)"


def answered_call_ids(messages: Sequence[Message]) -> Set[str]:
    """Ids of the function calls that have a function response somewhere in *messages*."""
    return {response.id for message in messages for response in message.function_responses}


def unanswered_call_text(call: FunctionCall) -> str:
    """
    Plain-text stand-in for a call that got no response (an unavailable function, or a call
    that was denied or failed).  Providers reject tool calls without a matching result.
    """
    return f"(Function call {call.name} with arguments {json.dumps(call.args)} was not executed.)"


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class ModelHandle(ABC):
    """A resolved provider + model pair able to produce the next message."""

    provider_id: ClassVar[str] = ""
    DEFAULT_BASE_URL: ClassVar[str] = ""

    def __init__(
        self,
        model_id: str,
        api_key: str,
        *,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.model_id = model_id
        self._api_key = api_key
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._timeout = timeout
        self._client = client

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider={self.provider_id!r}, model={self.model_id!r})"

    @abstractmethod
    def invoke(self, prompt: Prompt) -> Message:
        """Return the model's next message for *prompt*."""


# ---------------------------------------------------------------------------
# Concrete providers
# ---------------------------------------------------------------------------
@register_provider("openai")
class OpenAIModel(ModelHandle):
    """OpenAI Chat Completions with function calling."""

    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    @staticmethod
    def _to_wire(message: Message, answered: Set[str]) -> Dict[str, Any]:
        if message.function_responses:
            response = message.function_responses[0]
            return {
                "role": "tool",
                "tool_call_id": response.id,
                "content": json.dumps(response.response),
            }
        if message.role == MessageRole.MODEL:
            calls = [call for call in message.function_calls if call.id in answered]
            texts = [message.text] if message.text else []
            texts += [
                unanswered_call_text(call)
                for call in message.function_calls
                if call.id not in answered
            ]
            content = "\n".join(texts)
            data: Dict[str, Any] = {"role": "assistant", "content": content or None}
            # Never send an empty tool_calls array; some endpoints reject it.
            if calls:
                data["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": json.dumps(call.args)},
                    }
                    for call in calls
                ]
            elif not content:
                data["content"] = EMPTY_MESSAGE_PLACEHOLDER
            return data
        return {"role": message.role.value, "content": message.text}

    def build_payload(self, prompt: Prompt) -> Dict[str, Any]:
        answered = answered_call_ids(prompt.messages)
        messages = [{"role": "system", "content": prompt.system_instruction}]
        messages.extend(self._to_wire(message, answered) for message in prompt.messages)
        payload: Dict[str, Any] = {"model": self.model_id, "messages": messages}
        if prompt.tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
                for tool in prompt.tools
            ]
        return payload

    @staticmethod
    def parse_response(data: Mapping[str, Any]) -> Message:
        choice = data["choices"][0]["message"]
        parts: List[Any] = []
        if choice.get("content"):
            parts.append(TextPart(text=choice["content"]))
        for tool_call in choice.get("tool_calls") or []:
            function = tool_call["function"]
            raw_args = function.get("arguments") or "{}"
            parts.append(
                FunctionCallPart(
                    function_call=FunctionCall(
                        id=tool_call["id"], name=function["name"], args=json.loads(raw_args)
                    )
                )
            )
        return Message(role=MessageRole.MODEL, parts=tuple(parts))

    def invoke(self, prompt: Prompt) -> Message:
        import openai  # pylint: disable=import-outside-toplevel

        client = openai.OpenAI(
            api_key=self._api_key,
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=0,
            http_client=self._client,
        )
        try:
            resp = client.chat.completions.create(**self.build_payload(prompt))
        except openai.APIStatusError as exc:
            raise ModelInvocationError(
                f"Provider returned HTTP {exc.status_code}: {exc.message}"
            ) from exc
        except openai.APIError as exc:
            raise ModelInvocationError(f"Error calling OpenAI: {exc}") from exc
        data = resp.model_dump()
        logger.debug("OpenAI response: %s", data)
        return self.parse_response(data)


@register_provider("anthropic")
class AnthropicModel(ModelHandle):
    """Anthropic Messages API with tool use."""

    DEFAULT_BASE_URL = "https://api.anthropic.com"
    MAX_TOKENS = 4096

    @staticmethod
    def _content_blocks(message: Message, answered: Set[str]) -> List[Dict[str, Any]]:
        blocks: List[Dict[str, Any]] = []
        for part in message.parts:
            if isinstance(part, TextPart):
                if part.text:
                    blocks.append({"type": "text", "text": part.text})
            elif isinstance(part, FunctionCallPart):
                call = part.function_call
                if call.id in answered:
                    blocks.append(
                        {"type": "tool_use", "id": call.id, "name": call.name, "input": call.args}
                    )
                else:
                    blocks.append({"type": "text", "text": unanswered_call_text(call)})
            elif isinstance(part, FunctionResponsePart):
                response = part.function_response
                blocks.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": response.id,
                        "content": json.dumps(response.response),
                    }
                )
        return blocks or [{"type": "text", "text": EMPTY_MESSAGE_PLACEHOLDER}]

    def build_payload(self, prompt: Prompt) -> Dict[str, Any]:
        answered = answered_call_ids(prompt.messages)
        system = [prompt.system_instruction]
        messages: List[Dict[str, Any]] = []
        for message in prompt.messages:
            if message.role == MessageRole.SYSTEM:
                system.append(message.text)
                continue
            role = "assistant" if message.role == MessageRole.MODEL else "user"
            blocks = self._content_blocks(message, answered)
            # Consecutive same-role messages share a turn, so that every tool_result sits in
            # the user turn right after its tool_use.
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"].extend(blocks)
            else:
                messages.append({"role": role, "content": blocks})
        payload: Dict[str, Any] = {
            "model": self.model_id,
            "max_tokens": self.MAX_TOKENS,
            "system": "\n\n".join(system),
            "messages": messages,
        }
        if prompt.tools:
            payload["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters,
                }
                for tool in prompt.tools
            ]
        return payload

    @staticmethod
    def parse_response(data: Mapping[str, Any]) -> Message:
        parts: List[Any] = []
        for block in data["content"]:
            if block["type"] == "text":
                parts.append(TextPart(text=block["text"]))
            elif block["type"] == "tool_use":
                parts.append(
                    FunctionCallPart(
                        function_call=FunctionCall(
                            id=block["id"], name=block["name"], args=block.get("input") or {}
                        )
                    )
                )
        return Message(role=MessageRole.MODEL, parts=tuple(parts))

    def invoke(self, prompt: Prompt) -> Message:
        import anthropic  # pylint: disable=import-outside-toplevel

        client = anthropic.Anthropic(
            api_key=self._api_key,
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=0,
            http_client=self._client,
        )
        try:
            resp = client.messages.create(**self.build_payload(prompt))
        except anthropic.APIStatusError as exc:
            raise ModelInvocationError(
                f"Provider returned HTTP {exc.status_code}: {exc.message}"
            ) from exc
        except anthropic.APIError as exc:
            raise ModelInvocationError(f"Error calling Anthropic: {exc}") from exc
        data = resp.model_dump()
        logger.debug("Anthropic response: %s", data)
        return self.parse_response(data)


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------
class ProviderGateway:
    """Resolves provider + model ids into ready-to-use model handles."""

    def __init__(
        self,
        provider_ids: Sequence[str],
        api_keys: Mapping[str, Optional[str]],
        *,
        default_models: Optional[Mapping[str, str]] = None,
        base_urls: Optional[Mapping[str, Optional[str]]] = None,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._provider_ids = list(provider_ids)
        self._api_keys = dict(api_keys)
        self._default_models = dict(DEFAULT_MODELS)
        self._default_models.update(default_models or {})
        self._base_urls = dict(base_urls or {})
        self._timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderGateway":
        """Build a gateway from application settings."""
        models = {
            "openai": settings.OPENAI_MODEL,
            "anthropic": settings.ANTHROPIC_MODEL,
        }
        return cls(
            settings.PROVIDER_IDS,
            {"openai": settings.OPENAI_API_KEY, "anthropic": settings.ANTHROPIC_API_KEY},
            default_models={k: v for k, v in models.items() if v},
            base_urls={
                "openai": settings.OPENAI_BASE_URL,
                "anthropic": settings.ANTHROPIC_BASE_URL,
            },
            timeout=settings.REQUEST_TIMEOUT,
        )

    def available_provider_ids(self) -> List[str]:
        """Configured providers that have an implementation and an API key."""
        return [
            provider_id
            for provider_id in self._provider_ids
            if provider_id in registered_providers() and self._api_keys.get(provider_id)
        ]

    def preferred_model_id(self, provider_id: str) -> Optional[str]:
        return self._default_models.get(provider_id)

    def resolve(self, provider_id: str, model_id: Optional[str] = None) -> ModelHandle:
        """
        Resolve a model handle.

        Raises
        ------
        ProviderUnavailable
            If the provider is unknown or has no credentials.
        ModelUnavailable
            If no *model_id* was given and the provider has no default model.
        """
        if provider_id not in self.available_provider_ids():
            raise ProviderUnavailable(f"AI provider '{provider_id}' is not available.")
        model_id = model_id or self.preferred_model_id(provider_id)
        if not model_id:
            raise ModelUnavailable(f"No suitable model is available for provider '{provider_id}'.")
        cls = _PROVIDER_REGISTRY[provider_id]
        logger.debug("Resolved provider '%s' with model '%s'", provider_id, model_id)
        return cls(
            model_id,
            self._api_keys[provider_id] or "",
            base_url=self._base_urls.get(provider_id),
            timeout=self._timeout,
            client=self._client,
        )

    def resolve_preferred(self, provider_id: Optional[str] = None) -> ModelHandle:
        """
        Resolve the preferred model, falling back to any other available provider.

        Fallback order:
        1. *provider_id* arg
        2. every other available provider, in configuration order
        """
        available = self.available_provider_ids()
        if not available:
            raise ProviderUnavailable(
                "No AI providers are available. Please check your API keys in the settings."
            )
        candidates = [provider_id] if provider_id in available else []
        candidates += [p for p in available if p != provider_id]
        for candidate in candidates:
            try:
                handle = self.resolve(candidate)
            except ModelUnavailable:
                logger.warning("No suitable model found for provider '%s'", candidate)
                continue
            if candidate != provider_id:
                logger.info(
                    "Using alternative provider '%s' with model '%s'", candidate, handle.model_id
                )
            return handle
        raise ModelUnavailable("No suitable AI model is available. Please check your settings.")


# ---------------------------------------------------------------------------
# Model invocation
# ---------------------------------------------------------------------------
def invoke_model(handle: ModelHandle, prompt: Prompt) -> Message:
    """
    Ask *handle* for the next message.

    Errors from the agent taxonomy propagate unchanged; anything else (such as a malformed
    provider payload) is wrapped in :class:`ModelInvocationError`.
    """
    logger.debug("Invoking %r with %d messages", handle, len(prompt.messages))
    try:
        message = handle.invoke(prompt)
    except AgentError:
        raise
    except Exception as exc:  # pylint: disable=broad-except
        raise ModelInvocationError(f"Error processing provider response: {exc}") from exc

    if message.role != MessageRole.MODEL:
        raise ModelInvocationError(f"Model returned a '{message.role.value}' message.")
    return message
