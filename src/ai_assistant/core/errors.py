"""Error taxonomy for the agent core."""


class AgentError(RuntimeError):
    """Base class for every error raised by the agent core."""


class ProviderUnavailable(AgentError):
    """Raised when no usable provider can be resolved."""


class ModelUnavailable(ProviderUnavailable):
    """Raised when a provider is usable but no model can be resolved for it."""


class ModelInvocationError(AgentError):
    """Raised when a resolved model fails to produce a response."""


class StepRetriesExhausted(AgentError):
    """Raised when the model keeps calling unknown functions past the retry budget."""

    def __init__(self, retries: int, invalid_names: list[str] | None = None) -> None:
        self.retries = retries
        self.invalid_names = list(invalid_names or [])
        super().__init__(f"Agent failed to execute step after {retries} retries.")


class ToolPermissionDenied(AgentError):
    """A tool call was rejected by the tool's permission check."""

    def __init__(self, tool_name: str, reason: str | None = None) -> None:
        self.tool_name = tool_name
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Permission denied for tool '{tool_name}'{detail}")


class ToolExecutionError(AgentError):
    """Raised when a requested tool cannot run or fails."""
