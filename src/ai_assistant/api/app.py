"""
Core API backend for the AI assistant.

This module is a thin caller of the agent: it loads a session's history, runs agent steps until
the turn is finished and persists every step's new messages.  It exposes the following endpoints:
- **GET /health**  - liveness check.
- **POST /sessions** - create a new session, returns a session ID.
- **GET /sessions** - list all sessions with stored history.
- **GET /sessions/{session_id}/messages** - the session's message history.
- **POST /sessions/{session_id}/messages** - send a user message: {"message": "..."}
- **DELETE /sessions/{session_id}/messages** - reset the session's history.
"""

import logging
import threading
import uuid
from collections import defaultdict
from pathlib import Path
from typing import (
    DefaultDict,
    List,
)

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
)

from ai_assistant.agent.agent_loop import (
    Agent,
    AgentOptions,
    run_until_finished,
)
from ai_assistant.agent.provider_gateway import ProviderGateway
from ai_assistant.api.models import (
    ChatMessage,
    MessageRequest,
    MessageResponse,
    SessionResponse,
)
from ai_assistant.common import (
    AnsiColors,
    colored_print,
)
from ai_assistant.config import settings
from ai_assistant.core.errors import (
    AgentError,
    ProviderUnavailable,
)
from ai_assistant.core.schema import (
    AgentStepResult,
    Message,
)
from ai_assistant.memory.memory_store import (
    InMemoryMessageStore,
    JsonlMessageStore,
    MessageStore,
)
from ai_assistant.tools import ToolRegistry
from ai_assistant.tools.catalog import build_default_registry
from ai_assistant.tools.plugins import PluginStore
from ai_assistant.tools.posts import PostStore

logger = logging.getLogger(__name__)

app = FastAPI(title="AI Assistant API", version="0.1.0", description="Agent loop chat API")


# ---------------------------------------------------------------------------
# Dependencies (overridable in tests via ``app.dependency_overrides``)
# ---------------------------------------------------------------------------
_store: MessageStore = (
    InMemoryMessageStore()
    if settings.STORE == "memory"
    else JsonlMessageStore(Path(settings.DATA_DIR) / "sessions")
)
_posts = PostStore()
_plugins = PluginStore()

# Calls to Agent.step() must be serialised per conversation.
_session_locks: DefaultDict[str, threading.Lock] = defaultdict(threading.Lock)
_session_locks_guard = threading.Lock()


def get_store() -> MessageStore:
    return _store


def get_gateway() -> ProviderGateway:
    return ProviderGateway.from_settings(settings)


def get_registry() -> ToolRegistry:
    return build_default_registry(_posts, _plugins)


def _session_lock(session_id: str) -> threading.Lock:
    with _session_locks_guard:
        return _session_locks[session_id]


def _load(store: MessageStore, session_id: str) -> List[Message]:
    try:
        return store.load(session_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.post("/sessions", response_model=SessionResponse, summary="Create a new session")
def create_session(store: MessageStore = Depends(get_store)) -> SessionResponse:
    """Create a new conversation session."""
    session_id = uuid.uuid4().hex
    store.append(session_id, [])
    return SessionResponse(session_id=session_id)


@app.get("/sessions", response_model=List[str], summary="List sessions")
def list_sessions(store: MessageStore = Depends(get_store)) -> List[str]:
    """List all session IDs."""
    return store.sessions()


@app.get(
    "/sessions/{session_id}/messages",
    response_model=List[ChatMessage],
    summary="Get the message history",
)
def get_messages(session_id: str, store: MessageStore = Depends(get_store)) -> List[ChatMessage]:
    """Return the stored history of *session_id*."""
    return [ChatMessage.regular(message) for message in _load(store, session_id)]


@app.post(
    "/sessions/{session_id}/messages",
    response_model=MessageResponse,
    summary="Send a message",
)
def send_message(
    session_id: str,
    req: MessageRequest,
    store: MessageStore = Depends(get_store),
    gateway: ProviderGateway = Depends(get_gateway),
    registry: ToolRegistry = Depends(get_registry),
) -> MessageResponse:
    """Append the user message and run the agent until its turn is finished."""
    user_message = Message.user_text(req.message)

    with _session_lock(session_id):
        history = _load(store, session_id)
        store.append(session_id, [user_message])

        completed: List[AgentStepResult] = []

        def persist(result: AgentStepResult) -> None:
            store.append(session_id, result.new_messages)
            completed.append(result)

        try:
            handle = gateway.resolve_preferred(settings.PROVIDER)
            agent = Agent(
                handle,
                registry,
                [*history, user_message],
                options=AgentOptions(max_step_retries=settings.MAX_STEP_RETRIES),
            )
            run_until_finished(agent, settings.MAX_AGENT_STEPS, on_step=persist)
        except ProviderUnavailable as exc:
            logger.warning("No model available for session %s: %s", session_id, exc)
            reply = ChatMessage.error(
                "Sorry, no AI model is available that supports your request. "
                "Please check your provider settings."
            )
            return MessageResponse(reply=reply, steps=len(completed), session_id=session_id)
        except AgentError as exc:
            logger.error("Agent error in session %s: %s", session_id, exc)
            reply = ChatMessage.error(f"An error occurred while processing the request: {exc}")
            return MessageResponse(reply=reply, steps=len(completed), session_id=session_id)

    last = next((r.last_message for r in reversed(completed) if r.last_message), None)
    if last is None:
        reply = ChatMessage.error("The assistant returned nothing.")
    else:
        reply = ChatMessage.regular(last)
    return MessageResponse(reply=reply, steps=len(completed), session_id=session_id)


@app.delete("/sessions/{session_id}/messages", summary="Reset the message history")
def reset_messages(session_id: str, store: MessageStore = Depends(get_store)) -> dict[str, bool]:
    """Delete the stored history of *session_id*."""
    try:
        store.reset(session_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with _session_locks_guard:
        _session_locks.pop(session_id, None)
    return {"success": True}


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn out of the import path of library users
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting AI Assistant API at %s:%d (reload=%s, log_level=%s)",
        host,
        port,
        reload,
        log_level,
    )
    logger.debug(
        "API settings: %s",
        settings.model_dump(exclude={"OPENAI_API_KEY", "ANTHROPIC_API_KEY"}),
    )

    colored_print(f"AI Assistant API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "ai_assistant.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m ai_assistant.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
