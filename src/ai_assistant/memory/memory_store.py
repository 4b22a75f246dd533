"""Persist per-session message histories (in memory or as JSON lines on disk)."""

import json
import logging
import re
import threading
from abc import (
    ABC,
    abstractmethod,
)
from pathlib import Path
from typing import (
    Dict,
    List,
    Sequence,
)

from ai_assistant.core.schema import Message

logger = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,128}")


class MessageStore(ABC):
    """Durable append-only history, one ordered message list per session."""

    @abstractmethod
    def load(self, session_id: str) -> List[Message]:
        """Return the session's messages in order (empty for an unknown session)."""

    @abstractmethod
    def append(self, session_id: str, messages: Sequence[Message]) -> None:
        """Append *messages* to the session's history."""

    @abstractmethod
    def reset(self, session_id: str) -> None:
        """Delete the session's history."""

    @abstractmethod
    def sessions(self) -> List[str]:
        """Return the ids of all sessions with stored history."""


class InMemoryMessageStore(MessageStore):
    """Process-local store, mainly for tests and the ``memory`` store setting."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages: Dict[str, List[Message]] = {}

    def load(self, session_id: str) -> List[Message]:
        with self._lock:
            return list(self._messages.get(session_id, []))

    def append(self, session_id: str, messages: Sequence[Message]) -> None:
        with self._lock:
            self._messages.setdefault(session_id, []).extend(messages)

    def reset(self, session_id: str) -> None:
        with self._lock:
            self._messages.pop(session_id, None)

    def sessions(self) -> List[str]:
        with self._lock:
            return list(self._messages)


class JsonlMessageStore(MessageStore):
    """
    One ``<session_id>.jsonl`` file per session, one JSON-encoded message per line.

    Session ids are restricted to ``[A-Za-z0-9_-]`` so they map safely onto file names.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)
        self._lock = threading.Lock()

    def init(self) -> None:
        """Ensure the storage directory exists."""
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        if not _SESSION_ID_RE.fullmatch(session_id):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self._root / f"{session_id}.jsonl"

    def load(self, session_id: str) -> List[Message]:
        path = self._path(session_id)
        if not path.exists():
            return []
        with self._lock, path.open("r", encoding="utf-8") as f:
            return [Message.model_validate_json(line) for line in f if line.strip()]

    def append(self, session_id: str, messages: Sequence[Message]) -> None:
        path = self._path(session_id)
        self.init()
        with self._lock, path.open("a", encoding="utf-8") as f:
            for message in messages:
                f.write(json.dumps(message.model_dump(mode="json")) + "\n")
        logger.debug("Appended %d messages to session %s", len(messages), session_id)

    def reset(self, session_id: str) -> None:
        with self._lock:
            self._path(session_id).unlink(missing_ok=True)

    def sessions(self) -> List[str]:
        if not self._root.is_dir():
            return []
        return sorted(path.stem for path in self._root.glob("*.jsonl"))
