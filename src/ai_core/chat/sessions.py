"""Chat messages, sessions and the process-wide session table."""
from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import NotFoundError


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_message_id() -> str:
    return f"msg_{uuid.uuid4()}"


class ChatMessage(BaseModel):
    """One turn of a chat session."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=_new_message_id)
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=_utc_now)
    context_used: Optional[list[str]] = None

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, context_used: Optional[list[str]] = None) -> "ChatMessage":
        return cls(role="assistant", content=content, context_used=context_used)


class ChatSession(BaseModel):
    """Ordered conversation identified by a caller-supplied or generated id."""

    id: str
    messages: list[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    def add_message(self, message: ChatMessage) -> None:
        self.messages.append(message)
        self.updated_at = _utc_now()

    def get_recent_messages(self, count: int) -> list[ChatMessage]:
        if count <= 0:
            return []
        return self.messages[-count:]


class SessionTable:
    """Thread-safe mapping of session id -> ChatSession.

    Created empty together with the application and never torn down.
    Returned sessions are deep copies; mutate through ``append``.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, ChatSession] = {}
        self._lock = threading.RLock()

    def get(self, session_id: str) -> Optional[ChatSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.model_copy(deep=True) if session else None

    def get_or_create(self, session_id: Optional[str] = None) -> ChatSession:
        """Return the named session, creating it if missing.

        A new uuid is generated when no id is given.
        """
        session_id = session_id or str(uuid.uuid4())
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = ChatSession(id=session_id)
                self._sessions[session_id] = session
            return session.model_copy(deep=True)

    def append(self, session_id: str, *messages: ChatMessage) -> ChatSession:
        """Append messages to an existing session.

        Raises:
            NotFoundError: If the session does not exist
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFoundError(f"Session not found: {session_id}")
            for message in messages:
                session.add_message(message)
            return session.model_copy(deep=True)

    def list_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions.keys())

    def delete(self, session_id: str) -> bool:
        """Remove a session, returning False if it did not exist."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
