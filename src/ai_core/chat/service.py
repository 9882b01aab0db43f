"""Chat turn orchestration: session bookkeeping around the responder."""
from __future__ import annotations

from typing import Optional

from ..errors import NotFoundError
from ..logging import get_logger
from ..memory.store import ExperienceStore
from .responder import Responder
from .sessions import ChatMessage, SessionTable

logger = get_logger("chat")


class ChatService:
    """Runs one chat turn against the shared store and session table."""

    def __init__(self, store: ExperienceStore, sessions: SessionTable, responder: Responder):
        self.store = store
        self.sessions = sessions
        self.responder = responder

    def send(
        self,
        content: str,
        session_id: Optional[str] = None,
    ) -> tuple[str, ChatMessage, int]:
        """Record a user message and answer it.

        Args:
            content: User message text
            session_id: Existing or new session id (generated when None)

        Returns:
            (session_id, assistant message, number of context experiences)
        """
        session = self.sessions.get_or_create(session_id)
        user_message = ChatMessage.user(content)
        self.sessions.append(session.id, user_message)

        reply = self.responder.respond(content, self.store)
        try:
            self.sessions.append(session.id, reply)
        except NotFoundError:
            # Session deleted while the reply was being generated.
            logger.info("Session %s was deleted mid-turn; reply not recorded", session.id)

        return session.id, reply, len(reply.context_used or [])
