"""Chat: sessions, retrieval-augmented replies, documents and export."""
from .sessions import ChatMessage, ChatSession, SessionTable
from .responder import (
    CannedReplyStrategy,
    ContextTemplateStrategy,
    GenerationStrategy,
    Responder,
    ResponseContext,
    ResponseStrategy,
    retrieve,
)
from .service import ChatService
from .documents import process_document
from .export import export_session

__all__ = [
    # Sessions
    "ChatMessage",
    "ChatSession",
    "SessionTable",
    # Responder
    "CannedReplyStrategy",
    "ContextTemplateStrategy",
    "GenerationStrategy",
    "Responder",
    "ResponseContext",
    "ResponseStrategy",
    "retrieve",
    # Service
    "ChatService",
    # Documents / export
    "process_document",
    "export_session",
]
