"""Retrieval-augmented reply generation.

A reply is produced by the first strategy that accepts the request:
generation backend, then a template over retrieved experiences, then a
canned reply. Backend failures are logged and never reach the caller.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from ..llm.backends.base import DEFAULT_TIMEOUT_S, GenerationBackend
from ..logging import get_logger
from ..memory.patterns import PatternIndex, tokenize
from ..memory.store import Experience
from .sessions import ChatMessage

logger = get_logger("chat.responder")

MAX_TEMPLATE_HITS = 3
MAX_TEMPLATE_PATTERNS = 3


class SearchableStore(Protocol):
    def search(self, query: str) -> Sequence[Experience]: ...


@dataclass
class ResponseContext:
    """Input and retrieved experiences for one reply."""

    user_input: str
    hits: list[Experience] = field(default_factory=list)

    @property
    def context_ids(self) -> list[str]:
        return [e.id for e in self.hits]

    def context_lines(self) -> list[str]:
        return [f"- {e.content} (from {e.source})" for e in self.hits]


def retrieve(user_input: str, store: SearchableStore) -> list[Experience]:
    """Union of per-keyword search hits, deduplicated by id.

    Hits keep first-seen order: keywords in input order, and store
    insertion order within one keyword. Each ``search`` copies its results
    out of the store, so no lock is held once this returns.
    """
    hits: dict[str, Experience] = {}
    for keyword in dict.fromkeys(tokenize(user_input)):
        for exp in store.search(keyword):
            hits.setdefault(exp.id, exp)
    return list(hits.values())


class ResponseStrategy(ABC):
    """One step of the reply cascade."""

    name: str = "strategy"

    @abstractmethod
    def respond(self, context: ResponseContext) -> Optional[str]:
        """Return reply text, or None to let the next strategy try."""
        pass


class GenerationStrategy(ResponseStrategy):
    """Delegate to a generation backend, bounded by a timeout."""

    name = "generation"

    def __init__(
        self,
        backend: Optional[GenerationBackend],
        executor: ThreadPoolExecutor,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self.backend = backend
        self.executor = executor
        self.timeout_s = timeout_s

    def respond(self, context: ResponseContext) -> Optional[str]:
        backend = self.backend
        if backend is None or not backend.is_enabled():
            return None

        future = self.executor.submit(
            backend.generate_with_context,
            context.user_input,
            context.context_lines(),
            self.timeout_s,
        )
        try:
            text = future.result(timeout=self.timeout_s)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(
                "%s generation timed out after %.1fs. Using fallback.",
                backend.name, self.timeout_s,
            )
            return None
        except Exception as exc:
            logger.warning("%s generation failed: %s. Using fallback.", backend.name, exc)
            return None

        if not text or not text.strip():
            logger.warning("%s returned an empty reply. Using fallback.", backend.name)
            return None
        return text


class ContextTemplateStrategy(ResponseStrategy):
    """Summarize the retrieved experiences and their keywords."""

    name = "context_template"

    def respond(self, context: ResponseContext) -> Optional[str]:
        hits = context.hits
        if not hits:
            return None

        # Fresh index over exactly the hits
        patterns = PatternIndex.build(hits)
        top = patterns.top(MAX_TEMPLATE_PATTERNS)

        lines = [f"Based on {len(hits)} relevant experiences I found:", ""]
        for i, exp in enumerate(hits[:MAX_TEMPLATE_HITS], start=1):
            lines.append(f"{i}. {exp.content} (from {exp.source})")
        reply = "\n".join(lines) + "\n"

        if top:
            reply += "\nDetected patterns: " + ", ".join(p.keyword for p in top)

        reply += "\n\nDoes this answer your question?"
        return reply


class CannedReplyStrategy(ResponseStrategy):
    """Fixed replies chosen by substring checks. Never declines."""

    name = "canned"

    GREETING = (
        "Hello! How can I help you? I have access to the memories and "
        "experiences stored so far."
    )
    WHAT = (
        "I am AI Core. I can help you access and analyze information from "
        "memory. Please ask something more specific."
    )
    HOW = (
        "I use pattern recognition and memory analysis to answer. Try giving "
        "more context or keywords."
    )
    THANKS = "You're welcome! Glad to help. Is there anything else you'd like to ask?"
    NO_INFORMATION = (
        "I understand your question about '{input}'. However, I could not find "
        "relevant information in memory right now. Please add more experiences "
        "or give more specific context."
    )

    def respond(self, context: ResponseContext) -> Optional[str]:
        text = context.user_input.lower()
        if "halo" in text or "hello" in text or "hi" in text:
            return self.GREETING
        if "apa" in text or "what" in text:
            return self.WHAT
        if "bagaimana" in text or "how" in text:
            return self.HOW
        if "terima kasih" in text or "thanks" in text:
            return self.THANKS
        return self.NO_INFORMATION.format(input=context.user_input)


class Responder:
    """Answers free text from memory, optionally through a generation backend."""

    def __init__(
        self,
        backend: Optional[GenerationBackend] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        max_workers: int = 4,
        strategies: Optional[Sequence[ResponseStrategy]] = None,
    ):
        """Initialize the responder.

        Args:
            backend: Optional generation backend
            timeout_s: Upper bound for one generation call
            max_workers: Threads available for concurrent generation calls
            strategies: Override the default cascade (mostly for tests)
        """
        self.backend = backend
        self.timeout_s = timeout_s
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="ai-core-generate"
        )
        if strategies is None:
            strategies = [
                GenerationStrategy(backend, self._executor, timeout_s),
                ContextTemplateStrategy(),
                CannedReplyStrategy(),
            ]
        self.strategies = list(strategies)

    def respond(self, user_input: str, store: SearchableStore) -> ChatMessage:
        """Build an assistant message answering ``user_input``.

        Args:
            user_input: Free text from the user
            store: Store to retrieve context from

        Returns:
            Assistant message whose ``context_used`` lists the retrieved ids
        """
        context = ResponseContext(user_input=user_input, hits=retrieve(user_input, store))

        for strategy in self.strategies:
            text = strategy.respond(context)
            if text is not None:
                logger.debug(
                    "Reply from %s strategy (%d context experiences)",
                    strategy.name, len(context.hits),
                )
                return ChatMessage.assistant(text, context_used=context.context_ids)

        # Only reachable with a custom cascade where every strategy declines
        text = CannedReplyStrategy().respond(context)
        return ChatMessage.assistant(text, context_used=context.context_ids)

    def close(self) -> None:
        """Stop the generation thread pool without waiting for late calls."""
        self._executor.shutdown(wait=False, cancel_futures=True)
