"""Abstract base class for text generation backends."""
from __future__ import annotations

import os
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ...errors import BackendDisabledError

DEFAULT_TIMEOUT_S = 120.0


def build_context_prompt(user_input: str, context_lines: Sequence[str]) -> str:
    """Assemble the prompt sent with retrieved memory context."""
    if context_lines:
        context_text = "Context from memory:\n" + "\n".join(context_lines)
    else:
        context_text = "No context available."
    return (
        f"{context_text}\n\n"
        f"User question: {user_input}\n\n"
        "Please provide a helpful response based on the context above."
    )


@dataclass
class CircuitBreaker:
    """Stops calling a failing backend for a cooldown period.

    Shared by the generation worker threads, so counters change under a lock.
    """
    failure_count: int = 0
    last_failure_at: float = 0.0
    threshold: int = field(default_factory=lambda: int(os.environ.get("AI_CORE_LLM_CIRCUIT_THRESHOLD", "5")))
    cooldown_s: float = field(default_factory=lambda: float(os.environ.get("AI_CORE_LLM_CIRCUIT_COOLDOWN_S", "30")))
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            self.last_failure_at = time.time()

    def record_success(self) -> None:
        with self._lock:
            self.failure_count = 0

    def is_open(self) -> bool:
        with self._lock:
            if self.failure_count < self.threshold:
                return False
            return (time.time() - self.last_failure_at) < self.cooldown_s


class GenerationBackend(ABC):
    """Optional external text generator (Ollama, OpenAI, Anthropic, ...)."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return backend name (e.g., 'ollama', 'openai')."""
        pass

    @property
    @abstractmethod
    def model(self) -> str:
        """Return the model ID being used."""
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        """Return True if the backend should be asked at all."""
        pass

    @abstractmethod
    def generate(self, prompt: str, timeout_s: Optional[float] = None) -> str:
        """
        Generate a completion for a raw prompt.

        Args:
            prompt: Full prompt text
            timeout_s: Request timeout in seconds

        Returns:
            Generated text (never empty)

        Raises:
            BackendDisabledError: If the backend is switched off
            BackendUnavailableError: If the backend cannot be reached
            GenerationError: If the backend returned an error or no text
        """
        pass

    def generate_with_context(
        self,
        user_input: str,
        context_lines: Sequence[str],
        timeout_s: Optional[float] = None,
    ) -> str:
        """Generate a reply to user input grounded in memory context lines."""
        return self.generate(build_context_prompt(user_input, context_lines), timeout_s=timeout_s)

    def health_check(self) -> bool:
        """Return True if the backend is enabled and reachable."""
        return self.is_enabled()

    def list_models(self) -> list[str]:
        """Return model names the backend can serve."""
        return [self.model]


class MockBackend(GenerationBackend):
    """Mock backend for testing without network calls."""

    def __init__(
        self,
        model_id: str = "mock-model",
        enabled: bool = True,
        delay_s: float = 0.0,
    ):
        self._model = model_id
        self._enabled = enabled
        self.delay_s = delay_s
        self._responses: deque[str] = deque()
        self._error: Optional[Exception] = None
        self.prompts: list[str] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def model(self) -> str:
        return self._model

    def is_enabled(self) -> bool:
        return self._enabled

    def queue_response(self, text: str) -> None:
        """Queue a reply to be returned by the next generate() call."""
        self._responses.append(text)

    def fail_with(self, error: Optional[Exception]) -> None:
        """Make every generate() call raise the given error (None to stop)."""
        self._error = error

    def generate(self, prompt: str, timeout_s: Optional[float] = None) -> str:
        if not self._enabled:
            raise BackendDisabledError("Mock backend is disabled")
        self.prompts.append(prompt)
        if self.delay_s:
            time.sleep(self.delay_s)
        if self._error is not None:
            raise self._error
        if self._responses:
            return self._responses.popleft()
        return f"mock reply ({len(prompt)} prompt chars)"
