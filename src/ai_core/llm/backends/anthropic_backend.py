"""Anthropic backend."""
from __future__ import annotations

import os
from typing import Optional

from ...errors import BackendDisabledError, GenerationError
from .base import DEFAULT_TIMEOUT_S, GenerationBackend
from .openai_backend import SYSTEM_PROMPT


class AnthropicBackendError(GenerationError):
    """Raised when Anthropic API call fails."""
    pass


class AnthropicBackend(GenerationBackend):
    """Anthropic messages API backend."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-20250514",
        enabled: bool = True,
        max_tokens: int = 1024,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise AnthropicBackendError("ANTHROPIC_API_KEY not set")

        self._model = model
        self._enabled = enabled
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s
        self._client = None

    def _get_client(self):
        """Lazy-load Anthropic client."""
        if self._client is None:
            try:
                from anthropic import Anthropic
            except ImportError as exc:
                raise AnthropicBackendError(
                    "anthropic package not installed. Run: pip install anthropic"
                ) from exc
            self._client = Anthropic(api_key=self._api_key)
        return self._client

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def model(self) -> str:
        return self._model

    def is_enabled(self) -> bool:
        return self._enabled

    def generate(self, prompt: str, timeout_s: Optional[float] = None) -> str:
        if not self._enabled:
            raise BackendDisabledError("Anthropic backend is disabled")
        client = self._get_client()

        try:
            response = client.messages.create(
                model=self._model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout_s or self.timeout_s,
            )
        except Exception as exc:
            raise AnthropicBackendError(f"Anthropic API error: {exc}") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if not text.strip():
            raise AnthropicBackendError("Anthropic returned empty response")
        return text
