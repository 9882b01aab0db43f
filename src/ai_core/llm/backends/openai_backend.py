"""OpenAI backend (also serves OpenAI-compatible endpoints such as Ollama's /v1)."""
from __future__ import annotations

import os
from typing import Optional

from ...errors import BackendDisabledError, GenerationError
from .base import DEFAULT_TIMEOUT_S, GenerationBackend

SYSTEM_PROMPT = (
    "You are a personal knowledge assistant. "
    "Answer using the memory context provided. If it does not help, say so briefly."
)


class OpenAIBackendError(GenerationError):
    """Raised when OpenAI API call fails."""
    pass


class OpenAIBackend(GenerationBackend):
    """OpenAI chat completions backend."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        enabled: bool = True,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self._api_key:
            raise OpenAIBackendError("OPENAI_API_KEY not set")

        self._model = model
        self._base_url = base_url
        self._enabled = enabled
        self.timeout_s = timeout_s
        self._client = None

    def _get_client(self):
        """Lazy-load OpenAI client."""
        if self._client is None:
            try:
                from openai import OpenAI
            except ImportError as exc:
                raise OpenAIBackendError(
                    "openai package not installed. Run: pip install openai"
                ) from exc
            self._client = OpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._model

    def is_enabled(self) -> bool:
        return self._enabled

    def generate(self, prompt: str, timeout_s: Optional[float] = None) -> str:
        if not self._enabled:
            raise BackendDisabledError("OpenAI backend is disabled")
        client = self._get_client()

        try:
            response = client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
                timeout=timeout_s or self.timeout_s,
            )
        except Exception as exc:
            raise OpenAIBackendError(f"OpenAI API error: {exc}") from exc

        if not response.choices:
            raise OpenAIBackendError("OpenAI returned no choices")
        text = response.choices[0].message.content or ""
        if not text.strip():
            raise OpenAIBackendError("OpenAI returned empty response")
        return text
