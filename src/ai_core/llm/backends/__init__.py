"""Text generation backend implementations."""
from typing import Optional

from ...errors import BackendCreationError
from .base import (
    DEFAULT_TIMEOUT_S,
    CircuitBreaker,
    GenerationBackend,
    MockBackend,
    build_context_prompt,
)
from .ollama_backend import OllamaBackend
from .openai_backend import OpenAIBackend, OpenAIBackendError
from .anthropic_backend import AnthropicBackend, AnthropicBackendError

__all__ = [
    "CircuitBreaker",
    "GenerationBackend",
    "MockBackend",
    "build_context_prompt",
    "OllamaBackend",
    "OpenAIBackend",
    "OpenAIBackendError",
    "AnthropicBackend",
    "AnthropicBackendError",
    "create_backend",
]


def create_backend(
    provider_name: str,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    url: Optional[str] = None,
    enabled: bool = True,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> Optional[GenerationBackend]:
    """
    Factory function to create a generation backend.

    Args:
        provider_name: One of 'ollama', 'openai', 'anthropic', 'mock', 'none'
        model: Optional model ID override
        api_key: Optional API key override (hosted providers)
        url: Server URL (Ollama) or base URL (OpenAI-compatible)
        enabled: Whether the backend should be used
        timeout_s: Default request timeout

    Returns:
        Configured backend, or None for 'none'

    Raises:
        BackendCreationError: If backend creation fails
    """
    provider_name = (provider_name or "none").lower().strip()

    try:
        if provider_name == "ollama":
            return OllamaBackend(
                url=url or "http://localhost:11434",
                model=model or "llama2",
                enabled=enabled,
                timeout_s=timeout_s,
            )
        elif provider_name == "openai":
            return OpenAIBackend(
                api_key=api_key,
                model=model or "gpt-4o-mini",
                base_url=url,
                enabled=enabled,
                timeout_s=timeout_s,
            )
        elif provider_name == "anthropic":
            return AnthropicBackend(
                api_key=api_key,
                model=model or "claude-sonnet-4-20250514",
                enabled=enabled,
                timeout_s=timeout_s,
            )
        elif provider_name == "mock":
            return MockBackend(
                model_id=model or "mock-model",
                enabled=enabled,
            )
        elif provider_name in ("none", "off", ""):
            return None
        else:
            raise BackendCreationError(
                f"Unknown provider: {provider_name}. "
                f"Supported: ollama, openai, anthropic, mock, none"
            )
    except (OpenAIBackendError, AnthropicBackendError) as exc:
        raise BackendCreationError(str(exc)) from exc
