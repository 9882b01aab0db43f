"""Generation backends used by the retrieval-augmented responder."""
from .backends import (
    AnthropicBackend,
    GenerationBackend,
    MockBackend,
    OllamaBackend,
    OpenAIBackend,
    build_context_prompt,
    create_backend,
)

__all__ = [
    "AnthropicBackend",
    "GenerationBackend",
    "MockBackend",
    "OllamaBackend",
    "OpenAIBackend",
    "build_context_prompt",
    "create_backend",
]
