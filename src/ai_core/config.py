"""Environment-driven service configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid {name} value: {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API server and its collaborators."""

    bearer_token: str
    api_host: str = "127.0.0.1"
    api_port: int = 3000
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama2"
    ollama_enabled: bool = False
    llm_provider: str = "ollama"
    llm_timeout_s: float = 120.0
    snapshot_path: Path = Path("data/memory.json")
    snapshot_interval_s: float = 60.0
    lock_timeout_s: float = 30.0
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "Settings":
        """Load settings from environment variables (and a .env file if present).

        Raises:
            ConfigError: If BEARER_TOKEN is missing or a numeric value is invalid.
        """
        load_dotenv(dotenv_path)

        bearer_token = os.getenv("BEARER_TOKEN")
        if not bearer_token:
            raise ConfigError("BEARER_TOKEN not set in environment or .env file")

        raw_port = os.getenv("API_PORT", "3000")
        try:
            api_port = int(raw_port)
        except ValueError as exc:
            raise ConfigError(f"Invalid API_PORT value: {raw_port!r}") from exc
        if not 0 < api_port < 65536:
            raise ConfigError(f"Invalid API_PORT value: {raw_port!r}")

        return cls(
            bearer_token=bearer_token,
            api_host=os.getenv("API_HOST", "127.0.0.1"),
            api_port=api_port,
            ollama_url=os.getenv("OLLAMA_URL", "http://localhost:11434").rstrip("/"),
            ollama_model=os.getenv("OLLAMA_MODEL", "llama2"),
            ollama_enabled=_env_bool("OLLAMA_ENABLED"),
            llm_provider=os.getenv("AI_CORE_LLM_PROVIDER", "ollama").lower().strip(),
            llm_timeout_s=_env_float("AI_CORE_LLM_TIMEOUT_S", "120"),
            snapshot_path=Path(os.getenv("AI_CORE_SNAPSHOT_PATH", "data/memory.json")),
            snapshot_interval_s=_env_float("AI_CORE_SNAPSHOT_INTERVAL_S", "60"),
            lock_timeout_s=_env_float("AI_CORE_LOCK_TIMEOUT_S", "30"),
            log_level=os.getenv("AI_CORE_LOG_LEVEL", "INFO"),
            log_json=_env_bool("AI_CORE_LOG_JSON"),
        )

    @property
    def address(self) -> str:
        return f"{self.api_host}:{self.api_port}"
