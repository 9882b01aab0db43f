"""Ollama backend over its native HTTP API."""
from __future__ import annotations

import json
import socket
import urllib.error
import urllib.request
from typing import Any, Optional, Tuple

from ...errors import BackendDisabledError, BackendUnavailableError, GenerationError
from ...logging import get_logger
from .base import DEFAULT_TIMEOUT_S, CircuitBreaker, GenerationBackend

logger = get_logger("llm.ollama")

HEALTH_TIMEOUT_S = 5.0
LIST_MODELS_TIMEOUT_S = 10.0


class OllamaBackend(GenerationBackend):
    """Local Ollama server (``/api/generate``, ``/api/tags``)."""

    def __init__(
        self,
        url: str = "http://localhost:11434",
        model: str = "llama2",
        enabled: bool = False,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self.base_url = url.rstrip("/")
        self._model = model
        self._enabled = enabled
        self.timeout_s = timeout_s
        self._circuit_breaker = CircuitBreaker()

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    def is_enabled(self) -> bool:
        return self._enabled

    def generate(self, prompt: str, timeout_s: Optional[float] = None) -> str:
        if not self._enabled:
            raise BackendDisabledError("Ollama is disabled. Set OLLAMA_ENABLED=true in .env")
        if self._circuit_breaker.is_open():
            raise BackendUnavailableError("Ollama circuit breaker open; skipping request")

        payload = {"model": self._model, "prompt": prompt, "stream": False}
        logger.debug(
            "Sending request to Ollama: %s/api/generate (model=%s, prompt=%d chars)",
            self.base_url, self._model, len(prompt),
        )
        status, body = self._request_json(
            "POST", "/api/generate", payload, timeout_s or self.timeout_s
        )

        if status >= 400:
            raise GenerationError(f"Ollama API error ({status}): {body}")
        if not isinstance(body, dict):
            raise GenerationError(f"Failed to parse Ollama response: {body!r}")
        if body.get("error"):
            raise GenerationError(f"Ollama error: {body['error']}")

        text = body.get("response") or ""
        if not text:
            raise GenerationError("Ollama returned empty response")
        logger.debug("Ollama response length: %d chars", len(text))
        return text

    def health_check(self) -> bool:
        if not self._enabled:
            return False
        try:
            status, _ = self._request_json("GET", "/api/tags", None, HEALTH_TIMEOUT_S)
        except BackendUnavailableError as exc:
            logger.warning("Ollama health check failed: %s", exc)
            return False
        is_ok = 200 <= status < 300
        logger.info("Ollama health check: %s", "OK" if is_ok else "FAILED")
        return is_ok

    def list_models(self) -> list[str]:
        if not self._enabled:
            raise BackendDisabledError("Ollama is disabled")
        status, body = self._request_json("GET", "/api/tags", None, LIST_MODELS_TIMEOUT_S)
        if status >= 400 or not isinstance(body, dict):
            raise GenerationError(f"Failed to fetch models ({status}): {body}")
        try:
            return [m["name"] for m in body.get("models", [])]
        except (KeyError, TypeError) as exc:
            raise GenerationError(f"Failed to parse models list: {exc}") from exc

    def _request_json(
        self,
        method: str,
        path: str,
        payload: Optional[dict],
        timeout_s: float,
    ) -> Tuple[int, Any]:
        url = self.base_url + path
        data = None
        headers = {"Content-Type": "application/json"}
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=timeout_s) as resp:
                raw = resp.read()
                self._circuit_breaker.record_success()
                if not raw:
                    return resp.status, None
                return resp.status, json.loads(raw.decode("utf-8"))
        except urllib.error.HTTPError as err:
            if err.code >= 500:
                self._circuit_breaker.record_failure()
            raw = err.read()
            if raw:
                try:
                    return err.code, json.loads(raw.decode("utf-8"))
                except json.JSONDecodeError:
                    return err.code, raw.decode("utf-8", errors="ignore")
            return err.code, None
        except json.JSONDecodeError as exc:
            raise GenerationError(f"Failed to parse Ollama response: {exc}") from exc
        except (urllib.error.URLError, TimeoutError, socket.timeout, ConnectionError) as exc:
            self._circuit_breaker.record_failure()
            raise BackendUnavailableError(
                f"Failed to connect to Ollama: {exc}. Make sure Ollama is running at {self.base_url}"
            ) from exc
