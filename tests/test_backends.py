"""Tests for generation backends."""
from __future__ import annotations

import io
import json
import threading
import urllib.error
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from ai_core.errors import (
    BackendCreationError,
    BackendDisabledError,
    BackendUnavailableError,
    GenerationError,
)
from ai_core.llm.backends import (
    AnthropicBackend,
    CircuitBreaker,
    MockBackend,
    OllamaBackend,
    OpenAIBackend,
    build_context_prompt,
    create_backend,
)

URLOPEN = "ai_core.llm.backends.ollama_backend.urllib.request.urlopen"


def _response(payload, status=200):
    resp = MagicMock()
    resp.__enter__.return_value = resp
    resp.status = status
    resp.read.return_value = json.dumps(payload).encode("utf-8")
    return resp


def _http_error(code, payload):
    return urllib.error.HTTPError(
        "http://localhost:11434/api/generate", code, "error", {},
        io.BytesIO(json.dumps(payload).encode("utf-8")),
    )


class TestContextPrompt:

    def test_with_context(self):
        prompt = build_context_prompt("why?", ["- a (from b)"])
        assert prompt.startswith("Context from memory:\n- a (from b)")
        assert "User question: why?" in prompt

    def test_without_context(self):
        assert build_context_prompt("why?", []).startswith("No context available.")


class TestMockBackend:
    """Test cases for MockBackend."""

    def test_name_and_model(self):
        backend = MockBackend(model_id="test-model")
        assert backend.name == "mock"
        assert backend.model == "test-model"
        assert backend.list_models() == ["test-model"]

    def test_default_reply(self):
        assert MockBackend().generate("abc").startswith("mock reply")

    def test_queued_reply(self):
        backend = MockBackend()
        backend.queue_response("queued")
        assert backend.generate_with_context("q", []) == "queued"
        assert "User question: q" in backend.prompts[0]

    def test_disabled(self):
        backend = MockBackend(enabled=False)
        assert backend.health_check() is False
        with pytest.raises(BackendDisabledError):
            backend.generate("x")


class TestCircuitBreaker:

    def test_concurrent_failures_are_all_counted(self):
        breaker = CircuitBreaker(threshold=1000, cooldown_s=60)

        def fail_many():
            for _ in range(250):
                breaker.record_failure()

        threads = [threading.Thread(target=fail_many) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert breaker.failure_count == 1000
        assert breaker.is_open()
        breaker.record_success()
        assert not breaker.is_open()


class TestOllamaBackend:
    """Test cases for OllamaBackend with a patched urlopen."""

    def test_disabled_raises(self):
        backend = OllamaBackend(enabled=False)
        with pytest.raises(BackendDisabledError):
            backend.generate("hi")

    def test_generate(self):
        backend = OllamaBackend(url="http://ollama:11434/", model="llama2", enabled=True)
        with patch(URLOPEN, return_value=_response({"response": "hello from ollama"})) as mock_open:
            assert backend.generate("hi", timeout_s=3) == "hello from ollama"

        request = mock_open.call_args[0][0]
        assert request.full_url == "http://ollama:11434/api/generate"
        assert request.get_method() == "POST"
        assert json.loads(request.data) == {"model": "llama2", "prompt": "hi", "stream": False}
        assert mock_open.call_args[1]["timeout"] == 3

    def test_error_field(self):
        backend = OllamaBackend(enabled=True)
        with patch(URLOPEN, return_value=_response({"error": "model not found"})):
            with pytest.raises(GenerationError, match="model not found"):
                backend.generate("hi")

    def test_empty_response(self):
        backend = OllamaBackend(enabled=True)
        with patch(URLOPEN, return_value=_response({"response": ""})):
            with pytest.raises(GenerationError):
                backend.generate("hi")

    def test_http_error_status(self):
        backend = OllamaBackend(enabled=True)
        with patch(URLOPEN, side_effect=_http_error(500, {"error": "boom"})):
            with pytest.raises(GenerationError, match="500"):
                backend.generate("hi")

    def test_connection_refused(self):
        backend = OllamaBackend(enabled=True)
        with patch(URLOPEN, side_effect=urllib.error.URLError("refused")):
            with pytest.raises(BackendUnavailableError):
                backend.generate("hi")

    def test_circuit_opens_after_failures(self):
        backend = OllamaBackend(enabled=True)
        backend._circuit_breaker = CircuitBreaker(threshold=2, cooldown_s=60)
        with patch(URLOPEN, side_effect=urllib.error.URLError("refused")) as mock_open:
            for _ in range(2):
                with pytest.raises(BackendUnavailableError):
                    backend.generate("hi")
            with pytest.raises(BackendUnavailableError, match="circuit"):
                backend.generate("hi")
        assert mock_open.call_count == 2

    def test_health_check_and_models(self):
        backend = OllamaBackend(enabled=True)
        tags = {"models": [{"name": "llama2"}, {"name": "mistral"}]}
        with patch(URLOPEN, return_value=_response(tags)):
            assert backend.health_check() is True
            assert backend.list_models() == ["llama2", "mistral"]

    def test_health_check_unreachable(self):
        backend = OllamaBackend(enabled=True)
        with patch(URLOPEN, side_effect=urllib.error.URLError("down")):
            assert backend.health_check() is False

    def test_health_check_disabled(self):
        assert OllamaBackend(enabled=False).health_check() is False


class TestHostedBackends:
    """OpenAI / Anthropic backends with stubbed SDK clients."""

    def test_openai_requires_key(self):
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(GenerationError):
                OpenAIBackend()

    def test_openai_generate(self):
        backend = OpenAIBackend(api_key="sk-test", model="gpt-test")
        client = MagicMock()
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="openai says hi"))]
        )
        backend._client = client

        assert backend.generate("prompt") == "openai says hi"
        kwargs = client.chat.completions.create.call_args[1]
        assert kwargs["model"] == "gpt-test"
        assert kwargs["messages"][-1] == {"role": "user", "content": "prompt"}

    def test_openai_api_error(self):
        backend = OpenAIBackend(api_key="sk-test")
        client = MagicMock()
        client.chat.completions.create.side_effect = RuntimeError("rate limited")
        backend._client = client
        with pytest.raises(GenerationError, match="rate limited"):
            backend.generate("prompt")

    def test_anthropic_generate(self):
        backend = AnthropicBackend(api_key="sk-ant-test")
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="claude says hi")]
        )
        backend._client = client
        assert backend.generate("prompt") == "claude says hi"

    def test_anthropic_empty(self):
        backend = AnthropicBackend(api_key="sk-ant-test")
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(content=[])
        backend._client = client
        with pytest.raises(GenerationError):
            backend.generate("prompt")


class TestCreateBackend:
    """Test cases for create_backend factory."""

    def test_mock(self):
        backend = create_backend("mock", model="m")
        assert isinstance(backend, MockBackend)
        assert backend.model == "m"

    def test_ollama(self):
        backend = create_backend("Ollama", url="http://x:1", enabled=False)
        assert isinstance(backend, OllamaBackend)
        assert backend.base_url == "http://x:1"
        assert backend.is_enabled() is False

    def test_none(self):
        assert create_backend("none") is None

    def test_unknown(self):
        with pytest.raises(BackendCreationError, match="Unknown provider"):
            create_backend("bogus")

    def test_missing_key(self):
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(BackendCreationError):
                create_backend("anthropic")
