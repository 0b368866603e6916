"""Tests for the local LLM runner."""

from __future__ import annotations

import json

import pytest

from archlens.config import LLMConfig
from archlens.llm.runner import LLMRunner, ReasoningServiceError, extract_json_payload
from archlens.research.agent import FormatterConfig, LLMCallMode


def _scripted_runner(answer, captured: dict | None = None):
    def fake_runner(request):
        if captured is not None:
            captured["prompt"] = request.prompt
            captured["system"] = request.system
            captured["max_tokens"] = request.max_tokens
        if isinstance(answer, Exception):
            raise answer
        return answer

    return LLMRunner(model="custom-model", base_url=None, runner=fake_runner)


def test_llm_runner_constructs_request() -> None:
    captured = {}

    def fake_runner(request):
        captured["prompt"] = request.prompt
        captured["system"] = request.system
        captured["model"] = request.model
        captured["temperature"] = request.temperature
        captured["max_tokens"] = request.max_tokens
        captured["executable"] = request.executable
        captured["base_url"] = request.base_url
        captured["api_key"] = request.api_key
        captured["request_timeout"] = request.request_timeout
        return "response"

    runner = LLMRunner(
        model="custom-model",
        base_url=None,
        executable="ollama",
        temperature=0.15,
        max_tokens=256,
        api_key=None,
        request_timeout=42.0,
        runner=fake_runner,
    )
    result = runner.run("Hello world", system="system message")

    assert result == "response"
    assert captured == {
        "prompt": "Hello world",
        "system": "system message",
        "model": "custom-model",
        "temperature": 0.15,
        "max_tokens": 256,
        "executable": "ollama",
        "base_url": None,
        "api_key": None,
        "request_timeout": 42.0,
    }


def test_llm_runner_http_posts_payload(monkeypatch) -> None:
    captured = {}

    class FakeResponse:
        def __init__(self, payload):
            self._payload = payload

        def read(self):
            return json.dumps(self._payload).encode("utf-8")

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

    def fake_urlopen(request, timeout=None):
        captured["url"] = request.full_url
        captured["headers"] = {k.lower(): v for k, v in request.header_items()}
        captured["payload"] = json.loads(request.data.decode("utf-8"))
        captured["timeout"] = timeout
        return FakeResponse({"choices": [{"message": {"content": "Layered monolith."}}]})

    monkeypatch.setattr("archlens.llm.runner.urlopen", fake_urlopen)

    runner = LLMRunner(
        model="ai/smollm2:360M-Q4_K_M",
        base_url="http://localhost:12434/engines/v1/",
        api_key="local-key",
        temperature=0.05,
        max_tokens=128,
        request_timeout=25.0,
    )
    result = runner.run("Describe the architecture.", system="Act like an architect.")

    assert result == "Layered monolith."
    assert captured["url"] == "http://localhost:12434/engines/v1/chat/completions"
    headers = captured["headers"]
    assert headers["content-type"] == "application/json"
    assert headers["authorization"] == "Bearer local-key"
    payload = captured["payload"]
    assert payload["model"] == "ai/smollm2:360M-Q4_K_M"
    assert payload["messages"][0] == {"role": "system", "content": "Act like an architect."}
    assert payload["messages"][1] == {"role": "user", "content": "Describe the architecture."}
    assert payload["temperature"] == 0.05
    assert payload["max_tokens"] == 128
    assert captured["timeout"] == 25.0


def test_remote_base_url_is_rejected() -> None:
    with pytest.raises(ValueError, match="not permitted"):
        LLMRunner(model="m", base_url="https://api.example.com/v1")


def test_loopback_addresses_are_allowed() -> None:
    assert LLMRunner(model="m", base_url="http://127.0.0.2:8080/v1/").base_url == "http://127.0.0.2:8080/v1"
    assert LLMRunner(model="m", base_url="http://gpu-box.local/v1").base_url == "http://gpu-box.local/v1"


def test_environment_supplies_defaults(monkeypatch) -> None:
    monkeypatch.setenv("ARCHLENS_LLM_MODEL", "env-model")
    monkeypatch.setenv("ARCHLENS_LLM_BASE_URL", "http://localhost:9000/v1")
    monkeypatch.setenv("ARCHLENS_LLM_API_KEY", "env-key")

    runner = LLMRunner()

    assert runner.model == "env-model"
    assert runner.base_url == "http://localhost:9000/v1"
    assert runner.api_key == "env-key"


def test_from_config_maps_llm_block(monkeypatch) -> None:
    for key in LLMRunner.ENV_BASE_URL_KEYS + LLMRunner.ENV_MODEL_KEYS:
        monkeypatch.delenv(key, raising=False)

    runner = LLMRunner.from_config(
        LLMConfig(runner="ollama", model="llama3", executable="/opt/ollama", max_tokens=512, request_timeout=5.0)
    )

    assert runner.model == "llama3"
    assert runner.base_url is None
    assert runner.executable == "/opt/ollama"
    assert runner.max_tokens == 512
    assert runner.request_timeout == 5.0
    assert LLMRunner.from_config(None).model == LLMRunner.DEFAULT_MODEL


def test_invoke_extract_decodes_fenced_json() -> None:
    captured: dict = {}
    runner = _scripted_runner('Here you go:\n```json\n{"architecture_style": "layered"}\n```', captured)

    result = runner.invoke("Analyse.", LLMCallMode.EXTRACT, system="architect")

    assert result == {"architecture_style": "layered"}
    assert captured["system"] == "architect"
    assert captured["prompt"].startswith("Analyse.")
    assert "single JSON object" in captured["prompt"]


def test_invoke_prompt_returns_text_and_passes_token_limit() -> None:
    captured: dict = {}
    runner = _scripted_runner("  ## Modules\n", captured)

    result = runner.invoke("Explain.", LLMCallMode.PROMPT, FormatterConfig(max_output_tokens=300))

    assert result == "## Modules"
    assert captured["prompt"] == "Explain."
    assert captured["max_tokens"] == 300


def test_invoke_rejects_empty_text() -> None:
    with pytest.raises(ReasoningServiceError, match="empty"):
        _scripted_runner("   ").invoke("Explain.", LLMCallMode.PROMPT)


def test_invoke_wraps_transport_errors() -> None:
    with pytest.raises(ReasoningServiceError, match="connection refused"):
        _scripted_runner(OSError("connection refused")).invoke("Explain.", LLMCallMode.PROMPT)


def test_invoke_rejects_answer_without_json() -> None:
    with pytest.raises(ReasoningServiceError, match="valid JSON"):
        _scripted_runner("I cannot help with that.").invoke("Analyse.", LLMCallMode.EXTRACT)


@pytest.mark.parametrize(
    "text",
    [
        '{"a": 1}',
        '```json\n{"a": 1}\n```',
        '```\n{"a": 1}\n```',
        'Sure! {"a": 1} Hope that helps.',
    ],
)
def test_extract_json_payload_variants(text: str) -> None:
    assert extract_json_payload(text) == {"a": 1}
