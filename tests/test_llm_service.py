"""Tests for the LLM service and the analyzer boundary."""

import asyncio

import aiohttp
import pytest

from diffloupe.models.analysis import DerivedIntent
from diffloupe.models.llm import AnalyzerRequest, LLMAPIKeyError, LLMGenerationError, LLMJSONParseError
import diffloupe.services as services
from diffloupe.services.analyzer import LLMAnalyzer, request_structured
from diffloupe.services.llm_service import JSON_INSTRUCTION, LLMService, extract_json

from conftest import intent_reply


@pytest.fixture
def no_sleep(monkeypatch):
    """Record backoff waits instead of sleeping through them"""
    waits = []

    async def fake_sleep(seconds):
        waits.append(seconds)

    monkeypatch.setattr("diffloupe.services.llm_service.asyncio.sleep", fake_sleep)
    return waits


def _capture(service, reply):
    """Replace the transport with one that records calls and returns `reply`"""
    calls = []

    async def fake_request_json(url, payload, headers=None, provider="API"):
        calls.append({"url": url, "payload": payload, "headers": headers, "provider": provider})
        return reply

    service._request_json = fake_request_json
    return calls


# ========== extract_json ==========


def test_extract_json_from_code_block():
    assert extract_json('Here you go:\n```json\n{"a": 1}\n```') == {"a": 1}


def test_extract_json_raw_and_chatter():
    assert extract_json('{"a": [1, 2]}') == {"a": [1, 2]}
    assert extract_json('Sure! {"ok": true} Hope that helps.') == {"ok": True}


def test_extract_json_failures_keep_raw_text():
    with pytest.raises(LLMJSONParseError) as excinfo:
        extract_json("no json here")
    assert excinfo.value.raw_text == "no json here"

    with pytest.raises(LLMJSONParseError, match="Expected a JSON object"):
        extract_json("[1, 2, 3]")


# ========== Providers ==========


def test_anthropic_request_shape():
    service = LLMService({"provider": "anthropic", "anthropic": {"apiKey": "sk-test", "model": "claude-x"}})
    calls = _capture(service, {"content": [{"type": "text", "text": "Hello"}, {"type": "text", "text": "!"}]})

    text = asyncio.run(service.generate_response("Hi", system_prompt="Be brief", temperature=0.2, max_tokens=64))

    assert text == "Hello!"
    call = calls[0]
    assert call["headers"]["x-api-key"] == "sk-test"
    assert call["payload"]["model"] == "claude-x"
    assert call["payload"]["system"] == "Be brief"
    assert call["payload"]["max_tokens"] == 64
    assert call["payload"]["messages"] == [{"role": "user", "content": "Hi"}]


def test_api_key_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "env-key")
    service = LLMService({"provider": "openai", "openai": {"apiKey": ""}})
    calls = _capture(service, {"choices": [{"message": {"content": "ok"}}]})

    assert asyncio.run(service.generate_response("Hi")) == "ok"
    assert calls[0]["headers"]["Authorization"] == "Bearer env-key"
    assert calls[0]["payload"]["model"] == "gpt-4o"


def test_missing_api_key_raises(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    service = LLMService({"provider": "anthropic", "anthropic": {"apiKey": ""}})

    with pytest.raises(LLMAPIKeyError, match="ANTHROPIC_API_KEY"):
        asyncio.run(service.generate_response("Hi"))


def test_gemini_thinking_budget():
    service = LLMService({"provider": "gemini", "gemini": {"apiKey": "g-key", "model": "gemini-2.5-pro"}})
    calls = _capture(service, {"candidates": [{"content": {"parts": [{"text": "ok"}]}}]})

    asyncio.run(service.generate_response("Hi", system_prompt="sys"))

    call = calls[0]
    assert call["url"].endswith("gemini-2.5-pro:generateContent?key=g-key")
    assert call["payload"]["generationConfig"]["thinkingConfig"] == {"thinkingBudget": 8192}
    assert call["payload"]["systemInstruction"] == {"parts": [{"text": "sys"}]}


def test_vllm_endpoint():
    service = LLMService({"provider": "vllm", "vllm": {"endpoint": "http://gpu:9000/", "model": "llama"}})
    calls = _capture(service, {"choices": [{"text": "done"}]})

    assert asyncio.run(service.generate_response("Hi")) == "done"
    assert calls[0]["url"] == "http://gpu:9000/v1/chat/completions"
    assert "Authorization" not in calls[0]["headers"]


def test_unsupported_provider():
    with pytest.raises(ValueError, match="Unsupported provider"):
        asyncio.run(LLMService({"provider": "nope"}).generate_response("Hi"))


def test_generate_json_embeds_schema():
    service = LLMService({"provider": "anthropic", "anthropic": {"apiKey": "k"}})
    calls = _capture(service, {"content": [{"type": "text", "text": '```json\n{"answer": 42}\n```'}]})

    data = asyncio.run(service.generate_json("Q", system_prompt="Base", json_schema={"type": "object"}))

    assert data == {"answer": 42}
    system = calls[0]["payload"]["system"]
    assert system.startswith("Base\n\n")
    assert '{"type": "object"}' in system
    assert system.endswith(JSON_INSTRUCTION)


# ========== Retry ==========


def test_retry_on_overload_then_success(no_sleep):
    service = LLMService({})
    attempts = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise LLMGenerationError("overloaded", status=529)
        return "ok"

    assert asyncio.run(service._retry_with_backoff(operation)) == "ok"
    assert no_sleep == [LLMService.OVERLOAD_WAIT, LLMService.OVERLOAD_WAIT * 2]


def test_client_errors_fail_immediately(no_sleep):
    service = LLMService({})
    attempts = []

    async def operation():
        attempts.append(1)
        raise LLMGenerationError("bad request", status=400)

    with pytest.raises(LLMGenerationError, match="bad request"):
        asyncio.run(service._retry_with_backoff(operation))
    assert len(attempts) == 1
    assert no_sleep == []


def test_rate_limit_gives_up_after_max_retries(no_sleep):
    service = LLMService({})

    async def operation():
        raise LLMGenerationError("slow down", status=429)

    with pytest.raises(LLMGenerationError, match="rate limit exceeded after 3 attempts") as excinfo:
        asyncio.run(service._retry_with_backoff(operation, provider="Anthropic"))
    assert excinfo.value.status == 429
    assert no_sleep == [40, 60]


def test_network_errors_are_wrapped(no_sleep):
    service = LLMService({})

    async def operation():
        raise aiohttp.ClientConnectionError("connection refused")

    with pytest.raises(LLMGenerationError, match="network error"):
        asyncio.run(service._retry_with_backoff(operation, max_retries=2))
    assert no_sleep == [LLMService.NETWORK_WAIT]


# ========== Analyzer boundary ==========


class _StubService:
    provider = "stub"

    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    async def generate_json(self, prompt, system_prompt=None, json_schema=None, temperature=0.3, max_tokens=4096):
        self.calls.append(
            {"prompt": prompt, "system_prompt": system_prompt, "temperature": temperature, "max_tokens": max_tokens}
        )
        return self.reply


def test_llm_analyzer_forwards_request():
    service = _StubService({"x": 1})
    analyzer = LLMAnalyzer(service)
    request = AnalyzerRequest(
        system_prompt="sys", user_prompt="user", schema_name="Thing", json_schema={}, temperature=0.7, max_tokens=99
    )

    assert asyncio.run(analyzer.complete(request)) == {"x": 1}
    assert service.calls == [{"prompt": "user", "system_prompt": "sys", "temperature": 0.7, "max_tokens": 99}]


def test_request_structured_tags_results():
    """Valid replies carry data, invalid ones carry an error and the raw reply."""
    good = asyncio.run(request_structured(LLMAnalyzer(_StubService(intent_reply())), "s", "u", DerivedIntent))
    assert good.ok
    assert good.unwrap().summary == "Adds a login endpoint"

    bad = asyncio.run(request_structured(LLMAnalyzer(_StubService({"summary": 1})), "s", "u", DerivedIntent))
    assert not bad.ok
    assert bad.raw == {"summary": 1}
    assert bad.schema_name == "DerivedIntent"


def test_services_package_exports():
    """The package re-exports the transport, config and analyzer entry points only."""
    assert sorted(services.__all__) == [
        "Analyzer",
        "ConfigManager",
        "LLMAnalyzer",
        "LLMService",
        "extract_json",
        "request_structured",
    ]
    assert all(hasattr(services, name) for name in services.__all__)
