"""
LLM Service - Handles interactions with different LLM providers
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from contextlib import asynccontextmanager
from typing import Any

import aiohttp

from diffloupe.models.llm import LLMAPIKeyError, LLMGenerationError, LLMJSONParseError

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-5",
    "openai": "gpt-4o",
    "gemini": "gemini-2.5-flash",
    "vllm": "default",
}

API_KEY_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

JSON_INSTRUCTION = (
    "IMPORTANT: Respond with ONLY valid JSON. No markdown code blocks, "
    "no explanations, just the raw JSON object."
)

_CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def extract_json(response: str) -> dict[str, Any]:
    """Parse a JSON object from an LLM reply, handling code blocks and chatter"""
    json_match = _CODE_BLOCK.search(response)
    if json_match:
        json_str = json_match.group(1).strip()
    else:
        json_str = response.strip()

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        brace_start = json_str.find("{")
        brace_end = json_str.rfind("}") + 1
        if brace_start < 0 or brace_end <= brace_start:
            raise LLMJSONParseError(f"Failed to parse JSON: {e}", response) from e
        try:
            data = json.loads(json_str[brace_start:brace_end])
        except json.JSONDecodeError as inner:
            raise LLMJSONParseError(f"Failed to parse JSON: {inner}", response) from inner

    if not isinstance(data, dict):
        raise LLMJSONParseError(f"Expected a JSON object, got {type(data).__name__}", response)
    return data


class LLMService:
    """Service for interacting with various LLM providers"""

    # Seconds; class attributes so tests can shrink them
    RATE_LIMIT_WAIT = 40
    OVERLOAD_WAIT = 5
    NETWORK_WAIT = 2

    def __init__(self, config: dict[str, Any], timeout_seconds: int = 120):
        self.config = config
        self.provider = config.get("provider", "anthropic")
        self.timeout_seconds = timeout_seconds

    # ========== Config Helpers ==========

    def _api_key(self, provider: str) -> str:
        """Configured key, falling back to the provider's environment variable"""
        env_var = API_KEY_ENV_VARS.get(provider)
        api_key = self.config.get(provider, {}).get("apiKey") or (os.environ.get(env_var) if env_var else None)
        if not api_key:
            raise LLMAPIKeyError(provider, env_var)
        return api_key

    def _model(self, provider: str) -> str:
        return self.config.get(provider, {}).get("model") or DEFAULT_MODELS[provider]

    def _get_anthropic_config(self) -> tuple[str, str, dict[str, str]]:
        """Get Anthropic config: (model, url, headers). Raises if api_key missing."""
        headers = {
            "x-api-key": self._api_key("anthropic"),
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        return self._model("anthropic"), ANTHROPIC_URL, headers

    def _get_openai_config(self) -> tuple[str, str, dict[str, str]]:
        """Get OpenAI config: (model, url, headers). Raises if api_key missing."""
        headers = {"Authorization": f"Bearer {self._api_key('openai')}", "Content-Type": "application/json"}
        return self._model("openai"), OPENAI_URL, headers

    def _get_gemini_config(self) -> tuple[str, str]:
        """Get Gemini config: (model, url). Raises if api_key missing."""
        api_key = self._api_key("gemini")
        model = self._model("gemini")
        return model, f"{GEMINI_BASE_URL}/{model}:generateContent?key={api_key}"

    def _get_vllm_config(self) -> tuple[str, str, dict[str, str]]:
        """Get vLLM config: (model, url, headers)."""
        cfg = self.config.get("vllm", {})
        endpoint = cfg.get("endpoint", "http://localhost:8000").rstrip("/")
        headers = {"Content-Type": "application/json"}
        if cfg.get("apiKey"):
            headers["Authorization"] = f"Bearer {cfg['apiKey']}"
        return self._model("vllm"), f"{endpoint}/v1/chat/completions", headers

    # ========== Payload Builders ==========

    def _build_anthropic_payload(
        self, model: str, system_prompt: str | None, prompt: str, max_tokens: int, temperature: float
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            payload["system"] = system_prompt
        return payload

    def _build_openai_payload(
        self, model: str, system_prompt: str | None, prompt: str, max_tokens: int, temperature: float
    ) -> dict[str, Any]:
        """Build OpenAI-compatible request payload"""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": False,
        }

    def _build_gemini_payload(
        self, model: str, system_prompt: str | None, prompt: str, max_tokens: int, temperature: float
    ) -> dict[str, Any]:
        """Build Gemini API request payload"""
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "topP": 0.95,
                "maxOutputTokens": max_tokens,
            },
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        # Gemini 2.5 models have built-in "thinking"
        if "2.5" in model or "2-5" in model:
            payload["generationConfig"]["thinkingConfig"] = {"thinkingBudget": 8192}

        return payload

    # ========== Transport ==========

    async def _retry_with_backoff(self, operation, max_retries: int = 3, provider: str = "API"):
        """Execute operation with exponential backoff retry logic"""
        for attempt in range(max_retries):
            last_attempt = attempt == max_retries - 1
            try:
                return await operation()
            except asyncio.TimeoutError as e:
                if last_attempt:
                    raise LLMGenerationError(f"{provider} request timeout after {max_retries} attempts") from e
                wait_time = (2**attempt) * 3
                logger.warning(
                    "%s request timeout. Retrying in %ss (attempt %d/%d)", provider, wait_time, attempt + 1, max_retries
                )
            except LLMGenerationError as e:
                if e.status == 429:
                    if last_attempt:
                        raise LLMGenerationError(
                            f"{provider} rate limit exceeded after {max_retries} attempts. "
                            "Please wait a minute and try again.",
                            status=429,
                        ) from e
                    wait_time = self.RATE_LIMIT_WAIT + attempt * 20
                    logger.warning(
                        "%s rate limit hit. Waiting %ss (attempt %d/%d)", provider, wait_time, attempt + 1, max_retries
                    )
                elif e.status in (503, 529):
                    if last_attempt:
                        raise
                    wait_time = (2**attempt) * self.OVERLOAD_WAIT
                    logger.warning(
                        "%s overloaded. Retrying in %ss (attempt %d/%d)", provider, wait_time, attempt + 1, max_retries
                    )
                else:
                    # Other API errors fail immediately
                    raise
            except aiohttp.ClientError as e:
                if last_attempt:
                    raise LLMGenerationError(f"{provider} network error: {e}") from e
                wait_time = (2**attempt) * self.NETWORK_WAIT
                logger.warning(
                    "%s network error: %s. Retrying in %ss (attempt %d/%d)",
                    provider,
                    e,
                    wait_time,
                    attempt + 1,
                    max_retries,
                )
            await asyncio.sleep(wait_time)

    @asynccontextmanager
    async def _request(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        provider: str = "API",
    ):
        """Context manager for HTTP POST requests with automatic session cleanup"""
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error("%s API error (%d): %s", provider, response.status, error_text)
                    raise LLMGenerationError(f"{provider} API error ({response.status}): {error_text}", response.status)
                yield response

    async def _request_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        provider: str = "API",
    ) -> dict[str, Any]:
        """Make request (with retries) and return JSON response"""

        async def _execute_request():
            async with self._request(url, payload, headers, provider) as response:
                return await response.json()

        return await self._retry_with_backoff(_execute_request, provider=provider)

    # ========== Response Parsers ==========

    def _parse_anthropic_response(self, data: dict[str, Any]) -> str:
        """Concatenate the text blocks of a Messages API response"""
        blocks = [block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"]
        if blocks:
            return "".join(blocks)
        raise LLMGenerationError("No valid response from Anthropic API")

    def _parse_openai_response(self, data: dict[str, Any]) -> str:
        """Parse OpenAI-compatible response format"""
        if "choices" in data and len(data["choices"]) > 0:
            choice = data["choices"][0]
            if "message" in choice and "content" in choice["message"]:
                return choice["message"]["content"]
            elif "text" in choice:
                return choice["text"]
        raise LLMGenerationError("No valid response from API")

    def _parse_gemini_response(self, data: dict[str, Any]) -> str:
        """Parse Gemini API response format"""
        if "candidates" in data and len(data["candidates"]) > 0:
            candidate = data["candidates"][0]
            if "content" in candidate and "parts" in candidate["content"]:
                parts = candidate["content"]["parts"]
                if len(parts) > 0 and "text" in parts[0]:
                    return parts[0]["text"]
        raise LLMGenerationError("No valid response from Gemini API")

    # ========== Public API ==========

    async def generate_response(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.5,
        max_tokens: int = 4096,
    ) -> str:
        """Generate a response from the configured LLM provider"""
        if self.provider == "anthropic":
            model, url, headers = self._get_anthropic_config()
            payload = self._build_anthropic_payload(model, system_prompt, prompt, max_tokens, temperature)
            data = await self._request_json(url, payload, headers, provider="Anthropic")
            text = self._parse_anthropic_response(data)
        elif self.provider == "openai":
            model, url, headers = self._get_openai_config()
            payload = self._build_openai_payload(model, system_prompt, prompt, max_tokens, temperature)
            data = await self._request_json(url, payload, headers, provider="OpenAI")
            text = self._parse_openai_response(data)
        elif self.provider == "gemini":
            model, url = self._get_gemini_config()
            payload = self._build_gemini_payload(model, system_prompt, prompt, max_tokens, temperature)
            data = await self._request_json(url, payload, provider="Gemini")
            text = self._parse_gemini_response(data)
        elif self.provider == "vllm":
            model, url, headers = self._get_vllm_config()
            payload = self._build_openai_payload(model, system_prompt, prompt, max_tokens, temperature)
            data = await self._request_json(url, payload, headers, provider="vLLM")
            text = self._parse_openai_response(data)
        else:
            raise ValueError(f"Unsupported provider: {self.provider}")

        logger.info("Received response from %s/%s (length: %d chars)", self.provider, model, len(text))
        return text

    async def generate_json(
        self,
        prompt: str,
        system_prompt: str | None = None,
        json_schema: dict[str, Any] | None = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
    ) -> dict[str, Any]:
        """Generate a response and parse it as a JSON object"""
        parts = [system_prompt] if system_prompt else []
        if json_schema is not None:
            parts.append("Your response must be a JSON object matching this JSON schema:\n" + json.dumps(json_schema))
        parts.append(JSON_INSTRUCTION)

        text = await self.generate_response(prompt, "\n\n".join(parts), temperature, max_tokens)
        return extract_json(text)
