"""
LLM Service - Streaming completions from the configured LLM provider
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import aiohttp

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class LLMServiceError(Exception):
    """The provider answered with an error or an unusable response"""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class LLMService:
    """Service for interacting with various LLM providers"""

    def __init__(self, config: dict[str, Any]):
        self.config = config
        self.provider = config.get("provider", "anthropic")
        generation = config.get("generation", {})
        self.max_tokens = int(generation.get("maxTokens", 32_000))
        self.temperature = float(generation.get("temperature", 0.7))
        self.stream_timeout_seconds = generation.get("streamTimeoutSeconds")

    # ========== Config Helpers ==========

    def _get_anthropic_config(self) -> tuple[str, str, dict[str, str]]:
        """Get Anthropic config: (model, url, headers). Raises if api_key missing."""
        cfg = self.config.get("anthropic", {})
        api_key = cfg.get("apiKey")
        if not api_key:
            raise ValueError("Anthropic API key not configured")
        model = cfg.get("model", "claude-sonnet-4-20250514")
        endpoint = cfg.get("endpoint", "https://api.anthropic.com").rstrip("/")
        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        return model, f"{endpoint}/v1/messages", headers

    def _get_gemini_config(self) -> tuple[str, str, str]:
        """Get Gemini config: (api_key, model, base_url). Raises if api_key missing."""
        cfg = self.config.get("gemini", {})
        api_key = cfg.get("apiKey")
        if not api_key:
            raise ValueError("Gemini API key not configured")
        model = cfg.get("model", "gemini-2.5-flash")
        base_url = f"https://generativelanguage.googleapis.com/v1beta/models/{model}"
        return api_key, model, base_url

    def _get_openai_config(self) -> tuple[str, str, dict[str, str]]:
        """Get OpenAI config: (model, url, headers). Raises if api_key missing."""
        cfg = self.config.get("openai", {})
        api_key = cfg.get("apiKey")
        if not api_key:
            raise ValueError("OpenAI API key not configured")
        model = cfg.get("model", "gpt-4o")
        url = "https://api.openai.com/v1/chat/completions"
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        return model, url, headers

    def _get_vllm_config(self) -> tuple[str, str, dict[str, str]]:
        """Get vLLM config: (model, url, headers)."""
        cfg = self.config.get("vllm", {})
        endpoint = cfg.get("endpoint", "http://localhost:8000")
        model = cfg.get("model", "default")
        url = f"{endpoint}/v1/chat/completions"
        headers = {"Content-Type": "application/json"}
        if cfg.get("apiKey"):
            headers["Authorization"] = f"Bearer {cfg['apiKey']}"
        return model, url, headers

    # ========== Message/Payload Builders ==========

    def _build_prompt(self, prompt: str, context: str | None = None) -> str:
        """Build full prompt with optional context"""
        if context:
            return f"Context:\n{context}\n\nUser Request:\n{prompt}"
        return prompt

    def _build_openai_messages(self, prompt: str, system: str | None = None) -> list:
        """Build OpenAI-style messages array"""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _build_openai_payload(self, model: str, messages: list, stream: bool = False) -> dict[str, Any]:
        """Build OpenAI-compatible request payload"""
        return {
            "model": model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": stream,
        }

    def _build_anthropic_payload(
        self, model: str, prompt: str, system: str | None = None, stream: bool = False
    ) -> dict[str, Any]:
        """Build Anthropic Messages API payload"""
        payload = {
            "model": model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
            "stream": stream,
        }
        if system:
            payload["system"] = system
        return payload

    def _build_gemini_payload(self, prompt: str, system: str | None = None) -> dict[str, Any]:
        """Build Gemini API request payload"""
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "topP": 0.95,
                "maxOutputTokens": self.max_tokens,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return payload

    async def _retry_with_backoff(self, operation, max_retries: int = 3, provider: str = "API"):
        """Execute operation with exponential backoff on rate limits, overload and timeouts"""
        for attempt in range(max_retries):
            try:
                return await operation()
            except asyncio.TimeoutError:
                if attempt < max_retries - 1:
                    wait_time = (2**attempt) * 3
                    logger.warning(
                        f"[LLMService] {provider} request timeout. Retrying in {wait_time}s... "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise LLMServiceError(f"{provider} request timeout after {max_retries} retries")
            except LLMServiceError as e:
                if e.status in (429, 503, 529) and attempt < max_retries - 1:
                    wait_time = (2**attempt) * 5
                    logger.warning(
                        f"[LLMService] {provider} unavailable ({e.status}). Retrying in {wait_time}s... "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise
            except aiohttp.ClientError as e:
                if attempt < max_retries - 1:
                    wait_time = (2**attempt) * 2
                    logger.warning(
                        f"[LLMService] Network error: {e}. Retrying in {wait_time}s... "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise LLMServiceError(f"{provider} network error: {e}") from e

    @asynccontextmanager
    async def _request(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_seconds: float | None = 60,
        provider: str = "API",
    ):
        """Context manager for HTTP POST requests with automatic session cleanup"""
        timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(f"[LLMService] {provider} API error ({response.status}): {error_text}")
                    raise LLMServiceError(f"{provider} API error ({response.status}): {error_text}", response.status)
                yield response

    async def _request_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        provider: str = "API",
    ) -> dict[str, Any]:
        """Make request and return JSON response"""

        async def _execute():
            async with self._request(url, payload, headers, provider=provider) as response:
                return await response.json()

        return await self._retry_with_backoff(_execute, provider=provider)

    async def _stream_response(
        self, url: str, payload: dict[str, Any], headers: dict[str, str] | None, provider: str, line_parser
    ) -> AsyncIterator[str]:
        """Stream response and yield parsed content"""
        async with self._request(url, payload, headers, self.stream_timeout_seconds, provider) as response:
            async for line in response.content:
                line_text = line.decode("utf-8").strip()
                content = line_parser(line_text)
                if content:
                    yield content

    # ========== Response Parsers ==========

    def _parse_openai_response(self, data: dict[str, Any]) -> str:
        """Parse OpenAI-compatible response format"""
        if "choices" in data and len(data["choices"]) > 0:
            choice = data["choices"][0]
            if "message" in choice and "content" in choice["message"]:
                return choice["message"]["content"]
            elif "text" in choice:
                return choice["text"]
        raise LLMServiceError("No valid response from API")

    def _parse_anthropic_response(self, data: dict[str, Any]) -> str:
        """Parse Anthropic Messages API response"""
        texts = [block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"]
        if texts:
            return "".join(texts)
        raise LLMServiceError("No valid response from Anthropic API")

    def _extract_gemini_text(self, data: dict[str, Any]) -> str | None:
        """Extract text from Gemini response data"""
        if "candidates" in data and len(data["candidates"]) > 0:
            candidate = data["candidates"][0]
            if "content" in candidate and "parts" in candidate["content"]:
                parts = candidate["content"]["parts"]
                if len(parts) > 0 and "text" in parts[0]:
                    return parts[0]["text"]
        return None

    def _parse_gemini_response(self, data: dict[str, Any]) -> str:
        """Parse Gemini API response format"""
        text = self._extract_gemini_text(data)
        if text is not None:
            return text
        raise LLMServiceError("No valid response from Gemini API")

    def _parse_sse_line(self, line_text: str, extractor) -> str | None:
        """Parse SSE line with given extractor function"""
        if not line_text.startswith("data:"):
            return None
        data_str = line_text[5:].strip()
        if data_str == "[DONE]":
            return None
        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            return None
        return extractor(data)

    def _extract_openai_delta(self, data: dict[str, Any]) -> str | None:
        """Extract content delta from OpenAI stream data"""
        if "choices" in data and len(data["choices"]) > 0:
            delta = data["choices"][0].get("delta", {})
            return delta.get("content", "") or None
        return None

    def _extract_anthropic_delta(self, data: dict[str, Any]) -> str | None:
        """Extract text delta from an Anthropic stream event"""
        if data.get("type") == "error":
            error = data.get("error", {})
            raise LLMServiceError(f"Anthropic stream error: {error.get('message', error)}")
        if data.get("type") == "content_block_delta":
            delta = data.get("delta", {})
            if delta.get("type") == "text_delta":
                return delta.get("text") or None
        return None

    def _parse_openai_stream_line(self, line_text: str) -> str | None:
        """Parse a single SSE line from OpenAI-compatible stream"""
        return self._parse_sse_line(line_text, self._extract_openai_delta)

    def _parse_gemini_stream_line(self, line_text: str) -> str | None:
        """Parse a single SSE line from Gemini stream"""
        return self._parse_sse_line(line_text, self._extract_gemini_text)

    def _parse_anthropic_stream_line(self, line_text: str) -> str | None:
        """Parse a single SSE line from Anthropic stream"""
        return self._parse_sse_line(line_text, self._extract_anthropic_delta)

    # ========== Public API ==========

    async def generate_response_stream(
        self, prompt: str, system: str | None = None, context: str | None = None
    ) -> AsyncIterator[str]:
        """Generate a streaming response from the configured LLM provider"""
        full_prompt = self._build_prompt(prompt, context)
        if self.provider == "anthropic":
            model, url, headers = self._get_anthropic_config()
            payload = self._build_anthropic_payload(model, full_prompt, system, stream=True)
            parser, name = self._parse_anthropic_stream_line, "Anthropic"
        elif self.provider == "gemini":
            api_key, model, base_url = self._get_gemini_config()
            url = f"{base_url}:streamGenerateContent?key={api_key}&alt=sse"
            headers = None
            payload = self._build_gemini_payload(full_prompt, system)
            parser, name = self._parse_gemini_stream_line, "Gemini"
        elif self.provider in ("openai", "vllm"):
            if self.provider == "openai":
                model, url, headers = self._get_openai_config()
                name = "OpenAI"
            else:
                model, url, headers = self._get_vllm_config()
                name = "vLLM"
            payload = self._build_openai_payload(model, self._build_openai_messages(full_prompt, system), stream=True)
            parser = self._parse_openai_stream_line
        else:
            raise ValueError(f"Unsupported provider: {self.provider}")

        logger.info(f"[LLMService] Streaming from {name} with model: {model}")
        async for chunk in self._stream_response(url, payload, headers, name, parser):
            yield chunk

    async def generate_response(self, prompt: str, system: str | None = None) -> str:
        """Generate a complete (non-streaming) response"""
        if self.provider == "anthropic":
            model, url, headers = self._get_anthropic_config()
            data = await self._request_json(
                url, self._build_anthropic_payload(model, prompt, system), headers, provider="Anthropic"
            )
            return self._parse_anthropic_response(data)
        elif self.provider == "gemini":
            api_key, model, base_url = self._get_gemini_config()
            url = f"{base_url}:generateContent?key={api_key}"
            data = await self._request_json(url, self._build_gemini_payload(prompt, system), provider="Gemini")
            return self._parse_gemini_response(data)
        elif self.provider == "openai":
            model, url, headers = self._get_openai_config()
        elif self.provider == "vllm":
            model, url, headers = self._get_vllm_config()
        else:
            raise ValueError(f"Unsupported provider: {self.provider}")
        payload = self._build_openai_payload(model, self._build_openai_messages(prompt, system))
        data = await self._request_json(url, payload, headers, provider=self.provider)
        return self._parse_openai_response(data)
