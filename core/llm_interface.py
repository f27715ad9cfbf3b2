# core/llm_interface.py
"""
Handles all direct interactions with the Large Language Model providers
used for document generation. Each provider wraps an OpenAI-compatible
chat completions endpoint and maps transport and HTTP failures onto the
generation error taxonomy so the queue can decide what to retry.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

Copyright 2025 Dennis Lewis
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
import structlog

from config import settings
from core.errors import (
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
)
from core.usage import TokenUsage

logger = structlog.get_logger(__name__)


@dataclass
class CompletionOptions:
    """Per-call knobs passed through to the provider."""

    max_tokens: int = 4000
    temperature: float | None = None
    json_mode: bool = False


@dataclass
class LLMCompletion:
    """Normalised provider answer.

    ``structured`` is only set when the provider was asked for JSON and the
    body parsed as a JSON object.
    """

    text: str
    structured: dict[str, Any] | None = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""
    provider: str = ""
    tool_calls: list[dict[str, Any]] = field(default_factory=list)


class LLMProvider(ABC):
    """Capability every generation backend implements."""

    name: str = "unknown"

    def __init__(self, model: str) -> None:
        self.model = model

    @property
    def max_concurrency(self) -> int | None:
        """Upper bound on simultaneous calls this provider tolerates, if any."""
        if settings.provider_is_sequential(self.name):
            return 1
        return None

    @abstractmethod
    async def complete(
        self, system_prompt: str, user_prompt: str, options: CompletionOptions
    ) -> LLMCompletion:
        """Run one chat completion."""

    async def aclose(self) -> None:  # pragma: no cover - nothing to release
        return None


def _retry_after_seconds(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class OpenAICompatibleProvider(LLMProvider):
    """Chat completions over httpx for any OpenAI-compatible API."""

    token_param = "max_tokens"

    def __init__(
        self,
        api_key: str,
        api_base: str,
        model: str,
        *,
        timeout: float = settings.HTTPX_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(model)
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self._owns_client = client is None
        # Use a single async client for all requests to reuse connections
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.request_count = 0

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this provider created it."""
        if self._owns_client:
            await self._client.aclose()

    def _build_payload(
        self, system_prompt: str, user_prompt: str, options: CompletionOptions
    ) -> dict[str, Any]:
        temperature = (
            options.temperature
            if options.temperature is not None
            else settings.LLM_TEMPERATURE
        )
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            self.token_param: options.max_tokens,
            "stream": False,
        }
        if options.json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def complete(
        self, system_prompt: str, user_prompt: str, options: CompletionOptions
    ) -> LLMCompletion:
        payload = self._build_payload(system_prompt, user_prompt, options)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        logger.debug(
            "Calling LLM provider",
            provider=self.name,
            model=self.model,
            max_tokens=options.max_tokens,
            json_mode=options.json_mode,
        )
        self.request_count += 1
        try:
            response = await self._client.post(
                f"{self.api_base}/chat/completions", json=payload, headers=headers
            )
            response.raise_for_status()
        except httpx.TimeoutException as e_timeout:
            raise ProviderTimeoutError(
                f"{self.name} request timed out: {e_timeout}"
            ) from e_timeout
        except httpx.HTTPStatusError as e_status:
            raise self._map_status_error(e_status) from e_status
        except httpx.RequestError as e_req:
            raise ProviderUnavailableError(
                f"{self.name} request error: {e_req}"
            ) from e_req

        try:
            data = response.json()
        except json.JSONDecodeError as e_json:
            # Truncated bodies show up under load; treat as upstream trouble.
            raise ProviderUnavailableError(
                f"{self.name} returned a non-JSON body: {response.text[:200]}"
            ) from e_json

        return self._parse_completion(data, options)

    def _map_status_error(self, exc: httpx.HTTPStatusError) -> Exception:
        status = exc.response.status_code
        detail = f"{self.name} HTTP {status}: {exc.response.text[:200]}"
        if status == 429:
            return RateLimitError(detail, retry_after=_retry_after_seconds(exc.response))
        if status >= 500:
            return ProviderUnavailableError(detail)
        logger.error(
            "Client-side error from provider. Not retrying.",
            provider=self.name,
            status_code=status,
        )
        return ProviderRequestError(detail, status_code=status)

    def _parse_completion(
        self, data: dict[str, Any], options: CompletionOptions
    ) -> LLMCompletion:
        choices = data.get("choices") or []
        if not choices:
            raise ProviderUnavailableError(
                f"{self.name} response missing choices: {str(data)[:200]}"
            )
        message = choices[0].get("message") or {}
        text = message.get("content") or ""
        tool_calls = message.get("tool_calls") or []

        structured: dict[str, Any] | None = None
        if options.json_mode and text:
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, dict):
                structured = parsed

        usage = TokenUsage.from_openai(data.get("usage"))
        self._log_llm_usage(usage)
        return LLMCompletion(
            text=text,
            structured=structured,
            usage=usage,
            model=data.get("model") or self.model,
            provider=self.name,
            tool_calls=list(tool_calls),
        )

    def _log_llm_usage(self, usage: TokenUsage) -> None:
        if usage.total_tokens:
            logger.info(
                "LLM usage",
                provider=self.name,
                model=self.model,
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                reasoning_tokens=usage.reasoning_tokens,
            )
        else:
            logger.debug("LLM response missing usage information", provider=self.name)


class OpenAIProvider(OpenAICompatibleProvider):
    name = "openai"
    # Newer OpenAI models reject max_tokens.
    token_param = "max_completion_tokens"


class DeepSeekProvider(OpenAICompatibleProvider):
    name = "deepseek"


class ProviderKind(str, Enum):
    OPENAI = "openai"
    DEEPSEEK = "deepseek"


def create_provider(
    kind: ProviderKind | str | None = None, **overrides: Any
) -> LLMProvider:
    """Build the configured provider variant.

    ``overrides`` replace the settings-derived constructor arguments, e.g. a
    custom ``client`` or ``model``.
    """
    provider_kind = ProviderKind(kind or settings.LLM_PROVIDER)
    if provider_kind is ProviderKind.OPENAI:
        params: dict[str, Any] = {
            "api_key": settings.OPENAI_API_KEY,
            "api_base": settings.OPENAI_API_BASE,
            "model": settings.OPENAI_MODEL,
        }
        params.update(overrides)
        provider: LLMProvider = OpenAIProvider(**params)
    else:
        params = {
            "api_key": settings.DEEPSEEK_API_KEY,
            "api_base": settings.DEEPSEEK_API_BASE,
            "model": settings.DEEPSEEK_MODEL,
        }
        params.update(overrides)
        provider = DeepSeekProvider(**params)
    logger.info("LLM provider created", provider=provider.name, model=provider.model)
    return provider
