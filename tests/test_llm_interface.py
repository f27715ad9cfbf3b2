# tests/test_llm_interface.py
import json

import httpx
import pytest

from core.errors import (
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
    is_transient,
)
from core.llm_interface import (
    CompletionOptions,
    DeepSeekProvider,
    OpenAIProvider,
    ProviderKind,
    create_provider,
)


def _completion_body(content: str, **message_extra) -> dict:
    return {
        "model": "gpt-4o-mini-2024",
        "choices": [{"message": {"role": "assistant", "content": content, **message_extra}}],
        "usage": {
            "prompt_tokens": 12,
            "completion_tokens": 30,
            "total_tokens": 42,
            "completion_tokens_details": {"reasoning_tokens": 5},
        },
    }


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_openai_request_and_parsing():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion_body('{"vision": "x"}'))

    provider = OpenAIProvider(
        "sk-test", "https://api.example.com/v1/", "gpt-4o-mini", client=_client(handler)
    )
    completion = await provider.complete(
        "system", "user", CompletionOptions(max_tokens=900, temperature=0.1, json_mode=True)
    )

    assert seen["url"] == "https://api.example.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    body = seen["body"]
    assert body["max_completion_tokens"] == 900
    assert "max_tokens" not in body
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"][0] == {"role": "system", "content": "system"}
    assert completion.structured == {"vision": "x"}
    assert completion.model == "gpt-4o-mini-2024"
    assert completion.provider == "openai"
    assert completion.usage.input_tokens == 12
    assert completion.usage.reasoning_tokens == 5
    assert completion.usage.total_tokens == 42


@pytest.mark.asyncio
async def test_deepseek_uses_max_tokens_and_reports_tool_calls():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["max_tokens"] == 500
        assert "response_format" not in body
        return httpx.Response(
            200,
            json=_completion_body("## Risk Register", tool_calls=[{"id": "call_1"}]),
        )

    provider = DeepSeekProvider(
        "ds-test", "https://api.deepseek.com/v1", "deepseek-chat", client=_client(handler)
    )
    completion = await provider.complete("s", "u", CompletionOptions(max_tokens=500))

    assert completion.text == "## Risk Register"
    assert completion.structured is None
    assert completion.tool_calls == [{"id": "call_1"}]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "expected", "transient"),
    [
        (429, RateLimitError, True),
        (500, ProviderUnavailableError, True),
        (503, ProviderUnavailableError, True),
        (400, ProviderRequestError, False),
        (401, ProviderRequestError, False),
    ],
)
async def test_http_errors_are_classified(status, expected, transient):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="nope", headers={"retry-after": "2"})

    provider = OpenAIProvider("k", "https://api.example.com/v1", "m", client=_client(handler))
    with pytest.raises(expected) as exc_info:
        await provider.complete("s", "u", CompletionOptions())

    assert is_transient(exc_info.value) is transient
    if status == 429:
        assert exc_info.value.retry_after == 2.0


@pytest.mark.asyncio
async def test_timeouts_and_transport_errors_are_transient():
    def timeout_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    def connect_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    slow = OpenAIProvider("k", "https://x/v1", "m", client=_client(timeout_handler))
    with pytest.raises(ProviderTimeoutError):
        await slow.complete("s", "u", CompletionOptions())

    down = OpenAIProvider("k", "https://x/v1", "m", client=_client(connect_handler))
    with pytest.raises(ProviderUnavailableError):
        await down.complete("s", "u", CompletionOptions())


@pytest.mark.asyncio
async def test_malformed_bodies_are_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    provider = OpenAIProvider("k", "https://x/v1", "m", client=_client(handler))
    with pytest.raises(ProviderUnavailableError):
        await provider.complete("s", "u", CompletionOptions())


def test_create_provider_selects_variant():
    openai = create_provider(ProviderKind.OPENAI, model="gpt-5-mini")
    deepseek = create_provider("deepseek")

    assert isinstance(openai, OpenAIProvider)
    assert openai.model == "gpt-5-mini"
    assert isinstance(deepseek, DeepSeekProvider)
    assert deepseek.max_concurrency == 1
    assert openai.max_concurrency is None
    with pytest.raises(ValueError):
        create_provider("anthropic")
