# tests/providers/test_openai_provider.py
"""
Tests for the OpenAI-compatible provider.

The real AsyncOpenAI client is used with an httpx mock transport, so the
SDK's own response parsing, SSE decoding and error mapping are exercised.
"""

import json

import httpx
import pytest
from openai import AsyncOpenAI

from recipecore.exceptions import EmptyResponseError, ProviderError
from recipecore.models import Message
from recipecore.providers.openai_provider import OpenAIProvider

MODEL = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"


def completion_body(content):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": MODEL,
        "choices": [] if content is None else [{
            "index": 0,
            "message": {"role": "assistant", "content": content},
            "finish_reason": "stop",
        }],
    }


def chunk_event(content=None):
    choices = [] if content is None else [{"index": 0, "delta": {"content": content}, "finish_reason": None}]
    chunk = {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": MODEL,
        "choices": choices,
    }
    return f"data: {json.dumps(chunk)}\n\n"


class MockEndpoint:
    """Answers every request with the configured response and records the request bodies."""

    def __init__(self, response: httpx.Response):
        self.response = response
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        return self.response


@pytest.fixture
def make_provider():
    def factory(response: httpx.Response) -> tuple:
        endpoint = MockEndpoint(response)
        provider = OpenAIProvider({"api_key": "test-key", "base_url": "https://example.test/v1"})
        provider._client = AsyncOpenAI(
            api_key="test-key",
            base_url="https://example.test/v1",
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(endpoint)),
        )
        return provider, endpoint

    return factory


CONTEXT = [Message.system("You are a chef."), Message.user("eggs")]


class TestChatCompletion:
    async def test_returns_text(self, make_provider):
        provider, endpoint = make_provider(httpx.Response(200, json=completion_body("Omelette")))
        text = await provider.chat_completion(CONTEXT, model=MODEL, max_tokens=3072, temperature=0.6)
        assert text == "Omelette"

        sent = endpoint.requests[0]
        assert sent["model"] == MODEL
        assert sent["messages"] == [
            {"role": "system", "content": "You are a chef."},
            {"role": "user", "content": "eggs"},
        ]
        assert sent["max_tokens"] == 3072
        await provider.close()

    async def test_no_choices_is_empty_response(self, make_provider):
        provider, _ = make_provider(httpx.Response(200, json=completion_body(None)))
        with pytest.raises(EmptyResponseError):
            await provider.chat_completion(CONTEXT, model=MODEL)

    async def test_blank_content_is_empty_response(self, make_provider):
        provider, _ = make_provider(httpx.Response(200, json=completion_body("")))
        with pytest.raises(EmptyResponseError):
            await provider.chat_completion(CONTEXT, model=MODEL)

    async def test_model_required(self, make_provider):
        provider, endpoint = make_provider(httpx.Response(200, json=completion_body("x")))
        with pytest.raises(ProviderError):
            await provider.chat_completion(CONTEXT)
        assert endpoint.requests == []

    async def test_closed_provider_raises(self, make_provider):
        provider, _ = make_provider(httpx.Response(200, json=completion_body("x")))
        await provider.close()
        with pytest.raises(ProviderError, match="not initialized"):
            await provider.chat_completion(CONTEXT, model=MODEL)


class TestStreaming:
    async def test_yields_deltas_and_skips_empty_choices(self, make_provider):
        body = chunk_event() + chunk_event("Beat ") + chunk_event("") + chunk_event("the eggs") + chunk_event() + "data: [DONE]\n\n"
        provider, endpoint = make_provider(
            httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body.encode("utf-8"))
        )
        deltas = await provider.chat_completion(CONTEXT, model=MODEL, stream=True)
        assert [d async for d in deltas] == ["Beat ", "the eggs"]
        assert endpoint.requests[0]["stream"] is True


class TestErrorTranslation:
    @pytest.mark.parametrize("status, fragment", [
        (401, "Authentication failed"),
        (429, "Rate limit exceeded"),
        (500, "Status 500"),
    ])
    async def test_http_errors_become_provider_errors(self, make_provider, status, fragment):
        provider, _ = make_provider(httpx.Response(status, json={"error": {"message": "upstream says no"}}))
        with pytest.raises(ProviderError) as excinfo:
            await provider.chat_completion(CONTEXT, model=MODEL)
        assert fragment in str(excinfo.value)
        assert excinfo.value.provider_name == "openai"

    async def test_connection_error_becomes_provider_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = OpenAIProvider({"api_key": "test-key", "base_url": "https://example.test/v1"})
        provider._client = AsyncOpenAI(
            api_key="test-key",
            base_url="https://example.test/v1",
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)),
        )
        with pytest.raises(ProviderError, match="OpenAI API Error"):
            await provider.chat_completion(CONTEXT, model=MODEL)
