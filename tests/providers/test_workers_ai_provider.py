# tests/providers/test_workers_ai_provider.py
"""
Tests for the Workers AI REST provider.

HTTP behaviour is exercised against a local aiohttp test server that
mimics the ``/accounts/{id}/ai/run/{model}`` endpoint.
"""

import asyncio
import json

import pytest
from aiohttp import test_utils, web

from recipecore.exceptions import ConfigError, EmptyResponseError, ProviderError
from recipecore.models import Message
from recipecore.providers.workers_ai_provider import (WorkersAIProvider,
                                                      extract_text,
                                                      parse_sse_line)

MODEL = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"


class TestExtractText:
    def test_envelope_response(self):
        assert extract_text({"result": {"response": "Omelette"}, "success": True}) == "Omelette"

    def test_output_text(self):
        assert extract_text({"result": {"output_text": "Soup"}}) == "Soup"

    def test_bare_result(self):
        assert extract_text({"response": "Salad"}) == "Salad"

    def test_plain_string(self):
        assert extract_text("raw") == "raw"

    @pytest.mark.parametrize("payload", [None, [], {"result": {}}, {"result": 42}, {"result": {"response": 1}}])
    def test_no_text(self, payload):
        assert extract_text(payload) is None


class TestParseSseLine:
    def test_delta(self):
        assert parse_sse_line('data: {"response": "Beat the eggs"}\n') == "Beat the eggs"

    def test_done(self):
        assert parse_sse_line("data: [DONE]") == ""

    @pytest.mark.parametrize("line", ["", "\n", ": keep-alive", "event: ping", "data: not-json", 'data: {"response": ""}'])
    def test_lines_without_text(self, line):
        assert parse_sse_line(line) is None


class TestConfiguration:
    def test_requires_account(self, monkeypatch):
        monkeypatch.delenv("CLOUDFLARE_ACCOUNT_ID", raising=False)
        with pytest.raises(ConfigError):
            WorkersAIProvider({"api_key": "t"})

    def test_account_from_environment(self, monkeypatch):
        monkeypatch.setenv("CLOUDFLARE_ACCOUNT_ID", "acc-env")
        monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "tok-env")
        provider = WorkersAIProvider({})
        assert provider.account_id == "acc-env"
        assert provider.api_key == "tok-env"

    def test_run_url(self):
        provider = WorkersAIProvider({"account_id": "acc", "api_key": "t", "base_url": "https://example.test/v4/"})
        assert provider._run_url(MODEL) == f"https://example.test/v4/accounts/acc/ai/run/{MODEL}"
        assert provider.get_name() == "workers_ai"


@pytest.fixture
async def fake_api():
    """Local Workers AI look-alike; ``state`` controls the next answer."""
    state = {"status": 200, "body": {"result": {"response": "Omelette"}, "success": True}, "sse": [], "gap": 0.0, "requests": []}

    async def run_model(request: web.Request) -> web.StreamResponse:
        payload = await request.json()
        state["requests"].append({
            "path": request.path,
            "auth": request.headers.get("Authorization"),
            "payload": payload,
        })
        if state["status"] >= 400:
            return web.Response(status=state["status"], text="upstream exploded")
        if payload.get("stream"):
            response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
            await response.prepare(request)
            for line in state["sse"]:
                if state["gap"]:
                    await asyncio.sleep(state["gap"])
                await response.write(f"{line}\n\n".encode("utf-8"))
            await response.write_eof()
            return response
        return web.json_response(state["body"])

    app = web.Application()
    app.router.add_post("/client/v4/accounts/{account}/ai/run/{model:.+}", run_model)
    server = test_utils.TestServer(app)
    await server.start_server()
    provider = WorkersAIProvider({
        "account_id": "acc",
        "api_key": "secret",
        "base_url": str(server.make_url("/client/v4")),
        "timeout": 5,
    })
    yield provider, state
    await provider.close()
    await server.close()


class TestChatCompletion:
    async def test_non_streaming(self, fake_api):
        provider, state = fake_api
        text = await provider.chat_completion(
            [Message.system("sys"), Message.user("eggs")], model=MODEL, max_tokens=3072, temperature=0.6, top_p=0.9
        )
        assert text == "Omelette"
        request = state["requests"][0]
        assert request["path"].endswith(f"/accounts/acc/ai/run/{MODEL}")
        assert request["auth"] == "Bearer secret"
        assert request["payload"]["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "eggs"},
        ]
        assert request["payload"]["max_tokens"] == 3072
        assert "stream" not in request["payload"]

    async def test_http_error(self, fake_api):
        provider, state = fake_api
        state["status"] = 500
        with pytest.raises(ProviderError, match="500"):
            await provider.chat_completion([Message.user("eggs")], model=MODEL)

    async def test_api_failure_flag(self, fake_api):
        provider, state = fake_api
        state["body"] = {"success": False, "errors": [{"message": "quota"}]}
        with pytest.raises(ProviderError, match="quota"):
            await provider.chat_completion([Message.user("eggs")], model=MODEL)

    async def test_empty_answer(self, fake_api):
        provider, state = fake_api
        state["body"] = {"result": {"response": ""}, "success": True}
        with pytest.raises(EmptyResponseError):
            await provider.chat_completion([Message.user("eggs")], model=MODEL)

    async def test_streaming(self, fake_api):
        provider, state = fake_api
        state["sse"] = [
            ": keep-alive",
            "data: " + json.dumps({"response": "Beat "}),
            "data: " + json.dumps({"response": "the eggs"}),
            "data: [DONE]",
            "data: " + json.dumps({"response": "after done"}),
        ]
        deltas = await provider.chat_completion([Message.user("eggs")], model=MODEL, stream=True, max_tokens=1536)
        chunks = [chunk async for chunk in deltas]
        assert chunks == ["Beat ", "the eggs"]
        assert state["requests"][0]["payload"]["stream"] is True
        assert state["requests"][0]["payload"]["max_tokens"] == 1536

    async def test_streaming_http_error_raised_from_iterator(self, fake_api):
        provider, state = fake_api
        state["status"] = 429
        deltas = await provider.chat_completion([Message.user("eggs")], model=MODEL, stream=True)
        with pytest.raises(ProviderError, match="429"):
            async for _ in deltas:
                pass

    async def test_requires_model_and_messages(self, fake_api):
        provider, _ = fake_api
        with pytest.raises(ProviderError):
            await provider.chat_completion([Message.user("eggs")], model=None)
        with pytest.raises(ProviderError):
            await provider.chat_completion([], model=MODEL)


class TestStreamTimeout:
    async def test_long_stream_outlives_request_timeout(self, fake_api):
        provider, state = fake_api
        provider.timeout = 0.3
        state["gap"] = 0.1
        state["sse"] = ["data: " + json.dumps({"response": f"step {i} "}) for i in range(6)] + ["data: [DONE]"]
        deltas = await provider.chat_completion([Message.user("eggs")], model=MODEL, stream=True)
        chunks = [chunk async for chunk in deltas]
        assert chunks == [f"step {i} " for i in range(6)]

    async def test_stalled_stream_times_out(self, fake_api):
        provider, state = fake_api
        provider.timeout = 0.2
        state["gap"] = 1.0
        state["sse"] = ["data: " + json.dumps({"response": "never"})]
        deltas = await provider.chat_completion([Message.user("eggs")], model=MODEL, stream=True)
        with pytest.raises(ProviderError, match="stalled"):
            async for _ in deltas:
                pass
