# tests/conftest.py
"""
Shared fixtures for the RecipeCore test suite.

Providers are replaced by a scripted in-process double and storage by the
in-memory backend, so no test touches the network.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import pytest
import pytest_asyncio

from recipecore.api import RecipeCore
from recipecore.config.settings import RecipeCoreSettings, load_settings
from recipecore.exceptions import ProviderError
from recipecore.models import Message
from recipecore.providers.base import BaseProvider
from recipecore.storage.memory_session import MemorySessionStorage

PRIMARY = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"
SECONDARY = "@cf/meta/llama-3.1-8b-instruct-fast"
SENTINEL = "<<<END_OF_RECIPE>>>"


@dataclass
class RecordedCall:
    context: List[Message]
    model: Optional[str]
    stream: bool
    params: Dict[str, Any] = field(default_factory=dict)


class FakeProvider(BaseProvider):
    """
    Scripted provider.

    ``responses`` and ``stream_responses`` map a model id (or ``"*"``) to a
    list consumed in order. A non-streaming item is the returned text or an
    exception to raise. A streaming item is a list of chunks (an exception
    inside the list is raised mid-stream) or an exception raised on open.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, List[Any]]] = None,
        stream_responses: Optional[Dict[str, List[Any]]] = None,
    ):
        super().__init__({}, log_raw_payloads=False)
        self.responses = {k: list(v) for k, v in (responses or {}).items()}
        self.stream_responses = {k: list(v) for k, v in (stream_responses or {}).items()}
        self.calls: List[RecordedCall] = []
        self.closed = False

    def get_name(self) -> str:
        return "fake"

    def _next(self, table: Dict[str, List[Any]], model: Optional[str]) -> Any:
        queue = table.get(model or "") or table.get("*")
        if not queue:
            raise ProviderError("fake", f"No scripted response left for model '{model}'.")
        return queue.pop(0)

    async def chat_completion(self, context, model=None, stream=False, **kwargs) -> Union[str, AsyncIterator[str]]:
        self.calls.append(RecordedCall(list(context), model, stream, dict(kwargs)))
        item = self._next(self.stream_responses if stream else self.responses, model)
        if isinstance(item, BaseException):
            raise item
        if stream:
            return self._iterate(item)
        return item

    async def _iterate(self, chunks: List[Any]) -> AsyncIterator[str]:
        for chunk in chunks:
            await asyncio.sleep(0)
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> RecipeCoreSettings:
    return load_settings(overrides={"storage": {"type": "memory"}})


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest_asyncio.fixture
async def memory_storage() -> MemorySessionStorage:
    storage = MemorySessionStorage()
    await storage.initialize({"history_limit": 20})
    yield storage
    await storage.close()


@pytest_asyncio.fixture
async def core(settings, fake_provider, memory_storage) -> RecipeCore:
    instance = await RecipeCore.create(settings=settings, provider=fake_provider, storage=memory_storage)
    yield instance
    await instance.close()


@pytest.fixture
def provider_factory():
    """Returns the FakeProvider class for tests that script their own responses."""
    return FakeProvider
