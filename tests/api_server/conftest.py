# tests/api_server/conftest.py
"""
Pytest configuration and fixtures for API server tests.

The module-level ``app`` is reused by every test so Prometheus metrics are
only registered once. A RecipeCore built around a scripted provider is
attached to ``app.state`` before the TestClient starts the lifespan, which
then leaves it in place and closes it on shutdown.
"""

import asyncio
from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from recipecore.api import RecipeCore
from recipecore.api_server.main import app
from recipecore.storage.memory_session import MemorySessionStorage


@pytest.fixture
def api_client_for(settings, provider_factory):
    """
    Returns a context manager yielding ``(client, provider)`` for a core
    whose provider answers with the given scripted responses.
    """
    @contextmanager
    def open_client(responses=None, stream_responses=None):
        provider = provider_factory(responses=responses, stream_responses=stream_responses)
        core = asyncio.run(RecipeCore.create(settings=settings, provider=provider, storage=MemorySessionStorage()))
        app.state.recipecore_instance = core
        try:
            with TestClient(app) as client:
                yield client, provider
        finally:
            app.state.recipecore_instance = None

    return open_client


@pytest.fixture
def mock_recipecore_instance(settings):
    """
    A mocked RecipeCore with real settings, for failure paths that are
    awkward to provoke through a scripted provider.
    """
    mock = AsyncMock()
    mock.settings = settings
    mock.get_provider_name = MagicMock(return_value="mock")
    return mock


@pytest.fixture
def api_client_with_mock(mock_recipecore_instance):
    app.state.recipecore_instance = mock_recipecore_instance
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.state.recipecore_instance = None


@pytest.fixture
def api_client_without_core():
    """A client whose lifespan never runs, so no core is ever attached."""
    app.state.recipecore_instance = None
    return TestClient(app)
