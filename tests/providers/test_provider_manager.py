# tests/providers/test_provider_manager.py
"""
Tests for ProviderManager construction and lifecycle.
"""

import pytest

from recipecore.config.settings import ProviderSettings
from recipecore.exceptions import ConfigError, ProviderError
from recipecore.providers.manager import ProviderManager
from recipecore.providers.openai_provider import (WORKERS_AI_OPENAI_BASE_URL,
                                                  OpenAIProvider)
from recipecore.providers.workers_ai_provider import WorkersAIProvider


class TestProviderManager:
    def test_builds_workers_ai(self):
        manager = ProviderManager(ProviderSettings(type="workers_ai", account_id="acc", api_key="t", timeout=12))
        provider = manager.get_provider()
        assert isinstance(provider, WorkersAIProvider)
        assert provider.timeout == 12.0

    def test_builds_openai_against_workers_ai_endpoint(self):
        manager = ProviderManager(ProviderSettings(type="openai", account_id="acc", api_key="t"))
        provider = manager.get_provider()
        assert isinstance(provider, OpenAIProvider)
        assert provider.base_url == WORKERS_AI_OPENAI_BASE_URL.format(account_id="acc")

    def test_workers_ai_without_account_is_config_error(self, monkeypatch):
        monkeypatch.delenv("CLOUDFLARE_ACCOUNT_ID", raising=False)
        with pytest.raises(ConfigError):
            ProviderManager(ProviderSettings(type="workers_ai"))

    def test_raw_payload_flag_is_forwarded(self):
        manager = ProviderManager(ProviderSettings(account_id="acc", log_raw_payloads=True))
        assert manager.get_provider().log_raw_payloads_enabled is True

    async def test_injected_provider_is_closed(self, fake_provider):
        manager = ProviderManager(ProviderSettings(), provider=fake_provider)
        assert manager.get_provider() is fake_provider
        await manager.close_all()
        assert fake_provider.closed is True
        with pytest.raises(ProviderError):
            manager.get_provider()
