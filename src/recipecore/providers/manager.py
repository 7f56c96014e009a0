# src/recipecore/providers/manager.py
"""
Provider Manager for RecipeCore.

Instantiates the configured inference provider and owns its lifecycle.
"""

import logging
from typing import Dict, Optional, Type

from ..config.settings import ProviderSettings
from ..exceptions import ConfigError, ProviderError
from .base import BaseProvider
from .openai_provider import OpenAIProvider
from .workers_ai_provider import WorkersAIProvider

logger = logging.getLogger(__name__)

# --- Mapping from config provider type string to class ---
PROVIDER_MAP: Dict[str, Type[BaseProvider]] = {
    "workers_ai": WorkersAIProvider,
    "openai": OpenAIProvider,
}
# --- End Mapping ---


class ProviderManager:
    """
    Manages the initialization of and access to the inference provider.

    A pre-built provider instance may be injected instead (tests, embedding
    applications); it is then used as-is and still closed by the manager.
    """
    _provider: Optional[BaseProvider]

    def __init__(self, settings: ProviderSettings, provider: Optional[BaseProvider] = None):
        """
        Args:
            settings: The ``provider`` section of the settings.
            provider: Optional ready-made provider overriding ``settings.type``.

        Raises:
            ConfigError: If the provider type is unknown or its configuration invalid.
        """
        self._settings = settings
        if provider is not None:
            self._provider = provider
            logger.info(f"ProviderManager using injected provider '{provider.get_name()}'.")
            return

        provider_cls = PROVIDER_MAP.get(settings.type.lower())
        if provider_cls is None:
            raise ConfigError(f"Unsupported provider type '{settings.type}'. Available: {list(PROVIDER_MAP.keys())}")
        try:
            self._provider = provider_cls(
                settings.model_dump(exclude={"type", "log_raw_payloads"}),
                log_raw_payloads=settings.log_raw_payloads,
            )
        except ConfigError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize provider '{settings.type}': {e}", exc_info=True)
            raise ConfigError(f"Initialization failed for provider '{settings.type}': {e}")
        logger.info(f"Provider '{settings.type}' loaded successfully.")

    def get_provider(self) -> BaseProvider:
        if self._provider is None:
            raise ProviderError("Unknown", "Provider manager has been closed.")
        return self._provider

    async def close_all(self) -> None:
        """Closes the managed provider."""
        if self._provider is None:
            return
        try:
            await self._provider.close()
        except Exception as e:
            logger.error(f"Error closing provider '{self._provider.get_name()}': {e}", exc_info=True)
        finally:
            self._provider = None
