# src/recipecore/storage/manager.py
"""
Storage Manager for RecipeCore.

Instantiates and initializes the configured session history backend.
"""

import logging
from typing import Dict, Optional, Type

from ..config.settings import StorageSettings
from ..exceptions import ConfigError, StorageError
from .base_session import BaseSessionStorage
from .json_session import JsonSessionStorage
from .memory_session import MemorySessionStorage
from .sqlite_session import SqliteSessionStorage

logger = logging.getLogger(__name__)

SESSION_STORAGE_MAP: Dict[str, Type[BaseSessionStorage]] = {
    "memory": MemorySessionStorage,
    "json": JsonSessionStorage,
    "sqlite": SqliteSessionStorage,
}


class StorageManager:
    """
    Manages the initialization of and access to the session history store.
    """
    _session_storage: Optional[BaseSessionStorage] = None

    def __init__(self, settings: StorageSettings, storage: Optional[BaseSessionStorage] = None):
        """
        Args:
            settings: The ``storage`` section of the settings.
            storage: Optional ready-made backend overriding ``settings.type``;
                     it is still initialized with the configured options.
        """
        self._settings = settings
        self._session_storage = storage

    @property
    def storage_type(self) -> str:
        if self._session_storage is not None:
            for name, cls in SESSION_STORAGE_MAP.items():
                if type(self._session_storage) is cls:
                    return name
            return type(self._session_storage).__name__
        return self._settings.type

    async def initialize_storages(self) -> None:
        """
        Creates (unless injected) and initializes the session store.

        Raises:
            ConfigError: If the storage type is unknown.
            StorageError: If the backend fails to initialize.
        """
        if self._session_storage is None:
            storage_cls = SESSION_STORAGE_MAP.get(self._settings.type.lower())
            if storage_cls is None:
                raise ConfigError(f"Unsupported session storage type '{self._settings.type}'. "
                                  f"Available: {list(SESSION_STORAGE_MAP.keys())}")
            self._session_storage = storage_cls()

        try:
            await self._session_storage.initialize(self._settings.model_dump(exclude={"type"}))
        except (ConfigError, StorageError):
            raise
        except Exception as e:
            logger.error(f"Failed to initialize session storage '{self.storage_type}': {e}", exc_info=True)
            raise StorageError(f"Session storage initialization failed: {e}")
        logger.info(f"Session storage '{self.storage_type}' initialized.")

    def get_session_storage(self) -> BaseSessionStorage:
        if self._session_storage is None:
            raise StorageError("Session storage is not initialized.")
        return self._session_storage

    async def close_storages(self) -> None:
        if self._session_storage is None:
            return
        try:
            await self._session_storage.close()
        except Exception as e:
            logger.error(f"Error closing session storage: {e}", exc_info=True)
        finally:
            self._session_storage = None
