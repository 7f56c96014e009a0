# tests/storage/test_storage_manager.py
"""
Tests for StorageManager backend selection and lifecycle.
"""

import pytest

from recipecore.config.settings import StorageSettings
from recipecore.exceptions import StorageError
from recipecore.storage.json_session import JsonSessionStorage
from recipecore.storage.manager import StorageManager
from recipecore.storage.memory_session import MemorySessionStorage
from recipecore.storage.sqlite_session import SqliteSessionStorage


class TestStorageManager:
    @pytest.mark.parametrize(
        "storage_type, expected",
        [("memory", MemorySessionStorage), ("json", JsonSessionStorage), ("sqlite", SqliteSessionStorage)],
    )
    async def test_builds_configured_backend(self, tmp_path, storage_type, expected):
        path = None if storage_type == "memory" else str(tmp_path / "store")
        manager = StorageManager(StorageSettings(type=storage_type, path=path, history_limit=7))
        await manager.initialize_storages()
        storage = manager.get_session_storage()
        assert isinstance(storage, expected)
        assert storage.history_limit == 7
        assert manager.storage_type == storage_type
        await manager.close_storages()

    def test_path_required_for_file_backends(self):
        with pytest.raises(ValueError):
            StorageSettings(type="json")

    async def test_injected_storage_is_initialized(self):
        injected = MemorySessionStorage()
        manager = StorageManager(StorageSettings(history_limit=3), storage=injected)
        await manager.initialize_storages()
        assert manager.get_session_storage() is injected
        assert injected.history_limit == 3

    def test_access_before_initialize_raises(self):
        with pytest.raises(StorageError):
            StorageManager(StorageSettings()).get_session_storage()

    async def test_close_releases_backend(self):
        manager = StorageManager(StorageSettings())
        await manager.initialize_storages()
        await manager.close_storages()
        with pytest.raises(StorageError):
            manager.get_session_storage()
