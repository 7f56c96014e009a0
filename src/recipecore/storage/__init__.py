"""
Session history storage backends for the RecipeCore library.
"""

from .base_session import BaseSessionStorage
from .json_session import JsonSessionStorage
from .manager import SESSION_STORAGE_MAP, StorageManager
from .memory_session import MemorySessionStorage
from .sqlite_session import SqliteSessionStorage

__all__ = [
    "BaseSessionStorage",
    "JsonSessionStorage",
    "MemorySessionStorage",
    "SESSION_STORAGE_MAP",
    "SqliteSessionStorage",
    "StorageManager",
]
