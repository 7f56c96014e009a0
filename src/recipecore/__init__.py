# src/recipecore/__init__.py
"""
RecipeCore: ingredient-driven recipe generation on top of hosted LLMs.

The library orchestrates session memory, a bounded continuation protocol,
model fallback and live streaming with background persistence. The main
entry point is :class:`RecipeCore`; ``recipecore.api_server`` exposes it
over HTTP.
"""

from .api import GenerationStream, RecipeCore
from .exceptions import (ConfigError, EmptyInputError, EmptyResponseError,
                         PersistenceError, ProviderError, RecipeCoreError,
                         SessionStorageError, StorageError, StreamTapError,
                         UpstreamError)
from .models import GenerationRequest, GenerationResult, Message, Role

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "EmptyInputError",
    "EmptyResponseError",
    "GenerationRequest",
    "GenerationResult",
    "GenerationStream",
    "Message",
    "PersistenceError",
    "ProviderError",
    "RecipeCore",
    "RecipeCoreError",
    "Role",
    "SessionStorageError",
    "StorageError",
    "StreamTapError",
    "UpstreamError",
    "__version__",
]
