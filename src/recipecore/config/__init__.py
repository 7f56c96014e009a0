"""
Configuration package for the RecipeCore library.

Settings are declared with pydantic-settings in :mod:`recipecore.config.settings`.

Configuration sources:
    - Defaults declared on the settings models
    - TOML file: ./recipecore.toml, or a path passed to load_settings()
    - Environment variables: prefix RECIPECORE_, nested keys use double
      underscores, e.g. RECIPECORE_GENERATION__FALLBACK_MODEL
"""

from .settings import (GenerationSettings, ProviderSettings,
                       RecipeCoreSettings, ServerSettings, StorageSettings,
                       get_settings, load_settings)

__all__ = [
    "GenerationSettings",
    "ProviderSettings",
    "RecipeCoreSettings",
    "ServerSettings",
    "StorageSettings",
    "get_settings",
    "load_settings",
]
