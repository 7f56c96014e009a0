# src/recipecore/config/settings.py
"""
Settings for the RecipeCore library and API server.

Settings are read with pydantic-settings from, in order of precedence:
explicit overrides, environment variables (prefix ``RECIPECORE_``, nested
keys separated by ``__``), a ``.env`` file, an optional TOML file, and
finally the defaults declared here.

Example:
    RECIPECORE_PROVIDER__API_KEY=... RECIPECORE_STORAGE__TYPE=sqlite recipecore-server
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from pydantic import (BaseModel, Field, ValidationError, field_validator,
                      model_validator)
from pydantic_settings import (BaseSettings, PydanticBaseSettingsSource,
                               SettingsConfigDict, TomlConfigSettingsSource)

from ..exceptions import ConfigError
from ..logging_config import DEFAULT_LOGGING_CONFIG
from ..prompts import COMPLETION_SENTINEL

DEFAULT_MODEL = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"
FALLBACK_MODEL = "@cf/meta/llama-3.1-8b-instruct-fast"


class GenerationSettings(BaseModel):
    """Model selection and fixed inference parameters."""

    default_model: str = Field(default=DEFAULT_MODEL, description="Model used when none (or an unsupported one) is requested")
    fallback_model: str = Field(default=FALLBACK_MODEL, description="Secondary model used after the primary fails")
    supported_models: List[str] = Field(
        default_factory=lambda: [DEFAULT_MODEL, FALLBACK_MODEL],
        description="Model identifiers callers may request explicitly",
    )
    max_tokens: int = Field(default=3072, ge=1, description="max_tokens for non-streaming calls")
    stream_max_tokens: int = Field(default=1536, ge=1, description="max_tokens for streaming calls")
    temperature: float = Field(default=0.6, ge=0.0, le=2.0)
    top_p: float = Field(default=0.9, gt=0.0, le=1.0)
    max_rounds: int = Field(default=4, ge=1, le=16, description="Total inference calls per continuation protocol")
    completion_sentinel: str = Field(default=COMPLETION_SENTINEL, min_length=4)

    @model_validator(mode="after")
    def ensure_models_supported(self) -> "GenerationSettings":
        """The default and fallback models are always requestable."""
        for model in (self.default_model, self.fallback_model):
            if model not in self.supported_models:
                self.supported_models.append(model)
        return self

    def inference_params(self, stream: bool = False) -> Dict[str, Any]:
        """The fixed per-call parameters handed to a provider."""
        return {
            "max_tokens": self.stream_max_tokens if stream else self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
        }


class StorageSettings(BaseModel):
    """Session history store selection."""

    type: Literal["memory", "json", "sqlite"] = Field(default="memory")
    path: Optional[str] = Field(default=None, description="Directory (json) or database file (sqlite)")
    history_limit: int = Field(default=20, ge=1, le=1000)

    @model_validator(mode="after")
    def check_path(self) -> "StorageSettings":
        if self.type in ("json", "sqlite") and not self.path:
            raise ValueError(f"storage.path is required when storage.type is '{self.type}'")
        return self


class ProviderSettings(BaseModel):
    """Inference provider connection settings."""

    type: Literal["workers_ai", "openai"] = Field(default="workers_ai")
    api_key: Optional[str] = Field(default=None)
    account_id: Optional[str] = Field(default=None, description="Cloudflare account id (workers_ai)")
    base_url: Optional[str] = Field(default=None, description="Override of the provider endpoint")
    timeout: float = Field(default=60.0, gt=0)
    log_raw_payloads: bool = Field(default=False)


class ServerSettings(BaseModel):
    """HTTP boundary settings."""

    cookie_name: str = Field(default="sid")
    cookie_max_age: int = Field(default=30 * 24 * 3600, description="Session cookie lifetime in seconds")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)


class RecipeCoreSettings(BaseSettings):
    """Top-level settings object."""

    model_config = SettingsConfigDict(
        env_prefix="RECIPECORE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        toml_file="recipecore.toml",
        case_sensitive=False,
        extra="ignore",
    )

    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_LOGGING_CONFIG))

    @field_validator("logging", mode="before")
    @classmethod
    def merge_logging_defaults(cls, v: Any) -> Dict[str, Any]:
        if not v:
            return dict(DEFAULT_LOGGING_CONFIG)
        return {**DEFAULT_LOGGING_CONFIG, **dict(v)}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
        )


def load_settings(
    config_file_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> RecipeCoreSettings:
    """
    Builds a settings object.

    Args:
        config_file_path: Optional TOML file replacing the default ``recipecore.toml`` lookup.
        overrides: Nested dictionary of values taking precedence over every other source.

    Returns:
        The validated settings.
    """
    settings_cls: Type[RecipeCoreSettings] = RecipeCoreSettings
    if config_file_path:
        toml_path = Path(config_file_path).expanduser()
        settings_cls = type(
            "FileRecipeCoreSettings",
            (RecipeCoreSettings,),
            {"model_config": SettingsConfigDict(**{**RecipeCoreSettings.model_config, "toml_file": toml_path})},
        )
    try:
        return settings_cls(**(overrides or {}))
    except ValidationError as e:
        raise ConfigError(f"RecipeCore configuration loading failed: {e}")


@lru_cache(maxsize=1)
def get_settings() -> RecipeCoreSettings:
    """Cached settings built from the environment and default file locations."""
    return load_settings()
