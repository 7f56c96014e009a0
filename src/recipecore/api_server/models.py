# src/recipecore/api_server/models.py
"""
Pydantic models for the RecipeCore API server.

Request bodies are parsed leniently: a malformed or missing field falls
back to its empty value so the request reaches the usual input checks
(e.g. "Provide at least one ingredient.") instead of failing validation.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RecipeRequest(BaseModel):
    """
    Request model for the recipe endpoints.
    """
    model_config = ConfigDict(extra="ignore")

    ingredients: List[str] = Field(default_factory=list, description="Ingredients the user has on hand")
    extras: Optional[str] = Field(default=None, description="Constraints or preferences (diet, time, tools)")
    model: Optional[str] = Field(default=None, description="Requested model identifier")

    @field_validator("ingredients", mode="before")
    @classmethod
    def coerce_ingredients(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, str)]

    @field_validator("extras", "model", mode="before")
    @classmethod
    def coerce_optional_text(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


class RecipeResponse(BaseModel):
    """
    Response model for a materialized recipe.
    """
    model: str = Field(description="Model that produced the recipe")
    recipe: str = Field(description="The generated recipe text")
    used_fallback: bool = Field(default=False, description="True if the secondary model produced the recipe")
    note: Optional[str] = Field(default=None, description="Short remark such as 'Auto-fallback used.'")


class HistoryEntry(BaseModel):
    role: str
    content: str
    timestamp: datetime


class HistoryResponse(BaseModel):
    history: List[HistoryEntry] = Field(default_factory=list)


class ResetResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    """
    Standard error response model. Never carries stack traces.
    """
    error: str = Field(description="Error message describing what went wrong")
    detail: Optional[str] = Field(default=None, description="Short description of the underlying cause")
