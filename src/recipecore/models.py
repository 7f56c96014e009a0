# src/recipecore/models.py
"""
Core data models for the RecipeCore library.

This module defines the Pydantic models used to represent the fundamental
data structures of a generation exchange: conversation roles, immutable
messages, the bounded per-session history, and the transient request and
result objects that flow through the orchestrator.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Number of messages kept per session; older entries are evicted first.
DEFAULT_HISTORY_LIMIT = 20


class Role(str, Enum):
    """
    Who authored a message. Parsing accepts any letter case.
    """
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def _missing_(cls, value: object): # type: ignore[misc]
        """Handles case-insensitive matching, e.g. "User" or "ASSISTANT"."""
        if isinstance(value, str):
            lower_value = value.lower()
            for member in cls:
                if member.value == lower_value:
                    return member
        return None


class Message(BaseModel):
    """
    Represents a single, immutable message of a conversation.

    Attributes:
        role: Author of the message.
        content: Message text.
        timestamp: The date and time when the message was created (UTC).
    """
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: Role = Field(description="Author of the message.")
    content: str = Field(description="Message text.")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation time, always UTC.")

    @field_validator('timestamp', mode='before')
    @classmethod
    def ensure_utc_timestamp(cls, v: Any) -> datetime:
        """Ensure the timestamp is timezone-aware and in UTC if naive.

        Epoch milliseconds (as written by older history stores) are accepted too.
        """
        if v is None:
            return datetime.now(timezone.utc)
        if isinstance(v, (int, float)):
            return datetime.fromtimestamp(v / 1000.0, tz=timezone.utc)
        if isinstance(v, str):
            v = datetime.fromisoformat(v[:-1] + '+00:00' if v.endswith('Z') else v)
        if isinstance(v, datetime):
            if v.tzinfo is None:
                return v.replace(tzinfo=timezone.utc)
            return v.astimezone(timezone.utc)
        return v

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=Role.ASSISTANT, content=content)


def bounded_history(messages: Sequence[Message], limit: int = DEFAULT_HISTORY_LIMIT) -> List[Message]:
    """Return the most recent `limit` messages, oldest first."""
    if limit <= 0:
        return []
    return list(messages)[-limit:]


class GenerationRequest(BaseModel):
    """
    A single generation request. Transient: it exists only for one call.

    Attributes:
        session_id: Opaque identifier of the caller's session.
        raw_inputs: Ingredient-like inputs as supplied by the caller.
        constraints: Optional free-form constraints (diet, time, tools...).
        model_id: Optional requested model identifier (resolved before use).
    """
    session_id: str = Field(min_length=1, description="Opaque session identifier.")
    raw_inputs: List[str] = Field(default_factory=list, description="Ingredient-like inputs.")
    constraints: Optional[str] = Field(default=None, description="Free-form constraints or preferences.")
    model_id: Optional[str] = Field(default=None, description="Requested model identifier.")

    @property
    def cleaned_inputs(self) -> List[str]:
        """Inputs with surrounding whitespace removed and blank entries dropped."""
        return [item.strip() for item in self.raw_inputs if item and item.strip()]

    @property
    def cleaned_constraints(self) -> Optional[str]:
        if self.constraints and self.constraints.strip():
            return self.constraints.strip()
        return None


class GenerationResult(BaseModel):
    """
    Outcome of a materialized (non-streamed) generation.

    Attributes:
        model_used: The model identifier that produced `text`.
        text: The complete generated text, with the completion sentinel removed.
        used_fallback: True if the secondary model produced the answer.
        rounds: Number of inference calls spent by the continuation protocol.
        note: Optional short remark for the caller (e.g. "Auto-fallback used.").
    """
    model_used: str
    text: str
    used_fallback: bool = False
    rounds: int = 1
    note: Optional[str] = None
