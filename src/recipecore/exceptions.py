# src/recipecore/exceptions.py
"""
Custom exceptions for the RecipeCore library.

This module defines a hierarchy of custom exception classes so that callers
can tell apart input problems, upstream (model) failures, persistence
failures and stream failures, and handle each at the right layer.
"""

from typing import Optional


class RecipeCoreError(Exception):
    """Base class for all RecipeCore specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in RecipeCore."):
        super().__init__(message)

class ConfigError(RecipeCoreError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)

class ProviderError(RecipeCoreError):
    """Raised for errors originating from an inference provider (e.g., API errors, connection issues)."""
    def __init__(self, provider_name: str = "Unknown", message: str = "Provider error."):
        self.provider_name = provider_name
        self.detail = message
        super().__init__(f"Error with provider '{provider_name}': {message}")

class EmptyResponseError(ProviderError):
    """Raised when a provider answers successfully but with no usable text."""
    def __init__(self, provider_name: str = "Unknown", message: str = "Empty response from model."):
        super().__init__(provider_name, message)

class StorageError(RecipeCoreError):
    """Base class for errors related to storage operations."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)

class SessionStorageError(StorageError):
    """Raised for errors specific to session history storage operations."""
    def __init__(self, message: str = "Session storage error."):
        super().__init__(message)

class PersistenceError(StorageError):
    """
    Raised when committing a finished exchange to history fails.

    This error is logged and counted but never unwinds the response path:
    the generated text is still valid and deliverable.
    """
    def __init__(self, session_id: str, message: str = "Failed to persist exchange."):
        self.session_id = session_id
        super().__init__(f"{message} Session ID: '{session_id}'")

class EmptyInputError(RecipeCoreError):
    """Raised when a generation request carries no usable ingredient inputs."""
    def __init__(self, message: str = "Provide at least one ingredient."):
        super().__init__(message)

class UpstreamError(RecipeCoreError):
    """
    Raised when both the primary and the fallback generation attempts fail.

    The message and `cause` always describe the *primary* failure; the
    fallback failure, if a fallback was attempted, is kept in `fallback_error`.
    """
    def __init__(
        self,
        primary_model: str = "Unknown",
        cause: Optional[BaseException] = None,
        fallback_model: Optional[str] = None,
        fallback_error: Optional[BaseException] = None,
        message: str = "AI request failed.",
    ):
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.cause = cause
        self.fallback_error = fallback_error
        detail = f" Cause: {cause}" if cause is not None else ""
        super().__init__(f"{message} Model: '{primary_model}'.{detail}")

    @property
    def short_cause(self) -> str:
        """A single-line, length-limited description of the primary failure, safe to show callers."""
        if self.cause is None:
            return "unknown error"
        text = getattr(self.cause, "detail", None) or str(self.cause) or type(self.cause).__name__
        return " ".join(str(text).split())[:300]

class StreamTapError(RecipeCoreError):
    """Raised when a live stream fails or ends before any content was forwarded."""
    def __init__(self, message: str = "Stream produced no content.", cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)
