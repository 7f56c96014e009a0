"""
Inference provider implementations for the RecipeCore library.

This package defines the base provider interface and the concrete
Workers AI (native REST) and OpenAI-compatible clients.
"""

from .base import BaseProvider, ContextPayload
from .manager import PROVIDER_MAP, ProviderManager

__all__ = ["BaseProvider", "ContextPayload", "PROVIDER_MAP", "ProviderManager"]
