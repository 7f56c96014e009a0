"""
API routes package initialization.

This module exports the API routers for registration with the FastAPI app.
"""

from .recipe import ServiceUnavailable
from .recipe import router as recipe_router

__all__ = ["ServiceUnavailable", "recipe_router"]
