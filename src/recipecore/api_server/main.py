# src/recipecore/api_server/main.py
"""
Main FastAPI application for the RecipeCore API server.

This module contains the FastAPI application instance with lifecycle
management for the RecipeCore instance, the route registrations and the
``recipecore-server`` console entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from ..api import RecipeCore
from ..config.settings import RecipeCoreSettings, get_settings
from ..exceptions import ConfigError, RecipeCoreError
from ..logging_config import configure_logging, log_display
from .routes import ServiceUnavailable, recipe_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages the lifecycle of the FastAPI application.

    Creates the RecipeCore instance on startup unless one was attached to
    ``app.state`` beforehand (embedding applications, tests), and closes it
    on shutdown, which also waits for pending history commits.
    """
    logger.info("API Server starting up...")
    if getattr(app.state, "recipecore_instance", None) is None:
        try:
            settings: RecipeCoreSettings = get_settings()
            configure_logging(app_name="recipecore-api", config=settings.logging)
            app.state.recipecore_instance = await RecipeCore.create(settings=settings)
            log_display(logger, logging.INFO, "RecipeCore ready (provider: %s)",
                        app.state.recipecore_instance.get_provider_name())
        except (ConfigError, RecipeCoreError) as e:
            logger.critical(f"Fatal error during RecipeCore initialization: {e}", exc_info=True)
            app.state.recipecore_instance = None
            logger.warning("API server will start but the recipe service will be unavailable")

    logger.info("API Server startup complete")

    yield

    logger.info("API Server shutting down...")
    core: Optional[RecipeCore] = getattr(app.state, "recipecore_instance", None)
    if core is not None:
        try:
            await core.close()
            logger.info("RecipeCore instance successfully closed")
        except Exception as e:
            logger.error(f"Error during RecipeCore cleanup: {e}", exc_info=True)
        finally:
            app.state.recipecore_instance = None
    logger.info("API Server shutdown complete")


def create_app(cors_origins: Optional[list] = None, instrument: bool = True) -> FastAPI:
    """
    Builds the FastAPI application.

    Args:
        cors_origins: Allowed CORS origins (default: ``server.cors_origins`` from the settings).
        instrument: Whether to register Prometheus instrumentation and ``/metrics``.
    """
    application = FastAPI(
        title="RecipeCore API",
        description="Ingredient-driven recipe generation with continuation, fallback and streaming",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.recipecore_instance = None

    if cors_origins is None:
        try:
            cors_origins = get_settings().server.cors_origins
        except ConfigError as e:
            logger.warning(f"Could not read server settings, allowing all CORS origins: {e}")
            cors_origins = ["*"]

    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins, allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    if instrument:
        Instrumentator(excluded_handlers=["/metrics", "/health"]).instrument(application).expose(application)

    application.include_router(recipe_router, prefix="/api", tags=["recipe"])

    @application.exception_handler(ServiceUnavailable)
    async def service_unavailable_handler(request: Request, exc: ServiceUnavailable) -> JSONResponse:
        return JSONResponse(status_code=503, content={"error": "Recipe service is not available"})

    @application.get("/health")
    async def health_check() -> Dict[str, Any]:
        """Health check endpoint for monitoring."""
        core: Optional[RecipeCore] = getattr(application.state, "recipecore_instance", None)
        if core is None:
            return {"status": "degraded", "recipecore_available": False}
        return {
            "status": "healthy",
            "recipecore_available": True,
            "provider": core.get_provider_name(),
            "storage": core.settings.storage.type,
            "default_model": core.settings.generation.default_model,
        }

    return application


app = create_app()


def run() -> None:
    """Console entry point: serves ``app`` with uvicorn using the server settings."""
    settings = get_settings()
    configure_logging(app_name="recipecore-api", config=settings.logging)
    log_display(logger, logging.INFO, "Listening on %s:%d", settings.server.host, settings.server.port)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_config=None)
