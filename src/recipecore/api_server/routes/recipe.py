# src/recipecore/api_server/routes/recipe.py
"""
Recipe API routes for the RecipeCore API server.

Every response, successful or not, (re)sets the session cookie so a
browser keeps the same conversation across requests.
"""

import json
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from ...api import GenerationStream, RecipeCore
from ...exceptions import EmptyInputError, StorageError, UpstreamError
from ...models import GenerationResult
from ..models import (ErrorResponse, HistoryEntry, HistoryResponse,
                      RecipeRequest, RecipeResponse, ResetResponse)

logger = logging.getLogger(__name__)

router = APIRouter()


class ServiceUnavailable(Exception):
    """Raised when the core failed to start; mapped to 503 by the app."""


def get_core(request: Request) -> RecipeCore:
    core = getattr(request.app.state, "recipecore_instance", None)
    if core is None:
        logger.error("RecipeCore instance not found in app state")
        raise ServiceUnavailable()
    return core


def get_session_id(request: Request, core: RecipeCore) -> str:
    cookie_name = core.settings.server.cookie_name
    sid = request.cookies.get(cookie_name)
    if not sid:
        sid = str(uuid.uuid4())
        logger.debug(f"Issued new session id {sid}")
    return sid


def with_session_cookie(response: Response, sid: str, core: RecipeCore) -> Response:
    server = core.settings.server
    response.set_cookie(
        key=server.cookie_name,
        value=sid,
        max_age=server.cookie_max_age,
        path="/",
        httponly=True,
        samesite="Lax",
    )
    return response


def error_response(status_code: int, error: str, detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(exclude_none=True),
    )


async def parse_recipe_request(request: Request) -> RecipeRequest:
    try:
        body: Any = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        body = {}
    if not isinstance(body, dict):
        body = {}
    return RecipeRequest.model_validate(body)


def result_payload(result: GenerationResult) -> Dict[str, Any]:
    return RecipeResponse(
        model=result.model_used,
        recipe=result.text,
        used_fallback=result.used_fallback,
        note=result.note,
    ).model_dump(exclude_none=True)


@router.post("/recipe", response_model=RecipeResponse, responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}})
async def create_recipe(request: Request) -> Response:
    """
    Generates one complete recipe.

    Returns:
        200 with ``{model, recipe, used_fallback, note?}``; 400 when no
        ingredient was given; 502 when the upstream models failed.
    """
    core = get_core(request)
    sid = get_session_id(request, core)
    recipe_request = await parse_recipe_request(request)

    try:
        result = await core.generate(sid, recipe_request.ingredients, recipe_request.extras, recipe_request.model)
    except EmptyInputError as e:
        return with_session_cookie(error_response(400, str(e)), sid, core)
    except UpstreamError as e:
        logger.error(f"Recipe generation failed for session '{sid}': {e}")
        return with_session_cookie(error_response(502, "AI request failed", e.short_cause), sid, core)
    except StorageError as e:
        logger.error(f"Session storage failure for session '{sid}': {e}")
        return with_session_cookie(error_response(503, "Session storage unavailable"), sid, core)

    return with_session_cookie(JSONResponse(content=result_payload(result)), sid, core)


@router.post("/recipe/stream", responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}})
async def stream_recipe(request: Request) -> Response:
    """
    Streams a recipe as ``text/plain``.

    If the model stream fails before the first chunk, the response is the
    JSON body of the materialized endpoint with ``note: "Stream fallback used."``.
    """
    core = get_core(request)
    sid = get_session_id(request, core)
    recipe_request = await parse_recipe_request(request)

    try:
        outcome = await core.generate_streaming(sid, recipe_request.ingredients, recipe_request.extras, recipe_request.model)
    except EmptyInputError as e:
        return with_session_cookie(error_response(400, str(e)), sid, core)
    except UpstreamError as e:
        logger.error(f"Streaming recipe generation failed for session '{sid}': {e}")
        return with_session_cookie(error_response(502, "AI request failed", e.short_cause), sid, core)
    except StorageError as e:
        logger.error(f"Session storage failure for session '{sid}': {e}")
        return with_session_cookie(error_response(503, "Session storage unavailable"), sid, core)

    if isinstance(outcome, GenerationStream):
        response = StreamingResponse(
            outcome.chunks,
            media_type="text/plain; charset=utf-8",
            headers={"Cache-Control": "no-cache", "X-Model-Used": outcome.model_used},
        )
        return with_session_cookie(response, sid, core)
    return with_session_cookie(JSONResponse(content=result_payload(outcome)), sid, core)


@router.post("/reset", response_model=ResetResponse)
async def reset_session(request: Request) -> Response:
    """Clears the conversation history of the caller's session."""
    core = get_core(request)
    sid = get_session_id(request, core)
    try:
        await core.reset(sid)
    except StorageError as e:
        logger.error(f"Failed to reset session '{sid}': {e}")
        return with_session_cookie(error_response(503, "Session storage unavailable"), sid, core)
    return with_session_cookie(JSONResponse(content=ResetResponse().model_dump()), sid, core)


@router.get("/history", response_model=HistoryResponse)
async def get_history(request: Request) -> Response:
    """Returns the caller's stored conversation, oldest first."""
    core = get_core(request)
    sid = get_session_id(request, core)
    try:
        messages = await core.get_history(sid)
    except StorageError as e:
        logger.error(f"Failed to read history for session '{sid}': {e}")
        return with_session_cookie(error_response(503, "Session storage unavailable"), sid, core)
    payload = HistoryResponse(
        history=[HistoryEntry(role=str(m.role), content=m.content, timestamp=m.timestamp) for m in messages]
    )
    return with_session_cookie(JSONResponse(content=payload.model_dump(mode="json")), sid, core)
