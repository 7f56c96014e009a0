# src/recipecore/generation/routing.py
"""
Model identifier resolution.

Callers may name a model explicitly; anything missing or unknown silently
resolves to the default model rather than failing the request.
"""

from typing import Iterable, Optional

from ..config.settings import DEFAULT_MODEL, FALLBACK_MODEL


def resolve_model(
    model_id: Optional[str],
    supported_models: Optional[Iterable[str]] = None,
    default_model: str = DEFAULT_MODEL,
) -> str:
    """
    Maps a requested model identifier to the one that will actually be used.

    Matching is case-insensitive and ignores surrounding whitespace; a match
    is returned in its canonical (configured) spelling.

    Examples:
        >>> resolve_model(None)
        '@cf/meta/llama-3.3-70b-instruct-fp8-fast'
        >>> resolve_model("gpt-5")
        '@cf/meta/llama-3.3-70b-instruct-fp8-fast'
        >>> resolve_model("@CF/meta/llama-3.1-8b-instruct-fast")
        '@cf/meta/llama-3.1-8b-instruct-fast'
    """
    if not model_id or not model_id.strip():
        return default_model
    candidates = list(supported_models) if supported_models is not None else [DEFAULT_MODEL, FALLBACK_MODEL]
    wanted = model_id.strip().lower()
    for candidate in candidates:
        if candidate.lower() == wanted:
            return candidate
    return default_model
