"""
Generation orchestration: model resolution, the continuation protocol,
model fallback and stream duplication.
"""

from .continuation import ContinuationController
from .fallback import FALLBACK_NOTE, FallbackPolicy, FallbackState
from .routing import resolve_model
from .stream_tap import StreamTap

__all__ = [
    "ContinuationController",
    "FALLBACK_NOTE",
    "FallbackPolicy",
    "FallbackState",
    "StreamTap",
    "resolve_model",
]
