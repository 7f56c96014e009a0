# src/recipecore/storage/memory_session.py
"""
In-process session history storage.

Histories live in a dictionary for the lifetime of the process. Useful for
development, tests, and single-worker deployments that can afford to lose
history on restart.
"""

import logging
from typing import Any, Dict, List, Tuple

from ..models import DEFAULT_HISTORY_LIMIT, Message, bounded_history
from .base_session import BaseSessionStorage

logger = logging.getLogger(__name__)


class MemorySessionStorage(BaseSessionStorage):
    """Keeps each history as an immutable tuple, replaced wholesale on append."""

    def __init__(self) -> None:
        self._histories: Dict[str, Tuple[Message, ...]] = {}

    async def initialize(self, config: Dict[str, Any]) -> None:
        self.history_limit = int(config.get("history_limit") or DEFAULT_HISTORY_LIMIT)
        logger.info(f"In-memory session storage initialized (history_limit={self.history_limit}).")

    async def get_history(self, session_id: str) -> List[Message]:
        return list(self._histories.get(session_id, ()))

    async def append_message(self, session_id: str, message: Message) -> int:
        current = self._histories.get(session_id, ())
        updated = tuple(bounded_history([*current, message], self.history_limit))
        self._histories[session_id] = updated
        return len(updated)

    async def clear_history(self, session_id: str) -> bool:
        return self._histories.pop(session_id, None) is not None

    async def close(self) -> None:
        self._histories.clear()
