# src/recipecore/sessions/memory.py
"""
Session memory for RecipeCore.

SessionMemory turns a stored history plus a new user turn into the message
sequence handed to inference, and commits finished exchanges back to the
session store. Commit failures are isolated here: they are logged and
counted, never raised, because the generated text is still deliverable.
"""

import logging
from typing import List, Optional, Sequence

from ..exceptions import PersistenceError, RecipeCoreError
from ..models import Message, Role
from ..observability.metrics import record_persistence_failure
from ..prompts import COMPLETION_SENTINEL, build_system_prompt, build_user_prompt
from ..storage.base_session import BaseSessionStorage

logger = logging.getLogger(__name__)

_CONVERSATIONAL_ROLES = {Role.USER.value, Role.ASSISTANT.value}


class SessionMemory:
    """
    Builds inference sequences and persists exchanges for one session store.
    """

    def __init__(
        self,
        storage: BaseSessionStorage,
        sentinel: str = COMPLETION_SENTINEL,
        storage_type: str = "unknown",
    ):
        """
        Args:
            storage: An initialized session store.
            sentinel: Completion marker the system instruction asks the model to emit.
            storage_type: Backend name used as a metric label.
        """
        if storage is None:
            raise RecipeCoreError("SessionMemory requires a valid storage backend instance.")
        self._storage = storage
        self._sentinel = sentinel
        self._storage_type = storage_type
        self._system_prompt = build_system_prompt(sentinel)

    @property
    def system_message(self) -> Message:
        return Message.system(self._system_prompt)

    async def load_history(self, session_id: str) -> List[Message]:
        """Reads the stored history; storage errors propagate."""
        history = await self._storage.get_history(session_id)
        logger.debug(f"Loaded {len(history)} history messages for session '{session_id}'.")
        return history

    def build_user_message(self, raw_inputs: Sequence[str], constraints: Optional[str] = None) -> Message:
        return Message.user(build_user_prompt(raw_inputs, constraints))

    def build_sequence(self, history: Sequence[Message], new_user_input: Message) -> List[Message]:
        """
        Returns ``[system, *history(user/assistant only), new_user_input]``.

        Any stored entry with a role other than user or assistant is dropped,
        so the sequence always holds exactly one system message, first.
        """
        prior = [m for m in history if str(getattr(m.role, "value", m.role)) in _CONVERSATIONAL_ROLES]
        return [self.system_message, *prior, new_user_input]

    async def commit(self, session_id: str, user_msg: Message, assistant_msg: Message) -> bool:
        """
        Appends the user turn, then the assistant turn.

        Returns:
            True if both appends succeeded. On failure the error is logged
            and counted, and False is returned; nothing is retried.
        """
        try:
            await self._storage.append_message(session_id, user_msg)
            size = await self._storage.append_message(session_id, assistant_msg)
        except Exception as e:
            error = PersistenceError(session_id, f"Failed to persist exchange: {e}")
            logger.error(str(error), exc_info=True)
            record_persistence_failure(self._storage_type)
            return False
        logger.debug(f"Committed exchange for session '{session_id}' (history size {size}).")
        return True

    async def reset(self, session_id: str) -> bool:
        """Forgets a session's history. Returns whether anything was removed."""
        removed = await self._storage.clear_history(session_id)
        logger.info(f"Session '{session_id}' reset (history existed: {removed}).")
        return removed
