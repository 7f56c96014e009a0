# src/recipecore/storage/base_session.py
"""
Abstract Base Class for Session Storage backends.

This module defines the interface that all session history stores must
adhere to within the RecipeCore library. A store keeps one bounded,
ordered history per opaque session identifier.
"""

import abc
import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from ..models import DEFAULT_HISTORY_LIMIT, Message, Role

logger = logging.getLogger(__name__)

_STORED_ROLES = (Role.USER.value, Role.ASSISTANT.value)


def messages_from_entries(entries: Any, session_id: str) -> List[Message]:
    """
    Turns decoded history entries into messages, oldest first.

    Entries that are not user or assistant messages, or that fail
    validation, are skipped with a warning so one bad record does not
    make the whole session unreadable.

    Raises:
        TypeError: If ``entries`` is not a list.
    """
    if not isinstance(entries, list):
        raise TypeError(f"expected a list of messages, got {type(entries).__name__}")
    messages: List[Message] = []
    for index, entry in enumerate(entries):
        role = entry.get("role") if isinstance(entry, dict) else None
        if not isinstance(role, str) or role.lower() not in _STORED_ROLES:
            logger.warning(f"Skipping history entry {index} of session '{session_id}' with role {role!r}.")
            continue
        try:
            messages.append(Message.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Skipping invalid history entry {index} of session '{session_id}': {e}")
    return messages


class BaseSessionStorage(abc.ABC):
    """
    Abstract Base Class for per-session message history storage.

    Every append is a read-modify-write of the whole bounded history,
    written back as a single replacement. There is no compare-and-swap:
    two concurrent writers to the same session may lose an update.
    """

    history_limit: int = DEFAULT_HISTORY_LIMIT

    @abc.abstractmethod
    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the storage backend with given configuration.

        Args:
            config: Backend-specific configuration dictionary derived from
                    the ``storage`` settings section (e.g., path, history_limit).
        """
        pass

    @abc.abstractmethod
    async def get_history(self, session_id: str) -> List[Message]:
        """
        Retrieve the history of a session, oldest first.

        Returns:
            The stored messages, or an empty list for an unknown session.
        """
        pass

    @abc.abstractmethod
    async def append_message(self, session_id: str, message: Message) -> int:
        """
        Append one message, creating the history lazily and trimming it to
        the most recent ``history_limit`` entries.

        Returns:
            The size of the history after the append.

        Raises:
            SessionStorageError: If the write fails.
        """
        pass

    @abc.abstractmethod
    async def clear_history(self, session_id: str) -> bool:
        """
        Remove the history of a session.

        Returns:
            True if a history existed and was removed, False otherwise.
        """
        pass

    @abc.abstractmethod
    async def close(self) -> None:
        """Clean up resources such as database connections."""
        pass
