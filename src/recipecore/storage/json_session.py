# src/recipecore/storage/json_session.py
"""
JSON file-based session history storage.

Each session's history is stored as a JSON array in its own file inside
the configured directory. Writes go to a temporary file first and are
moved into place with ``os.replace``, so a reader never sees a partial
history. File operations use aiofiles.
"""

import hashlib
import json
import logging
import os
import pathlib
import re
from typing import Any, Dict, List

import aiofiles
import aiofiles.os as aios

from ..exceptions import ConfigError, SessionStorageError
from ..models import DEFAULT_HISTORY_LIMIT, Message, bounded_history
from .base_session import BaseSessionStorage, messages_from_entries

logger = logging.getLogger(__name__)

_SAFE_SESSION_ID = re.compile(r"[A-Za-z0-9_\-]{1,128}")


class JsonSessionStorage(BaseSessionStorage):
    """
    Manages persistence of session histories in JSON files.
    """
    _storage_dir: pathlib.Path
    _file_extension: str

    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the JSON history storage.

        Args:
            config: Configuration dictionary. Expected keys:
                    'path': The directory for history files.
                    'history_limit' (optional): Messages kept per session (default: 20).
                    'file_extension' (optional): Extension for history files (default: '.json').

        Raises:
            ConfigError: If the 'path' is not provided in the config.
            SessionStorageError: If the storage directory cannot be created.
        """
        storage_path_str = config.get("path")
        if not storage_path_str:
            raise ConfigError("JSON session storage 'path' not specified in configuration.")

        self._storage_dir = pathlib.Path(os.path.expanduser(storage_path_str))
        self.history_limit = int(config.get("history_limit") or DEFAULT_HISTORY_LIMIT)
        self._file_extension = config.get("file_extension", ".json")
        if not self._file_extension.startswith('.'):
            self._file_extension = f".{self._file_extension}"

        try:
            await aios.makedirs(self._storage_dir, exist_ok=True)
            logger.info(f"JSON session storage initialized at: {self._storage_dir.resolve()}")
        except OSError as e:
            logger.error(f"Failed to create JSON storage directory {self._storage_dir}: {e}")
            raise SessionStorageError(f"Could not create storage directory: {e}")

    def _get_session_path(self, session_id: str) -> pathlib.Path:
        """Constructs the file path for a session; unsafe identifiers are hashed."""
        if _SAFE_SESSION_ID.fullmatch(session_id):
            stem = session_id
        else:
            stem = "sid-" + hashlib.sha256(session_id.encode("utf-8")).hexdigest()
        return self._storage_dir / f"{stem}{self._file_extension}"

    async def get_history(self, session_id: str) -> List[Message]:
        """
        Reads a session's history.

        Raises:
            SessionStorageError: If the file is corrupted or unreadable.
        """
        session_file_path = self._get_session_path(session_id)
        if not await aios.path.exists(session_file_path):
            return []
        try:
            async with aiofiles.open(session_file_path, mode="r", encoding="utf-8") as f:
                raw = await f.read()
            data = json.loads(raw) if raw.strip() else []
            return messages_from_entries(data, session_id)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Corrupted history file for session '{session_id}' at {session_file_path}: {e}")
            raise SessionStorageError(f"Corrupted history for session '{session_id}': {e}")
        except OSError as e:
            logger.error(f"Error reading history file {session_file_path}: {e}")
            raise SessionStorageError(f"Failed to read history for session '{session_id}': {e}")

    async def append_message(self, session_id: str, message: Message) -> int:
        current = await self.get_history(session_id)
        updated = bounded_history([*current, message], self.history_limit)
        await self._write_history(session_id, updated)
        logger.debug(f"Session '{session_id}' history now holds {len(updated)} messages.")
        return len(updated)

    async def _write_history(self, session_id: str, messages: List[Message]) -> None:
        session_file_path = self._get_session_path(session_id)
        tmp_path = session_file_path.with_suffix(session_file_path.suffix + ".tmp")
        payload = json.dumps([m.model_dump(mode="json") for m in messages], indent=2, ensure_ascii=False)
        try:
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as f:
                await f.write(payload)
            await aios.replace(tmp_path, session_file_path)
        except OSError as e:
            logger.error(f"Error writing history for session '{session_id}' to {session_file_path}: {e}")
            if await aios.path.exists(tmp_path):
                try:
                    await aios.remove(tmp_path)
                except OSError:
                    logger.warning(f"Could not remove temporary file {tmp_path}")
            raise SessionStorageError(f"Failed to write history for session '{session_id}': {e}")

    async def clear_history(self, session_id: str) -> bool:
        session_file_path = self._get_session_path(session_id)
        try:
            await aios.remove(session_file_path)
            logger.info(f"History for session '{session_id}' deleted.")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Error deleting history file {session_file_path}: {e}")
            raise SessionStorageError(f"Failed to delete history for session '{session_id}': {e}")

    async def close(self) -> None:
        """No persistent handles to release."""
        logger.debug("JsonSessionStorage closed.")
