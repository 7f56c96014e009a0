# src/recipecore/storage/sqlite_session.py
"""
SQLite database storage for session histories using aiosqlite.

One row per session holds the whole bounded history as a JSON array, so
every append is a single ``INSERT ... ON CONFLICT DO UPDATE`` statement.
"""

import json
import logging
import os
import pathlib
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiosqlite

from ..exceptions import ConfigError, SessionStorageError
from ..models import DEFAULT_HISTORY_LIMIT, Message, bounded_history
from .base_session import BaseSessionStorage, messages_from_entries

logger = logging.getLogger(__name__)

DEFAULT_HISTORIES_TABLE = "session_histories"


class SqliteSessionStorage(BaseSessionStorage):
    """
    Manages persistence of session histories in a SQLite database.
    """
    _db_path: pathlib.Path
    _conn: Optional[aiosqlite.Connection] = None
    _table_name: str

    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the SQLite database and create the history table.

        Args:
            config: Configuration dictionary. Expected keys:
                    'path': The database file path (':memory:' is accepted).
                    'history_limit' (optional): Messages kept per session (default: 20).
                    'table_name' (optional)

        Raises:
            ConfigError: If 'path' is not provided.
            SessionStorageError: If the database cannot be initialized.
        """
        db_path_str = config.get("path")
        if not db_path_str:
            raise ConfigError("SQLite session storage 'path' not specified in configuration.")

        self.history_limit = int(config.get("history_limit") or DEFAULT_HISTORY_LIMIT)
        self._table_name = config.get("table_name", DEFAULT_HISTORIES_TABLE)

        try:
            if db_path_str == ":memory:":
                self._db_path = pathlib.Path(db_path_str)
                self._conn = await aiosqlite.connect(":memory:")
            else:
                self._db_path = pathlib.Path(os.path.expanduser(db_path_str))
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = await aiosqlite.connect(self._db_path)
            await self._conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self._table_name} (
                    session_id TEXT PRIMARY KEY,
                    messages TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await self._conn.commit()
            logger.info(f"SQLite session storage initialized at: {self._db_path}")
        except aiosqlite.Error as e:
            logger.error(f"Failed to initialize SQLite database at {db_path_str}: {e}")
            if self._conn:
                await self._conn.close()
                self._conn = None
            raise SessionStorageError(f"Could not initialize SQLite database: {e}")

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise SessionStorageError("SQLite connection is not initialized.")
        return self._conn

    async def get_history(self, session_id: str) -> List[Message]:
        conn = self._require_conn()
        try:
            async with conn.execute(
                f"SELECT messages FROM {self._table_name} WHERE session_id = ?", (session_id,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error(f"SQLite error reading history for session '{session_id}': {e}")
            raise SessionStorageError(f"Failed to read history for session '{session_id}': {e}")
        if row is None:
            return []
        try:
            return messages_from_entries(json.loads(row[0]), session_id)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Corrupted history row for session '{session_id}': {e}")
            raise SessionStorageError(f"Corrupted history for session '{session_id}': {e}")

    async def append_message(self, session_id: str, message: Message) -> int:
        conn = self._require_conn()
        current = await self.get_history(session_id)
        updated = bounded_history([*current, message], self.history_limit)
        payload = json.dumps([m.model_dump(mode="json") for m in updated], ensure_ascii=False)
        now = datetime.now(timezone.utc).isoformat()
        try:
            await conn.execute(
                f"""
                INSERT INTO {self._table_name} (session_id, messages, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET messages = excluded.messages, updated_at = excluded.updated_at
                """,
                (session_id, payload, now),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            logger.error(f"SQLite error saving history for session '{session_id}': {e}")
            raise SessionStorageError(f"Failed to save history for session '{session_id}': {e}")
        return len(updated)

    async def clear_history(self, session_id: str) -> bool:
        conn = self._require_conn()
        try:
            cursor = await conn.execute(f"DELETE FROM {self._table_name} WHERE session_id = ?", (session_id,))
            await conn.commit()
            deleted = cursor.rowcount > 0
            await cursor.close()
        except aiosqlite.Error as e:
            logger.error(f"SQLite error deleting history for session '{session_id}': {e}")
            raise SessionStorageError(f"Failed to delete history for session '{session_id}': {e}")
        if deleted:
            logger.info(f"History for session '{session_id}' deleted.")
        return deleted

    async def close(self) -> None:
        """Closes the database connection."""
        if self._conn:
            try:
                await self._conn.close()
                logger.info("SQLite session storage connection closed.")
            except aiosqlite.Error as e:
                logger.error(f"Error closing SQLite connection: {e}")
            finally:
                self._conn = None
