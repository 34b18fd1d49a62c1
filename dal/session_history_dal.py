"""Async Data Access Layer for walkthrough session history.

History is kept as one JSON blob in the KV_STORE table under a fixed key,
compatible with `utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import json
import logging
import time
from typing import List

from models.session_models import WalkthroughSession
from utils.database_init import AsyncDatabaseInitializer

LOGGER = logging.getLogger(__name__)

HISTORY_STORAGE_KEY = "oversite_session_history"


class SessionHistoryDAL:
    """Load and save the ordered list of completed walkthrough sessions.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    def __init__(self, db_initializer: AsyncDatabaseInitializer, storage_key: str = HISTORY_STORAGE_KEY) -> None:
        self._db = db_initializer
        self.storage_key = storage_key

    async def load(self) -> List[WalkthroughSession]:
        """Return stored sessions in insertion order.

        A missing or undecodable blob yields an empty list.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT value FROM KV_STORE WHERE key = ?", (self.storage_key,))
            row = await cur.fetchone()
        if row is None:
            return []

        try:
            payload = json.loads(row[0])
            return [WalkthroughSession.from_dict(item) for item in payload]
        except (TypeError, ValueError, KeyError) as exc:
            LOGGER.warning("Discarding unreadable session history (%s): %s", self.storage_key, exc)
            return []

    async def save(self, sessions: List[WalkthroughSession]) -> None:
        """Replace the stored history with `sessions`."""
        blob = json.dumps([session.to_dict() for session in sessions]).encode("utf-8")
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT OR REPLACE INTO KV_STORE (key, value, updated_at) VALUES (?, ?, ?)",
                (self.storage_key, blob, int(time.time())),
            )
            await conn.commit()
