import os
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite


class AsyncDatabaseInitializer:
    """
    Manage an async SQLite database under a configurable directory.

    - The database file is located at: <db_dir>/app.db
    - `db_dir` defaults to the DATABASE_DIR environment variable. A RuntimeError
      is raised if neither is given or the path is not a usable directory.
    - On the first call to `ensure_database()` for a given instance the
      KV_STORE table is created if missing. Existing data is kept so walkthrough
      history survives restarts.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, db_dir: Optional[Path | str] = None) -> None:
        raw_dir = str(db_dir) if db_dir is not None else os.getenv("DATABASE_DIR")

        if raw_dir is None or not raw_dir.strip():
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )

        resolved = Path(raw_dir).expanduser()

        if resolved.exists() and not resolved.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={raw_dir!r} points to a file, not a directory "
                f"({resolved}). Please set DATABASE_DIR to a directory path."
            )

        try:
            resolved.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {resolved}"
            ) from exc

        self.db_dir = resolved
        self.db_path = self.db_dir / "app.db"

        self._initialized = False

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database at `self.db_path` has the KV_STORE table.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        max_attempts = 3
        for attempt in range(1, max_attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS KV_STORE (
                            key TEXT PRIMARY KEY,
                            value BLOB NOT NULL,
                            updated_at INTEGER
                        )
                        """
                    )
                    await db.commit()
                break
            except FileNotFoundError:
                # On some platforms a transient missing file error may occur; retry a few times.
                if attempt >= max_attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
