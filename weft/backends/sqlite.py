"""SQLite store backend for snapshots that survive process restarts.

JSON encoding happens here, at the persistence boundary. The engine hands
over live values and gets live values back.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

logger = logging.getLogger(__name__)


class SQLiteBackend:
    """Stores one JSON-encoded store snapshot per document.

    The database schema:
    - document_id: TEXT PRIMARY KEY
    - entries: TEXT (JSON-encoded store entries)
    - updated_at: TIMESTAMP

    Store values must be JSON serializable to be saved here.
    """

    def __init__(self, db_path: str = "weft_store.db"):
        """Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        db_dir = Path(self.db_path).parent
        if db_dir and not db_dir.exists():
            db_dir.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS weft_store (
                    document_id TEXT PRIMARY KEY,
                    entries TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            await db.commit()

        self._initialized = True

    async def save(self, document_id: str, entries: Dict[str, Any]) -> None:
        """Save store entries for a document.

        Raises:
            TypeError: If an entry is not JSON serializable
        """
        await self._ensure_initialized()
        payload = json.dumps(entries)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO weft_store (document_id, entries, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(document_id)
                DO UPDATE SET entries = excluded.entries,
                              updated_at = CURRENT_TIMESTAMP
                """,
                (document_id, payload),
            )
            await db.commit()
        logger.debug("Saved %d store entries for document %s", len(entries), document_id)

    async def load(self, document_id: str) -> Optional[Dict[str, Any]]:
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT entries FROM weft_store WHERE document_id = ?",
                (document_id,),
            ) as cursor:
                row = await cursor.fetchone()
                if row:
                    return json.loads(row[0])
                return None

    async def delete(self, document_id: str) -> None:
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "DELETE FROM weft_store WHERE document_id = ?",
                (document_id,),
            )
            await db.commit()

    async def exists(self, document_id: str) -> bool:
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT 1 FROM weft_store WHERE document_id = ? LIMIT 1",
                (document_id,),
            ) as cursor:
                return await cursor.fetchone() is not None

    async def list_documents(self) -> List[str]:
        """List document ids, most recently saved first."""
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT document_id FROM weft_store ORDER BY updated_at DESC"
            ) as cursor:
                rows = await cursor.fetchall()
                return [row[0] for row in rows]

    def __repr__(self) -> str:
        return f"SQLiteBackend(db_path='{self.db_path}')"
