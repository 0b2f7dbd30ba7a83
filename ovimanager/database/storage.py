import asyncio
import sqlite3
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List

from database.helpers import DatabaseError, _decode_collection, _encode_collection

logger = logging.getLogger(__name__)


class CollectionsMixin:
    """Key -> JSON list storage used by the local fallback mode.

    Each collection is one row in ``local_storage``. Callers that modify a
    collection hold ``collection_lock(key)`` across load and save so two
    coroutines in this process cannot interleave their read-modify-write.
    """

    def _key_locks(self) -> Dict[str, asyncio.Lock]:
        locks = getattr(self, "_collection_locks", None)
        if locks is None:
            locks = {}
            self._collection_locks = locks
        return locks

    @asynccontextmanager
    async def collection_lock(self, key: str) -> AsyncIterator[None]:
        locks = self._key_locks()
        if key not in locks:
            locks[key] = asyncio.Lock()
        async with locks[key]:
            yield

    async def load_collection(self, key: str) -> List[Dict[str, Any]]:
        """Return the stored list for ``key``; an absent key is empty."""
        await self.init_db()
        try:
            async with self._get_connection() as conn:
                async with conn.execute(
                    "SELECT value FROM local_storage WHERE key=?", (key,)
                ) as cursor:
                    row = await cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error loading collection {key}: {e}")
            raise DatabaseError(f"Failed to load {key}: {e}") from e
        return _decode_collection(key, row["value"] if row else None)

    async def save_collection(self, key: str, items: List[Dict[str, Any]]) -> None:
        await self.init_db()
        try:
            async with self._get_connection() as conn:
                await conn.execute(
                    "INSERT OR REPLACE INTO local_storage (key, value, updated_at) VALUES (?,?,?)",
                    (key, _encode_collection(items), datetime.now().isoformat())
                )
                await conn.commit()
        except (sqlite3.Error, ValueError, TypeError) as e:
            logger.error(f"Error saving collection {key}: {e}")
            raise DatabaseError(f"Failed to save {key}: {e}") from e

    async def clear_collection(self, key: str) -> None:
        await self.init_db()
        try:
            async with self._get_connection() as conn:
                await conn.execute("DELETE FROM local_storage WHERE key=?", (key,))
                await conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error clearing collection {key}: {e}")
            raise DatabaseError(f"Failed to clear {key}: {e}") from e

    async def collection_keys(self) -> List[str]:
        await self.init_db()
        async with self._get_connection() as conn:
            async with conn.execute("SELECT key FROM local_storage ORDER BY key") as cursor:
                return [r["key"] async for r in cursor]

    async def clear_all(self) -> None:
        """Delete every local collection and setting (sign-out)."""
        await self.init_db()
        try:
            async with self._get_connection() as conn:
                await conn.executescript(
                    "DELETE FROM local_storage; DELETE FROM settings;"
                )
                await conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error clearing database: {e}")
            raise DatabaseError(f"Failed to clear database: {e}") from e
