# clubstats_mcp/cache/context_store.py
"""
Key-value stores for conversation context.

Two interchangeable backends:
- InMemoryContextStore: process-local dict (default, single instance)
- RedisContextStore: shared Redis keyspace so contexts survive restarts
  and are visible to every server instance

Contexts are plain JSON-serializable dicts carrying a `last_activity` unix
timestamp. Expiry is driven by sweep(), never by per-key TTLs.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import redis.asyncio as aioredis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from ..api.errors import ClubStatsError, ErrorCode

logger = logging.getLogger(__name__)


class ContextStoreError(ClubStatsError):
    """Raised when the context backend cannot be read or written."""

    def __init__(self, message: str):
        super().__init__(message=message, code=ErrorCode.CONTEXT_STORE_ERROR)


# ============================================================================
# INTERFACE
# ============================================================================


class ContextStore(ABC):
    """Session-keyed storage for ConversationContext payloads."""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def set(self, session_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        ...

    @abstractmethod
    async def keys(self) -> List[str]:
        ...

    async def sweep(self, max_idle_seconds: float, now: Optional[float] = None) -> int:
        """
        Remove contexts idle for longer than max_idle_seconds.

        Args:
            max_idle_seconds: Idle threshold
            now: Reference timestamp (defaults to time.time())

        Returns:
            Number of contexts removed
        """
        now = time.time() if now is None else now
        removed = 0
        for session_id in await self.keys():
            data = await self.get(session_id)
            if data is None:
                continue
            if now - float(data.get("last_activity", 0)) > max_idle_seconds:
                await self.delete(session_id)
                removed += 1
        return removed

    async def close(self) -> None:
        return None


# ============================================================================
# IN-MEMORY BACKEND
# ============================================================================


class InMemoryContextStore(ContextStore):
    """Process-local context store."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        logger.info("In-memory context store initialized")

    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self._data.get(session_id)

    async def set(self, session_id: str, data: Dict[str, Any]) -> None:
        self._data[session_id] = data

    async def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)

    async def keys(self) -> List[str]:
        return list(self._data.keys())

    def size(self) -> int:
        return len(self._data)


# ============================================================================
# REDIS BACKEND
# ============================================================================


class RedisContextStore(ContextStore):
    """
    Redis-backed context store.

    Keys are namespaced as "<prefix><session_id>" and values are JSON.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379",
        db: int = 0,
        prefix: str = "clubstats:context:",
        max_connections: int = 20,
    ):
        self.prefix = prefix
        self.pool = ConnectionPool.from_url(
            url,
            db=db,
            max_connections=max_connections,
            decode_responses=True,
        )
        self.client = aioredis.Redis(connection_pool=self.pool)
        logger.info(f"Redis context store initialized (url={url}, db={db})")

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        try:
            raw = await self.client.get(self._key(session_id))
        except RedisError as e:
            raise ContextStoreError(f"Redis GET failed: {e}")
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, session_id: str, data: Dict[str, Any]) -> None:
        try:
            await self.client.set(self._key(session_id), json.dumps(data))
        except RedisError as e:
            raise ContextStoreError(f"Redis SET failed: {e}")

    async def delete(self, session_id: str) -> None:
        try:
            await self.client.delete(self._key(session_id))
        except RedisError as e:
            raise ContextStoreError(f"Redis DELETE failed: {e}")

    async def keys(self) -> List[str]:
        try:
            return [
                key[len(self.prefix) :]
                async for key in self.client.scan_iter(match=f"{self.prefix}*")
            ]
        except RedisError as e:
            raise ContextStoreError(f"Redis SCAN failed: {e}")

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self.client.aclose()
        await self.pool.disconnect()
        logger.info("Redis context store closed")


def create_context_store(backend: str, redis_url: str = "", redis_db: int = 0) -> ContextStore:
    """Build the configured context store backend."""
    if backend == "redis":
        return RedisContextStore(url=redis_url, db=redis_db)
    return InMemoryContextStore()
