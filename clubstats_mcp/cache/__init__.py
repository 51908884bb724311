# clubstats_mcp/cache/__init__.py
"""
Conversation context storage.

Features:
- In-memory store for single-instance deployments
- Redis store with connection pooling, shared across instances
- Idle sweep driven by each context's last_activity timestamp
"""

from .context_store import (
    ContextStore,
    ContextStoreError,
    InMemoryContextStore,
    RedisContextStore,
    create_context_store,
)

__all__ = [
    "ContextStore",
    "ContextStoreError",
    "InMemoryContextStore",
    "RedisContextStore",
    "create_context_store",
]
