# clubstats_mcp/graph/__init__.py
"""Graph store adapters."""

from .mock_store import MockGraphStore
from .store import GraphStore, Neo4jGraphStore

__all__ = ["GraphStore", "MockGraphStore", "Neo4jGraphStore"]
