# clubstats_mcp/graph/mock_store.py
"""
In-memory graph store for testing the NLQ pipeline without Neo4j.

Responses are registered against a matcher (substring of the query text or
a predicate over query and params). Catalog queries are answered from the
entity lists passed at construction.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .store import GraphStore, Record

Matcher = Union[str, Callable[[str, Dict[str, Any]], bool]]
Responder = Union[List[Record], Callable[[str, Dict[str, Any]], List[Record]]]

CATALOG_LABELS = {
    "player": "Player",
    "team": "Team",
    "opposition": "Opposition",
    "league": "League",
}


class MockGraphStore(GraphStore):
    """GraphStore double that records every query it receives."""

    def __init__(
        self,
        catalog: Optional[Dict[str, List[str]]] = None,
        graph_label: str = "testGraph",
        delay_seconds: float = 0.0,
    ):
        self.catalog = {k: list(v) for k, v in (catalog or {}).items()}
        self.graph_label = graph_label
        self.delay_seconds = delay_seconds
        self.executed: List[Tuple[str, Dict[str, Any]]] = []
        self.failure: Optional[Exception] = None
        self._responses: List[Tuple[Matcher, Responder]] = []
        self._connected = False

    async def connect(self) -> bool:
        self._connected = True
        return True

    def is_connected(self) -> bool:
        return self._connected

    def get_graph_label(self) -> str:
        return self.graph_label

    def add_response(self, matcher: Matcher, responder: Responder) -> None:
        """Register records for queries matching `matcher` (first match wins)."""
        self._responses.append((matcher, responder))

    def fail_with(self, error: Optional[Exception]) -> None:
        """Make every non-catalog query raise `error` (None to clear)."""
        self.failure = error

    def queries_matching(self, text: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [(q, p) for q, p in self.executed if text in q]

    def _catalog_records(self, query: str) -> Optional[List[Record]]:
        if "AS entityName" not in query:
            return None
        for entity_type, label in CATALOG_LABELS.items():
            if f"(e:{label}" in query:
                return [{"entityName": name} for name in self.catalog.get(entity_type, [])]
        return []

    async def execute_query(
        self, query: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Record]:
        scoped = self.scoped_params(params)
        self.executed.append((query, scoped))

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        catalog_rows = self._catalog_records(query)
        if catalog_rows is not None:
            return catalog_rows

        if self.failure is not None:
            raise self.failure

        for matcher, responder in self._responses:
            matched = matcher in query if isinstance(matcher, str) else matcher(query, scoped)
            if matched:
                return responder(query, scoped) if callable(responder) else list(responder)
        return []
