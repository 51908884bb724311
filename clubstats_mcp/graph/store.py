# clubstats_mcp/graph/store.py
"""
Graph store adapter.

Every query the engine issues goes through a GraphStore. The adapter owns
three concerns:
1. Scoping: the dataset partition key (graph label) is bound into every
   parameter bag as $graph_label
2. Timeouts: each call is bounded so a slow backend becomes a
   QueryExecutionError instead of a hung request
3. Translation: driver exceptions never leave the adapter untranslated
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from neo4j import AsyncGraphDatabase
from neo4j.exceptions import (
    AuthError,
    ClientError,
    CypherSyntaxError,
    Neo4jError,
    ServiceUnavailable,
)

from ..api.errors import QueryExecutionError, classify_query_failure
from ..config import EngineConfig

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


# ============================================================================
# INTERFACE
# ============================================================================


class GraphStore(ABC):
    """Read-only access to the club's property graph."""

    @abstractmethod
    async def connect(self) -> bool:
        """Open the connection. Returns True when the backend is reachable."""

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    async def execute_query(
        self, query: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Record]:
        """Run a read query and return plain dict records."""

    @abstractmethod
    def get_graph_label(self) -> str:
        ...

    async def close(self) -> None:
        return None

    def scoped_params(self, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Copy of params with $graph_label bound."""
        scoped = dict(params or {})
        scoped.setdefault("graph_label", self.get_graph_label())
        return scoped


# ============================================================================
# NEO4J IMPLEMENTATION
# ============================================================================


class Neo4jGraphStore(GraphStore):
    """
    GraphStore backed by the official neo4j async driver.

    Example:
        store = Neo4jGraphStore.from_config(EngineConfig.from_env())
        await store.connect()
        rows = await store.execute_query(
            "MATCH (p:Player {graphLabel: $graph_label}) RETURN count(p) AS players"
        )
    """

    def __init__(
        self,
        uri: str,
        user: str,
        password: str,
        database: str = "neo4j",
        graph_label: str = "dorkiniansWebsite",
        timeout_seconds: float = 10.0,
    ):
        self.uri = uri
        self.user = user
        self.password = password
        self.database = database
        self.graph_label = graph_label
        self.timeout_seconds = timeout_seconds
        self._driver = None
        self._connected = False

    @classmethod
    def from_config(cls, config: EngineConfig) -> "Neo4jGraphStore":
        return cls(
            uri=config.neo4j_uri,
            user=config.neo4j_user,
            password=config.neo4j_password,
            database=config.neo4j_database,
            graph_label=config.graph_label,
            timeout_seconds=config.query_timeout_seconds,
        )

    async def connect(self) -> bool:
        if self._driver is None:
            self._driver = AsyncGraphDatabase.driver(
                self.uri, auth=(self.user, self.password)
            )
        try:
            await asyncio.wait_for(
                self._driver.verify_connectivity(), timeout=self.timeout_seconds
            )
        except (ServiceUnavailable, AuthError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"Neo4j not reachable at {self.uri}: {e}")
            self._connected = False
            return False

        self._connected = True
        logger.info(f"Connected to Neo4j at {self.uri} (database={self.database})")
        return True

    def is_connected(self) -> bool:
        return self._connected

    def get_graph_label(self) -> str:
        return self.graph_label

    async def _run(self, query: str, params: Dict[str, Any]) -> List[Record]:
        async with self._driver.session(database=self.database) as session:
            result = await session.run(query, params)
            return await result.data()

    async def execute_query(
        self, query: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Record]:
        if not self._connected and not await self.connect():
            raise QueryExecutionError(
                "Graph database is not available", reason="connection"
            )

        scoped = self.scoped_params(params)
        start_time = time.time()
        try:
            records = await asyncio.wait_for(
                self._run(query, scoped), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"Graph query timed out after {self.timeout_seconds}s")
            raise QueryExecutionError(
                f"Query timed out after {self.timeout_seconds}s", reason="timeout"
            )
        except CypherSyntaxError as e:
            message = e.message or str(e)
            logger.error(f"Cypher syntax error: {message}")
            raise QueryExecutionError(f"Syntax error: {message}", reason="syntax")
        except ServiceUnavailable as e:
            self._connected = False
            logger.error(f"Graph database unavailable: {e}")
            raise QueryExecutionError(str(e), reason="connection")
        except (ClientError, Neo4jError) as e:
            message = e.message or str(e)
            logger.error(f"Graph query failed: {message}")
            raise QueryExecutionError(message, reason=classify_query_failure(message))

        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(f"Graph query returned {len(records)} rows in {elapsed_ms:.1f}ms")
        return records

    async def close(self) -> None:
        if self._driver is not None:
            await self._driver.close()
            self._driver = None
        self._connected = False
        logger.info("Neo4j driver closed")
