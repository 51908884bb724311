# clubstats_mcp/nlq/handlers/base.py
"""
Shared result types and query plumbing for the handler family.

Every handler is an async function `(analysis, ctx) -> QueryResult`. The
only suspension point inside a handler is HandlerContext.run_query(), which
records the query for debug output, times it and translates raw backend
failures into QueryExecutionError.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...api.entity_resolver import EntityResolver
from ...api.errors import ClubStatsError, QueryExecutionError, classify_query_failure
from ...config import EngineConfig
from ...graph.store import GraphStore, Record
from ...observability.metrics import MetricsManager
from ..coercion import coerce_record
from ..filters import FilterSpec, compile_filters, fixture_status_predicate
from ..vocabulary import get_metric

logger = logging.getLogger(__name__)

MATCH_PATTERN = (
    "MATCH (p:Player {graphLabel: $graph_label})"
    "-[:PLAYED_IN]->(md:MatchDetail {graphLabel: $graph_label})"
    "<-[:HAS_MATCH_DETAILS]-(f:Fixture {graphLabel: $graph_label})"
)


# ============================================================================
# RESULT TYPES
# ============================================================================


@dataclass
class QueryError:
    """Structured failure carried by a QueryResult."""

    kind: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, error: ClubStatsError) -> "QueryError":
        return cls(kind=error.kind, message=error.message, details=dict(error.details))

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


@dataclass
class QueryResult:
    """
    Output of one handler.

    `type` discriminates the payload shape (player_stat, player_comparison,
    ranking, team_stat, club_totals, club_team_ranking, club_player_count,
    league_position, relationship_games, relationship_teammates, player_season,
    fixture_record, hat_tricks, streak, awards, ambiguous, error). All numbers
    in `data` are plain Python numbers.
    """

    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[QueryError] = None
    queries: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def failure(
        cls, error: ClubStatsError, queries: Optional[List[Dict[str, Any]]] = None
    ) -> "QueryResult":
        return cls(type="error", error=QueryError.from_exception(error), queries=queries or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "data": self.data,
            "error": self.error.to_dict() if self.error else None,
            "queries": self.queries,
        }


# ============================================================================
# HANDLER CONTEXT
# ============================================================================


@dataclass
class HandlerContext:
    """Dependencies shared by every handler invocation."""

    store: GraphStore
    config: EngineConfig = field(default_factory=EngineConfig)
    resolver: Optional[EntityResolver] = None
    metrics: Optional[MetricsManager] = None
    executed: List[Dict[str, Any]] = field(default_factory=list)

    async def run_query(
        self,
        handler: str,
        query: str,
        params: Dict[str, Any],
        numeric_keys: Optional[List[str]] = None,
    ) -> List[Record]:
        """
        Execute one graph query.

        Args:
            handler: Handler family name (metrics label)
            query: Cypher text
            params: Named parameters
            numeric_keys: Record keys to coerce to plain numbers

        Returns:
            Records with numeric_keys coerced

        Raises:
            QueryExecutionError: If the store fails or exceeds the query timeout
        """
        self.executed.append({"handler": handler, "query": query, "params": dict(params)})
        timeout = self.config.query_timeout_seconds
        start_time = time.perf_counter()
        try:
            rows = await asyncio.wait_for(
                self.store.execute_query(query, params), timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"{handler} query timed out after {timeout}s")
            raise QueryExecutionError(f"Query timed out after {timeout}s", reason="timeout")
        except ClubStatsError:
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"{handler} query failed: {message}")
            raise QueryExecutionError(message, reason=classify_query_failure(message))
        finally:
            if self.metrics is not None:
                self.metrics.record_graph_query(handler, time.perf_counter() - start_time)

        if numeric_keys:
            rows = [coerce_record(row, numeric_keys) for row in rows]
        logger.debug(f"{handler} query returned {len(rows)} row(s)")
        return rows


def match_predicates(spec: FilterSpec, params: Dict[str, Any]) -> List[str]:
    """Status exclusion followed by the compiled filter fragments."""
    return [fixture_status_predicate(params)] + compile_filters(spec, params)


def metric_columns(codes: List[str], team: bool = False) -> str:
    """RETURN items aliasing each metric aggregate to its code."""
    items = []
    for code in codes:
        descriptor = get_metric(code)
        expression = descriptor.team_aggregate if team else descriptor.aggregate
        items.append(f"{expression} AS `{code}`")
    return ", ".join(items)
