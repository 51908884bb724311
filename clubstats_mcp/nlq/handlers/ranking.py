# clubstats_mcp/nlq/handlers/ranking.py
"""
Player ranking handler ("Who has scored the most goals?", "top 5 assists").

Ranks players allowed on site by the first metric of the question. A
single-answer question returns the top row; leaderboard questions return
top-N rows (default and cap from EngineConfig). Per-appearance rankings
only consider players with a minimum number of appearances.
"""

import logging
from typing import Any, Dict

from ..coercion import round_value
from ..filters import build_filter_spec, where_clause
from ..parser import QuestionAnalysis
from .base import MATCH_PATTERN, HandlerContext, QueryResult, match_predicates
from .player import player_metrics

logger = logging.getLogger(__name__)


def ranking_limit(analysis: QuestionAnalysis, default_top_n: int, max_top_n: int) -> int:
    """
    Number of rows to return.

    Examples:
        >>> a = QuestionAnalysis(question="", modifiers={"leaderboard": True, "top_n": 25})
        >>> ranking_limit(a, 5, 10)
        10
    """
    if not analysis.modifiers.get("leaderboard"):
        return 1
    requested = analysis.modifiers.get("top_n") or default_top_n
    return max(1, min(int(requested), max_top_n))


async def handle_player_ranking(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    descriptor = player_metrics(analysis)[0]
    direction = analysis.comparison_direction or "most"
    limit = ranking_limit(analysis, ctx.config.default_top_n, ctx.config.max_top_n)

    spec = build_filter_spec(analysis)
    params: Dict[str, Any] = {"limit": limit}
    predicates = ["p.allowOnSite = true"] + match_predicates(spec, params)

    having = ""
    if descriptor.per_appearance:
        params["min_appearances"] = ctx.config.min_appearances_for_average
        having = "WHERE appearances >= $min_appearances "

    order = "DESC" if direction == "most" else "ASC"
    query = (
        f"{MATCH_PATTERN} {where_clause(predicates)} "
        f"WITH p, {descriptor.aggregate} AS value, count(md) AS appearances "
        f"{having}"
        f"RETURN p.playerName AS playerName, value, appearances "
        f"ORDER BY value {order}, playerName ASC "
        f"LIMIT $limit"
    )

    rows = await ctx.run_query("ranking", query, params, numeric_keys=["value", "appearances"])
    entries = [
        {
            "rank": index,
            "player": row.get("playerName"),
            "value": round_value(row["value"], descriptor.decimals),
            "appearances": int(row["appearances"]),
        }
        for index, row in enumerate(rows, start=1)
    ]

    return QueryResult(
        type="ranking",
        data={
            "metric": descriptor.code,
            "direction": direction,
            "leaderboard": limit > 1,
            "entries": entries,
            "team": spec.teams[0] if spec.teams else None,
            "time_range": analysis.time_range.describe(),
            "min_appearances": params.get("min_appearances"),
        },
    )
