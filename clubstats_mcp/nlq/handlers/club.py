# clubstats_mcp/nlq/handlers/club.py
"""
Club-wide statistics handler.

Three variants, picked from the question wording:
- player count: "How many players have played for the club?"
- team ranking: "Which team has conceded the fewest goals?"
- totals across every team: "How many goals has the club scored?"

Void, postponed and abandoned fixtures never count.
"""

import logging
import re
from typing import Any, Dict

from ..coercion import round_value
from ..filters import build_filter_spec, where_clause
from ..parser import QuestionAnalysis
from ..vocabulary import get_metric
from .base import MATCH_PATTERN, HandlerContext, QueryResult, match_predicates, metric_columns
from .team import FIXTURE_PATTERN, fixture_filter_spec, team_metrics

logger = logging.getLogger(__name__)

PLAYER_COUNT_PATTERN = re.compile(r"\bhow many (?:different )?players\b")
TEAM_RANKING_PATTERN = re.compile(r"\b(?:which|what) (?:team|xi)\b")


def club_intent(analysis: QuestionAnalysis) -> str:
    text = analysis.question.lower()
    if PLAYER_COUNT_PATTERN.search(text):
        return "player_count"
    if TEAM_RANKING_PATTERN.search(text):
        return "team_ranking"
    return "totals"


async def _player_count(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    spec = build_filter_spec(analysis, include_team_entities=False)
    params: Dict[str, Any] = {}
    predicates = ["p.allowOnSite = true"] + match_predicates(spec, params)
    query = (
        f"{MATCH_PATTERN} {where_clause(predicates)} "
        f"RETURN count(DISTINCT p) AS playerCount"
    )
    rows = await ctx.run_query("club", query, params, numeric_keys=["playerCount"])
    count = int(rows[0]["playerCount"]) if rows else 0
    return QueryResult(
        type="club_player_count",
        data={
            "club": ctx.config.club_name,
            "player_count": count,
            "time_range": analysis.time_range.describe(),
        },
    )


async def _team_ranking(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    descriptor = team_metrics(analysis)[0] if analysis.metrics else get_metric("G")
    direction = analysis.comparison_direction or "most"
    order = "DESC" if direction == "most" else "ASC"

    spec = fixture_filter_spec(analysis)
    params: Dict[str, Any] = {}
    predicates = ["f.team IS NOT NULL"] + match_predicates(spec, params)
    query = (
        f"{FIXTURE_PATTERN} {where_clause(predicates)} "
        f"RETURN f.team AS teamName, {descriptor.team_aggregate} AS value, "
        f"count(f) AS games "
        f"ORDER BY value {order}, teamName ASC"
    )
    rows = await ctx.run_query("club", query, params, numeric_keys=["value", "games"])
    entries = [
        {
            "rank": index,
            "team": row.get("teamName"),
            "value": round_value(row["value"], descriptor.decimals),
            "games": int(row["games"]),
        }
        for index, row in enumerate(rows, start=1)
    ]
    return QueryResult(
        type="club_team_ranking",
        data={
            "metric": descriptor.code,
            "direction": direction,
            "entries": entries,
            "time_range": analysis.time_range.describe(),
        },
    )


async def _totals(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    descriptors = team_metrics(analysis)
    codes = [d.code for d in descriptors]
    spec = fixture_filter_spec(analysis)
    params: Dict[str, Any] = {}
    predicates = match_predicates(spec, params)
    query = (
        f"{FIXTURE_PATTERN} {where_clause(predicates)} "
        f"RETURN count(f) AS games, {metric_columns(codes, team=True)}"
    )
    rows = await ctx.run_query("club", query, params, numeric_keys=["games"] + codes)
    row = rows[0] if rows else {}
    return QueryResult(
        type="club_totals",
        data={
            "club": ctx.config.club_name,
            "games": int(row.get("games", 0)),
            "metrics": codes,
            "stats": {d.code: round_value(row.get(d.code, 0), d.decimals) for d in descriptors},
            "time_range": analysis.time_range.describe(),
        },
    )


async def handle_club_stats(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    intent = club_intent(analysis)
    logger.debug(f"Club question intent: {intent}")
    if intent == "player_count":
        return await _player_count(analysis, ctx)
    if intent == "team_ranking":
        return await _team_ranking(analysis, ctx)
    return await _totals(analysis, ctx)
