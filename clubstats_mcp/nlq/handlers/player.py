# clubstats_mcp/nlq/handlers/player.py
"""
Player statistics handler.

Answers totals for one to three metrics for a single player, compares the
same metrics across two or three players, and finds a player's best season
for a metric. A team filter in the question ("for the 2s") narrows the
match details and switches the answer to the team-specific template.
"""

import logging
from typing import Any, Dict, List

from ...api.errors import AmbiguousQuestionError, InvalidMetricError
from ..coercion import round_value
from ..filters import build_filter_spec, where_clause
from ..parser import CLARIFICATION_MESSAGES, QuestionAnalysis
from ..vocabulary import MetricDescriptor, get_metric
from .base import (
    MATCH_PATTERN,
    HandlerContext,
    QueryResult,
    match_predicates,
    metric_columns,
)

logger = logging.getLogger(__name__)


def player_metrics(analysis: QuestionAnalysis) -> List[MetricDescriptor]:
    """Descriptors for the question's metrics, all of them player metrics."""
    if not analysis.metrics:
        raise AmbiguousQuestionError(
            CLARIFICATION_MESSAGES["missing_metric"], reason="missing_metric"
        )
    descriptors = []
    for code in analysis.metrics:
        descriptor = get_metric(code)
        if not descriptor.player_metric:
            raise InvalidMetricError(code, context="player")
        descriptors.append(descriptor)
    return descriptors


def _stats_from_row(row: Dict[str, Any], descriptors: List[MetricDescriptor]) -> Dict[str, Any]:
    return {d.code: round_value(row.get(d.code, 0), d.decimals) for d in descriptors}


async def handle_player_stats(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    """Totals for one player."""
    descriptors = player_metrics(analysis)
    codes = [d.code for d in descriptors]
    player = analysis.players[0]

    spec = build_filter_spec(analysis)
    params: Dict[str, Any] = {"player_name": player}
    predicates = ["p.playerName = $player_name"] + match_predicates(spec, params)
    query = (
        f"{MATCH_PATTERN} {where_clause(predicates)} "
        f"RETURN count(md) AS appearances, {metric_columns(codes)}"
    )

    rows = await ctx.run_query("player", query, params, numeric_keys=["appearances"] + codes)
    row = rows[0] if rows else {}

    return QueryResult(
        type="player_stat",
        data={
            "player": player,
            "team": spec.teams[0] if spec.teams else None,
            "metrics": codes,
            "appearances": int(row.get("appearances", 0)),
            "stats": _stats_from_row(row, descriptors),
            "time_range": analysis.time_range.describe(),
            "filters": spec.to_dict(),
        },
    )


async def handle_player_comparison(
    analysis: QuestionAnalysis, ctx: HandlerContext
) -> QueryResult:
    """
    Compare metrics across two or three players.

    Players without any matching rows are reported with zeros. For each
    metric the leader is the highest value (or lowest for "least"
    questions); ties go to the player named first.
    """
    descriptors = player_metrics(analysis)
    codes = [d.code for d in descriptors]
    players = analysis.players

    spec = build_filter_spec(analysis)
    params: Dict[str, Any] = {"player_names": players}
    predicates = ["p.playerName IN $player_names"] + match_predicates(spec, params)
    query = (
        f"{MATCH_PATTERN} {where_clause(predicates)} "
        f"RETURN p.playerName AS playerName, count(md) AS appearances, "
        f"{metric_columns(codes)} "
        f"ORDER BY playerName"
    )

    rows = await ctx.run_query("player", query, params, numeric_keys=["appearances"] + codes)
    by_name = {row.get("playerName"): row for row in rows}

    entries = []
    for name in players:
        row = by_name.get(name, {})
        entries.append(
            {
                "player": name,
                "appearances": int(row.get("appearances", 0)),
                "stats": _stats_from_row(row, descriptors),
            }
        )

    direction = analysis.comparison_direction or "most"
    leaders = {}
    for code in codes:
        best = entries[0]
        for entry in entries[1:]:
            value, best_value = entry["stats"][code], best["stats"][code]
            if (direction == "most" and value > best_value) or (
                direction == "least" and value < best_value
            ):
                best = entry
        leaders[code] = {"player": best["player"], "value": best["stats"][code]}

    return QueryResult(
        type="player_comparison",
        data={
            "players": entries,
            "metrics": codes,
            "direction": direction,
            "leaders": leaders,
            "team": spec.teams[0] if spec.teams else None,
            "time_range": analysis.time_range.describe(),
        },
    )


async def handle_player_season(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    """
    Per-season values of the first metric for one player, best season first.

    "best" follows the question's direction; per-appearance metrics only
    count seasons with the minimum number of appearances.
    """
    descriptor = player_metrics(analysis)[0]
    direction = analysis.comparison_direction or "most"
    player = analysis.players[0]

    spec = build_filter_spec(analysis)
    params: Dict[str, Any] = {"player_name": player}
    predicates = [
        "p.playerName = $player_name",
        "f.season IS NOT NULL",
    ] + match_predicates(spec, params)

    having = ""
    if descriptor.per_appearance:
        params["min_appearances"] = ctx.config.min_appearances_for_average
        having = "WHERE appearances >= $min_appearances "

    order = "DESC" if direction == "most" else "ASC"
    query = (
        f"{MATCH_PATTERN} {where_clause(predicates)} "
        f"WITH f.season AS season, {descriptor.aggregate} AS value, count(md) AS appearances "
        f"{having}"
        f"RETURN season, value, appearances "
        f"ORDER BY value {order}, season DESC"
    )

    rows = await ctx.run_query("player", query, params, numeric_keys=["value", "appearances"])
    seasons = [
        {
            "season": row.get("season"),
            "value": round_value(row.get("value", 0), descriptor.decimals),
            "appearances": int(row.get("appearances", 0)),
        }
        for row in rows
    ]

    return QueryResult(
        type="player_season",
        data={
            "player": player,
            "metric": descriptor.code,
            "direction": direction,
            "seasons": seasons,
            "team": spec.teams[0] if spec.teams else None,
            "time_range": analysis.time_range.describe(),
        },
    )
