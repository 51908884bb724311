# clubstats_mcp/nlq/handlers/awards.py
"""
Awards handler: Team of the Week, Team of the Season and Player of the
Month selections.

Named players get a selection count each; questions with no player
("Who has been in the team of the week the most?") rank players by
selections. A season in the question narrows the awards by their season.
"""

import logging
from typing import Any, Dict, List

from ..filters import where_clause
from ..parser import QuestionAnalysis
from .base import HandlerContext, QueryResult
from .ranking import ranking_limit

logger = logging.getLogger(__name__)

AWARD_RELATIONSHIPS = {
    "weekly_totw": "(p)-[r:IN_WEEKLY_TOTW]->(a:WeeklyTOTW {graphLabel: $graph_label})",
    "season_totw": "(p)-[r:IN_SEASON_TOTW]->(a:SeasonTOTW {graphLabel: $graph_label})",
    "player_of_the_month": "(p)-[r:PLAYER_OF_THE_MONTH]->(a {graphLabel: $graph_label})",
}


def _season_predicates(analysis: QuestionAnalysis, params: Dict[str, Any]) -> List[str]:
    time_range = analysis.time_range
    if time_range.type == "season" and time_range.seasons:
        params["seasons"] = list(time_range.seasons)
        return ["a.season IN $seasons"]
    return []


async def handle_awards(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    award = analysis.modifiers.get("award", "weekly_totw")
    players = analysis.players
    params: Dict[str, Any] = {}

    if players:
        params["player_names"] = list(players)
        predicates = ["p.playerName IN $player_names"]
        limit = None
    else:
        limit = ranking_limit(analysis, ctx.config.default_top_n, ctx.config.max_top_n)
        params["limit"] = limit
        predicates = ["p.allowOnSite = true"]
    predicates += _season_predicates(analysis, params)

    query = (
        f"MATCH (p:Player {{graphLabel: $graph_label}}) "
        f"MATCH {AWARD_RELATIONSHIPS[award]} {where_clause(predicates)} "
        f"WITH p, count(r) AS awardCount "
        f"RETURN p.playerName AS playerName, awardCount "
        f"ORDER BY awardCount DESC, playerName ASC"
    )
    if limit is not None:
        query += " LIMIT $limit"

    rows = await ctx.run_query("awards", query, params, numeric_keys=["awardCount"])

    if players:
        counts = {row.get("playerName"): int(row.get("awardCount", 0)) for row in rows}
        entries = [{"player": name, "count": counts.get(name, 0)} for name in players]
    else:
        entries = [
            {"rank": index, "player": row.get("playerName"), "count": int(row.get("awardCount", 0))}
            for index, row in enumerate(rows, start=1)
        ]

    return QueryResult(
        type="awards",
        data={
            "award": award,
            "players": entries,
            "ranked": not players,
            "leaderboard": bool(analysis.modifiers.get("leaderboard")),
            "time_range": analysis.time_range.describe(),
        },
    )
