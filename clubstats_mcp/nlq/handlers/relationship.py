# clubstats_mcp/nlq/handlers/relationship.py
"""
Player relationship handler.

- Two or three players: games played together (same fixture) for each pair.
- One player: the three teammates they have played with most often.

A team filter applies to both players' match details; the same predicate
fragment is replayed under the second match-detail alias.
"""

import logging
from itertools import combinations
from typing import Any, Dict, List

from ..filters import build_filter_spec, retarget_predicates, where_clause
from ..parser import QuestionAnalysis
from .base import MATCH_PATTERN, HandlerContext, QueryResult, match_predicates

logger = logging.getLogger(__name__)

TEAMMATE_LIMIT = 3

SECOND_PLAYER_PATTERN = (
    "MATCH (f)-[:HAS_MATCH_DETAILS]->(md2:MatchDetail {graphLabel: $graph_label})"
    "<-[:PLAYED_IN]-(other:Player {graphLabel: $graph_label})"
)


def _shared_predicates(analysis: QuestionAnalysis, params: Dict[str, Any]) -> List[str]:
    spec = build_filter_spec(analysis, include_team_entities=False)
    predicates = match_predicates(spec, params)
    teams = analysis.teams
    if teams:
        params["teams"] = list(teams)
        team_predicates = ["md.team IN $teams"]
        predicates += team_predicates + retarget_predicates(team_predicates, {"md": "md2"})
    return predicates


async def _games_together(
    analysis: QuestionAnalysis, ctx: HandlerContext, first: str, second: str
) -> Dict[str, Any]:
    params: Dict[str, Any] = {"player_name": first, "other_name": second}
    predicates = [
        "p.playerName = $player_name",
        "other.playerName = $other_name",
    ] + _shared_predicates(analysis, params)
    query = (
        f"{MATCH_PATTERN} {SECOND_PLAYER_PATTERN} {where_clause(predicates)} "
        f"RETURN count(DISTINCT f) AS gamesTogether"
    )
    rows = await ctx.run_query("relationship", query, params, numeric_keys=["gamesTogether"])
    games = int(rows[0]["gamesTogether"]) if rows else 0
    return {"players": [first, second], "games": games}


async def _top_teammates(
    analysis: QuestionAnalysis, ctx: HandlerContext, player: str
) -> List[Dict[str, Any]]:
    params: Dict[str, Any] = {"player_name": player, "limit": TEAMMATE_LIMIT}
    predicates = [
        "p.playerName = $player_name",
        "other <> p",
        "other.allowOnSite = true",
    ] + _shared_predicates(analysis, params)
    query = (
        f"{MATCH_PATTERN} {SECOND_PLAYER_PATTERN} {where_clause(predicates)} "
        f"RETURN other.playerName AS teammateName, count(DISTINCT f) AS gamesTogether "
        f"ORDER BY gamesTogether DESC, teammateName ASC "
        f"LIMIT $limit"
    )
    rows = await ctx.run_query("relationship", query, params, numeric_keys=["gamesTogether"])
    return [
        {"rank": index, "player": row.get("teammateName"), "games": int(row["gamesTogether"])}
        for index, row in enumerate(rows, start=1)
    ]


async def handle_relationship(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    players = analysis.players
    team = analysis.teams[0] if analysis.teams else None
    time_range = analysis.time_range.describe()

    if len(players) >= 2:
        pairs = [
            await _games_together(analysis, ctx, first, second)
            for first, second in combinations(players, 2)
        ]
        return QueryResult(
            type="relationship_games",
            data={"pairs": pairs, "team": team, "time_range": time_range},
        )

    teammates = await _top_teammates(analysis, ctx, players[0])
    return QueryResult(
        type="relationship_teammates",
        data={
            "player": players[0],
            "teammates": teammates,
            "team": team,
            "time_range": time_range,
        },
    )
