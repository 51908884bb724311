# clubstats_mcp/nlq/handlers/fixture.py
"""
Fixture records handler.

Three intents, picked by the analyzer into modifiers["fixture_intent"]:
1. biggest_win: the won fixture with the widest margin
2. highest_scoring_game: the fixture with the most goals from both sides
3. hat_tricks: match details with three or more goals (penalties count),
   counted per named player or ranked across the club

Team, season, opposition and home/away filters from the question apply to
all three.
"""

import logging
from typing import Any, Dict

from ..filters import build_filter_spec, where_clause
from ..parser import QuestionAnalysis
from .base import MATCH_PATTERN, HandlerContext, QueryResult, match_predicates
from .ranking import ranking_limit
from .team import FIXTURE_PATTERN

logger = logging.getLogger(__name__)

FIXTURE_COLUMNS = (
    "f.date AS date, f.season AS season, f.team AS team, "
    "f.opposition AS opposition, f.homeOrAway AS homeOrAway, f.result AS result, "
    "f.dorkiniansGoals AS goalsFor, f.conceded AS goalsAgainst"
)

HAT_TRICK_PREDICATE = "coalesce(md.goals, 0) + coalesce(md.penaltiesScored, 0) >= 3"


def _fixture_spec(analysis: QuestionAnalysis):
    spec = build_filter_spec(analysis)
    spec.position = []
    return spec


def _fixture_data(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "date": row.get("date"),
        "season": row.get("season"),
        "team": row.get("team"),
        "opposition": row.get("opposition"),
        "home_or_away": row.get("homeOrAway"),
        "result": row.get("result"),
        "goals_for": int(row.get("goalsFor", 0)),
        "goals_against": int(row.get("goalsAgainst", 0)),
    }


async def _fixture_record(
    analysis: QuestionAnalysis, ctx: HandlerContext, intent: str
) -> QueryResult:
    spec = _fixture_spec(analysis)
    params: Dict[str, Any] = {}
    predicates = match_predicates(spec, params)

    if intent == "biggest_win":
        predicates += [
            "f.result = 'W'",
            "f.dorkiniansGoals IS NOT NULL",
            "f.conceded IS NOT NULL",
        ]
        ranking = (
            "WITH f, f.dorkiniansGoals - f.conceded AS margin "
            f"RETURN {FIXTURE_COLUMNS}, margin "
            "ORDER BY margin DESC, goalsFor DESC, date DESC"
        )
        value_key = "margin"
    else:
        ranking = (
            "WITH f, coalesce(f.dorkiniansGoals, 0) + coalesce(f.conceded, 0) AS totalGoals "
            f"RETURN {FIXTURE_COLUMNS}, totalGoals "
            "ORDER BY totalGoals DESC, date DESC"
        )
        value_key = "totalGoals"

    query = f"{FIXTURE_PATTERN} {where_clause(predicates)} {ranking} LIMIT 1"
    rows = await ctx.run_query(
        "fixture", query, params, numeric_keys=["goalsFor", "goalsAgainst", value_key]
    )

    fixture = None
    if rows:
        fixture = _fixture_data(rows[0])
        fixture[value_key] = int(rows[0].get(value_key, 0))

    return QueryResult(
        type="fixture_record",
        data={
            "intent": intent,
            "club": ctx.config.club_name,
            "team": spec.teams[0] if spec.teams else None,
            "fixture": fixture,
            "time_range": analysis.time_range.describe(),
        },
    )


async def _hat_tricks(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    spec = build_filter_spec(analysis)
    players = analysis.players
    params: Dict[str, Any] = {}
    predicates = [HAT_TRICK_PREDICATE]

    if players:
        params["player_names"] = list(players)
        predicates.append("p.playerName IN $player_names")
        limit = None
    else:
        limit = ranking_limit(analysis, ctx.config.default_top_n, ctx.config.max_top_n)
        params["limit"] = limit
        predicates.append("p.allowOnSite = true")
    predicates += match_predicates(spec, params)

    query = (
        f"{MATCH_PATTERN} {where_clause(predicates)} "
        f"WITH p, count(md) AS hatTricks "
        f"RETURN p.playerName AS playerName, hatTricks "
        f"ORDER BY hatTricks DESC, playerName ASC"
    )
    if limit is not None:
        query += " LIMIT $limit"

    rows = await ctx.run_query("fixture", query, params, numeric_keys=["hatTricks"])
    counts = {row.get("playerName"): int(row.get("hatTricks", 0)) for row in rows}

    if players:
        entries = [{"player": name, "count": counts.get(name, 0)} for name in players]
    else:
        entries = [
            {"rank": index, "player": row.get("playerName"), "count": int(row.get("hatTricks", 0))}
            for index, row in enumerate(rows, start=1)
        ]

    return QueryResult(
        type="hat_tricks",
        data={
            "players": entries,
            "ranked": not players,
            "leaderboard": bool(analysis.modifiers.get("leaderboard")),
            "team": spec.teams[0] if spec.teams else None,
            "time_range": analysis.time_range.describe(),
        },
    )


async def handle_fixture(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    intent = analysis.modifiers.get("fixture_intent", "biggest_win")
    logger.debug(f"Fixture intent: {intent}")
    if intent == "hat_tricks":
        return await _hat_tricks(analysis, ctx)
    return await _fixture_record(analysis, ctx, intent)
