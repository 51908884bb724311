# clubstats_mcp/nlq/handlers/league.py
"""
League table handler.

Sub-intents, checked in order:
- best_defensive_record: fewest goals against in a season
- season_record: the season with the most/fewest goals for or against
- goal_difference: goal difference for a season (latest when unspecified)
- highest_finish / lowest_finish: best or worst position on record
- position: position for a season, or the current one

League tables hold every club in the division; only rows for this club
(`lt.team CONTAINS $club_name`) are considered.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from ..parser import QuestionAnalysis
from .base import HandlerContext, QueryResult

logger = logging.getLogger(__name__)

LEAGUE_COLUMNS = [
    "position",
    "played",
    "won",
    "drawn",
    "lost",
    "goalsFor",
    "goalsAgainst",
    "goalDifference",
    "points",
]

LEAGUE_INTENTS: List[Tuple[str, re.Pattern]] = [
    ("best_defensive_record", re.compile(r"\bdefensive record\b")),
    ("season_record", re.compile(r"\b(?:which|what) season\b")),
    ("goal_difference", re.compile(r"\bgoal difference\b")),
    (
        "highest_finish",
        re.compile(r"\b(?:highest|best|top)\b.*\b(?:finish|position|place)\b"),
    ),
    (
        "lowest_finish",
        re.compile(r"\b(?:lowest|worst|bottom)\b.*\b(?:finish|position|place)\b"),
    ),
]

ORDER_BY = {
    "best_defensive_record": "lt.goalsAgainst ASC, lt.season DESC",
    "goal_difference": "lt.season DESC",
    "highest_finish": "lt.position ASC, lt.season DESC",
    "lowest_finish": "lt.position DESC, lt.season DESC",
    "position": "lt.season DESC",
}


def league_intent(analysis: QuestionAnalysis) -> str:
    text = analysis.question.lower()
    for name, pattern in LEAGUE_INTENTS:
        if pattern.search(text):
            return name
    return "position"


def season_record_column(analysis: QuestionAnalysis) -> str:
    """League table column a "which season" question is about."""
    if "C" in analysis.metrics or "conced" in analysis.question.lower():
        return "goalsAgainst"
    if "G" in analysis.metrics:
        return "goalsFor"
    return "points"


def _build_query(
    intent: str, analysis: QuestionAnalysis, ctx: HandlerContext
) -> Tuple[str, Dict[str, Any], Optional[str]]:
    params: Dict[str, Any] = {"club_name": ctx.config.club_name}
    predicates = ["lt.team CONTAINS $club_name"]

    teams = analysis.teams
    if teams:
        params["team_name"] = teams[0]
        predicates.append("lt.teamName = $team_name")

    time_range = analysis.time_range
    if time_range.type == "season" and time_range.seasons:
        params["seasons"] = list(time_range.seasons)
        predicates.append("lt.season IN $seasons")

    column = None
    if intent == "season_record":
        column = season_record_column(analysis)
        direction = "ASC" if analysis.comparison_direction == "least" else "DESC"
        order_by = f"lt.{column} {direction}, lt.season DESC"
        predicates.append(f"lt.{column} IS NOT NULL")
    else:
        order_by = ORDER_BY[intent]
        if intent == "best_defensive_record":
            predicates.append("lt.goalsAgainst IS NOT NULL")

    returns = ", ".join(f"lt.{c} AS {c}" for c in LEAGUE_COLUMNS)
    query = (
        "MATCH (lt:LeagueTable {graphLabel: $graph_label}) "
        f"WHERE {' AND '.join(predicates)} "
        f"RETURN lt.teamName AS teamName, lt.season AS season, "
        f"lt.division AS division, {returns} "
        f"ORDER BY {order_by} "
        "LIMIT 1"
    )
    return query, params, column


async def handle_league(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    intent = league_intent(analysis)
    query, params, column = _build_query(intent, analysis, ctx)
    rows = await ctx.run_query("league", query, params, numeric_keys=LEAGUE_COLUMNS)

    team = analysis.teams[0] if analysis.teams else None
    data: Dict[str, Any] = {
        "intent": intent,
        "team": team,
        "found": bool(rows),
        "column": column,
        "direction": analysis.comparison_direction or "most",
        "current": "current" in analysis.question.lower()
        and analysis.time_range.is_all_time,
        "time_range": analysis.time_range.describe(),
    }
    if rows:
        row = rows[0]
        data["row"] = {
            "teamName": row.get("teamName") or team,
            "season": row.get("season"),
            "division": row.get("division") or "",
            **{c: int(row[c]) for c in LEAGUE_COLUMNS},
        }
    else:
        logger.info(f"No league table rows for intent={intent}, team={team}")

    return QueryResult(type="league_position", data=data)
