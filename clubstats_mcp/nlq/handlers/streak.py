# clubstats_mcp/nlq/handlers/streak.py
"""
Streak handler ("How many games in a row has Luke Bangs scored?").

Fetches every game the player took the field in, oldest first, and finds
the longest run of consecutive games meeting the streak condition. The run
still open at the most recent game is reported as the current streak.
"""

import logging
from typing import Any, Callable, Dict, List

from ..filters import build_filter_spec, where_clause
from ..parser import QuestionAnalysis
from .base import MATCH_PATTERN, HandlerContext, QueryResult, match_predicates

logger = logging.getLogger(__name__)

StreakCondition = Callable[[Dict[str, Any]], bool]

STREAK_CONDITIONS: Dict[str, StreakCondition] = {
    "goals": lambda row: row["goals"] > 0,
    "goal_involvement": lambda row: row["goals"] + row["assists"] > 0,
    "clean_sheet": lambda row: bool(row.get("cleanSheet")),
}


def longest_streak(rows: List[Dict[str, Any]], condition: StreakCondition) -> Dict[str, Any]:
    """
    Longest run of consecutive rows meeting `condition`.

    Args:
        rows: Games in date order
        condition: Predicate over one game

    Returns:
        count, start and end dates of the longest run (earliest on ties),
        and the length of the run still open at the last game

    Examples:
        >>> games = [{"date": d, "goals": g} for d, g in
        ...          [("2019-09-07", 1), ("2019-09-14", 2), ("2019-09-21", 0), ("2019-09-28", 1)]]
        >>> longest_streak(games, lambda row: row["goals"] > 0)
        {'count': 2, 'start': '2019-09-07', 'end': '2019-09-14', 'current': 1}
    """
    best = {"count": 0, "start": None, "end": None}
    run = 0
    run_start = None
    for row in rows:
        if condition(row):
            if run == 0:
                run_start = row.get("date")
            run += 1
            if run > best["count"]:
                best = {"count": run, "start": run_start, "end": row.get("date")}
        else:
            run = 0
    return {**best, "current": run}


async def handle_streak(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    kind = analysis.modifiers.get("streak", "goal_involvement")
    player = analysis.players[0]

    spec = build_filter_spec(analysis)
    params: Dict[str, Any] = {"player_name": player}
    predicates = [
        "p.playerName = $player_name",
        "coalesce(md.minutes, 0) > 0",
    ] + match_predicates(spec, params)
    query = (
        f"{MATCH_PATTERN} {where_clause(predicates)} "
        f"RETURN f.date AS date, f.opposition AS opposition, f.team AS team, "
        f"coalesce(md.goals, 0) + coalesce(md.penaltiesScored, 0) AS goals, "
        f"coalesce(md.assists, 0) AS assists, "
        f"coalesce(f.conceded = 0, false) AS cleanSheet "
        f"ORDER BY date ASC"
    )

    rows = await ctx.run_query("streak", query, params, numeric_keys=["goals", "assists"])
    streak = longest_streak(rows, STREAK_CONDITIONS[kind])
    logger.debug(f"{player} {kind} streak: {streak['count']} over {len(rows)} game(s)")

    return QueryResult(
        type="streak",
        data={
            "player": player,
            "kind": kind,
            "games": len(rows),
            "team": spec.teams[0] if spec.teams else None,
            "time_range": analysis.time_range.describe(),
            **streak,
        },
    )
