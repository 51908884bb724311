# clubstats_mcp/nlq/dispatcher.py
"""
Query dispatcher.

Routes a QuestionAnalysis to exactly one handler through an ordered rule
table. Predicates are pure functions of the analysis and the first match
wins. Every failure is turned into QueryResult(type="error") here, so
nothing raised by a handler escapes to the caller (task cancellation
excepted).
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from ..api.errors import AmbiguousQuestionError, ClubStatsError, InternalError
from .handlers import (
    HandlerContext,
    QueryResult,
    handle_awards,
    handle_club_stats,
    handle_fixture,
    handle_league,
    handle_player_comparison,
    handle_player_ranking,
    handle_player_season,
    handle_player_stats,
    handle_relationship,
    handle_streak,
    handle_team_stats,
)
from .parser import CLARIFICATION_MESSAGES, QuestionAnalysis

logger = logging.getLogger(__name__)

Handler = Callable[[QuestionAnalysis, HandlerContext], Awaitable[QueryResult]]


# ============================================================================
# AMBIGUITY
# ============================================================================


async def handle_ambiguous(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    """Clarification request for questions the analyzer could not pin down."""
    reason = analysis.ambiguity_reason or "missing_both"
    message = analysis.clarification_message or CLARIFICATION_MESSAGES[reason]
    return QueryResult(type="ambiguous", data={"reason": reason, "message": message})


async def handle_fallback(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    raise AmbiguousQuestionError(CLARIFICATION_MESSAGES["missing_both"], reason="missing_both")


# ============================================================================
# RULE TABLE
# ============================================================================


@dataclass(frozen=True)
class DispatchRule:
    name: str
    predicate: Callable[[QuestionAnalysis], bool]
    handler: Handler


DISPATCH_RULES: List[DispatchRule] = [
    DispatchRule("ambiguous", lambda a: a.type == "ambiguous", handle_ambiguous),
    DispatchRule("relationship", lambda a: a.type == "relationship", handle_relationship),
    DispatchRule("fixture", lambda a: a.type == "fixture", handle_fixture),
    DispatchRule("streak", lambda a: a.type == "streak" and bool(a.players), handle_streak),
    DispatchRule("awards", lambda a: a.type == "awards", handle_awards),
    DispatchRule("league", lambda a: a.type == "league", handle_league),
    DispatchRule("club", lambda a: a.type == "club", handle_club_stats),
    DispatchRule("team", lambda a: a.type == "team", handle_team_stats),
    DispatchRule(
        "player_comparison",
        lambda a: a.type == "player" and len(a.players) >= 2 and bool(a.metrics),
        handle_player_comparison,
    ),
    DispatchRule(
        "player_ranking",
        lambda a: a.type == "player" and not a.players and a.comparison_direction is not None,
        handle_player_ranking,
    ),
    DispatchRule(
        "player_season",
        lambda a: a.type == "player"
        and len(a.players) == 1
        and bool(a.metrics)
        and bool(a.modifiers.get("best_season")),
        handle_player_season,
    ),
    DispatchRule(
        "player_stat",
        lambda a: a.type == "player" and len(a.players) == 1,
        handle_player_stats,
    ),
    DispatchRule("fallback", lambda a: True, handle_fallback),
]


def select_rule(analysis: QuestionAnalysis, rules: Optional[List[DispatchRule]] = None) -> DispatchRule:
    """First rule whose predicate accepts the analysis."""
    for rule in rules or DISPATCH_RULES:
        if rule.predicate(analysis):
            return rule
    raise InternalError("No dispatch rule matched")


# ============================================================================
# DISPATCH
# ============================================================================


async def dispatch(
    analysis: QuestionAnalysis,
    ctx: HandlerContext,
    rules: Optional[List[DispatchRule]] = None,
) -> QueryResult:
    """
    Run the handler selected for an analysis.

    Args:
        analysis: Merged, classified question analysis
        ctx: Handler dependencies
        rules: Optional replacement rule table

    Returns:
        The handler's QueryResult, or an error result carrying the failure
        kind (entity_not_found, invalid_metric, query_failed,
        ambiguous_query, internal)
    """
    rule = select_rule(analysis, rules)
    logger.info(f"Dispatching {analysis.type} question to '{rule.name}'")
    start = len(ctx.executed)

    try:
        result = await rule.handler(analysis, ctx)
    except ClubStatsError as e:
        logger.warning(f"Handler '{rule.name}' failed ({e.kind}): {e.message}")
        result = QueryResult.failure(e)
    except Exception as e:
        logger.exception(f"Handler '{rule.name}' raised an unexpected error")
        result = QueryResult.failure(InternalError(f"{type(e).__name__}: {e}"))

    result.queries = ctx.executed[start:]
    return result
