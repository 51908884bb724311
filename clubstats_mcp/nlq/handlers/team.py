# clubstats_mcp/nlq/handlers/team.py
"""
Team statistics handler.

Aggregates Fixture rows for each named team (games, goals scored and
conceded, wins/draws/losses, clean sheets). Only metrics in the team
vocabulary are accepted.
"""

import logging
from typing import Any, Dict, List

from ...api.errors import AmbiguousQuestionError, InvalidMetricError
from ..coercion import round_value
from ..filters import build_filter_spec, where_clause
from ..parser import CLARIFICATION_MESSAGES, QuestionAnalysis
from ..vocabulary import MetricDescriptor, get_metric
from .base import HandlerContext, QueryResult, match_predicates, metric_columns

logger = logging.getLogger(__name__)

FIXTURE_PATTERN = "MATCH (f:Fixture {graphLabel: $graph_label})"


def team_metrics(analysis: QuestionAnalysis) -> List[MetricDescriptor]:
    """Descriptors for the question's metrics, all of them team metrics."""
    if not analysis.metrics:
        raise AmbiguousQuestionError(
            CLARIFICATION_MESSAGES["missing_metric"], reason="missing_metric"
        )
    descriptors = []
    for code in analysis.metrics:
        descriptor = get_metric(code)
        if not descriptor.team_metric:
            raise InvalidMetricError(code, context="team")
        descriptors.append(descriptor)
    return descriptors


def fixture_filter_spec(analysis: QuestionAnalysis):
    """FilterSpec without team entities or position (fixtures have neither)."""
    spec = build_filter_spec(analysis, include_team_entities=False)
    spec.position = []
    return spec


async def handle_team_stats(analysis: QuestionAnalysis, ctx: HandlerContext) -> QueryResult:
    descriptors = team_metrics(analysis)
    codes = [d.code for d in descriptors]
    spec = fixture_filter_spec(analysis)

    teams = []
    for team in analysis.teams:
        params: Dict[str, Any] = {"team_name": team}
        predicates = ["f.team = $team_name"] + match_predicates(spec, params)
        query = (
            f"{FIXTURE_PATTERN} {where_clause(predicates)} "
            f"RETURN count(f) AS games, {metric_columns(codes, team=True)}"
        )
        rows = await ctx.run_query("team", query, params, numeric_keys=["games"] + codes)
        row = rows[0] if rows else {}
        teams.append(
            {
                "team": team,
                "games": int(row.get("games", 0)),
                "stats": {d.code: round_value(row.get(d.code, 0), d.decimals) for d in descriptors},
            }
        )

    return QueryResult(
        type="team_stat",
        data={
            "teams": teams,
            "metrics": codes,
            "time_range": analysis.time_range.describe(),
        },
    )
