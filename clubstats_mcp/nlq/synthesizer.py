# clubstats_mcp/nlq/synthesizer.py
"""
Response Synthesizer for the club statistics NLQ pipeline.

Turns successful handler results into answers with:
- Sentence templates per category, filled from a data-driven verb table
- Leaderboard tables rendered with tabulate
- Visualization payloads (stat_card, table, comparison)

Error results are formatted by suggestions.py instead.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from tabulate import tabulate

from ..utils.season_utils import format_ordinal
from .handlers import QueryResult
from .vocabulary import METRIC_CATALOG, MetricDescriptor, get_metric

logger = logging.getLogger(__name__)


# ============================================================================
# SYNTHESIS RESULT
# ============================================================================


@dataclass
class SynthesizedAnswer:
    """Formatted answer ready for a ChatbotResponse."""

    answer: str
    sources: List[str] = field(default_factory=list)
    visualization: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": self.sources,
            "visualization": self.visualization,
        }


# ============================================================================
# TEMPLATES
# ============================================================================

VERB_TABLE: Dict[str, str] = {code: m.verb for code, m in METRIC_CATALOG.items()}
TEAM_VERB_TABLE: Dict[str, str] = {
    code: m.verb_for(team=True) for code, m in METRIC_CATALOG.items() if m.team_metric
}

TEMPLATES: Dict[str, str] = {
    "basic": "{subject} has {verb} {value} {metric}{scope}.",
    "team_specific": "For the {team}, {subject} has {verb} {value} {metric}{scope}.",
    "zero": "{subject} {zero_phrase}{scope}.",
    "comparison": "{subject} has {verb} the {superlative} {metric}{scope} with {value}.",
    "ranking_single": "{subject} has {verb} the {superlative} {metric}{scope} with {value}.",
    "leaderboard": "Top {count} players by {metric}{scope}:",
    "leaderboard_empty": "I couldn't find any players with {metric}{scope}.",
    "team": "The {team} have {verb} {value} {metric}{scope}.",
    "club": "{club} have {verb} {value} {metric}{scope} across all teams.",
    "club_team_ranking": "The {team} have {verb} the {superlative} {metric}{scope}, with {value}.",
    "club_player_count": "{value} {players} played for {club}{scope}.",
    "relationship": "{first} and {second} have played {value} {games} together{scope}.",
    "teammates": "{subject} has played most often with {teammates}{scope}.",
    "teammates_empty": "I couldn't find any teammates for {subject}{scope}.",
    "league_highest_finish": (
        "The {team}'s highest league finish was {ordinal} in {season}{division}, "
        "with {points} points from {played} games."
    ),
    "league_lowest_finish": (
        "The {team}'s lowest league finish was {ordinal} in {season}{division}, "
        "with {points} points from {played} games."
    ),
    "league_goal_difference": "The {team} had a goal difference of {goal_difference} in {season}.",
    "league_best_defensive_record": (
        "The {team} had the best defensive record in {season}, "
        "conceding {goals_against} goals in {played} games."
    ),
    "league_season_record": "The {team} {record} in {season}, with {value}.",
    "league_position": (
        "The {team} finished {ordinal} in {season}{division}, "
        "with {points} points from {played} games."
    ),
    "league_current_position": (
        "The {team} are currently {ordinal} in {season}{division}, "
        "with {points} points from {played} games."
    ),
    "league_not_found": "I couldn't find any league table data for {subject}{scope}.",
    "player_season": "{subject} {verb} the {superlative} {metric}{scope} in {season}, with {value}.",
    "player_season_empty": "I couldn't find any seasons for {subject}{scope}.",
    "biggest_win": "{subject} biggest win{scope} was {score} against {opposition}{venue} on {date}.",
    "highest_scoring_game": (
        "{subject} highest-scoring game{scope} was a {score} {outcome} against "
        "{opposition}{venue} on {date}, with {total} goals."
    ),
    "fixture_not_found": "I couldn't find any {fixtures}{scope}.",
    "hat_tricks": "{subject} has scored {count} {hat_tricks}{scope}.",
    "hat_tricks_zero": "{subject} has not scored a hat-trick{scope}.",
    "hat_tricks_single": "{subject} has scored the most hat-tricks{scope}, with {count}.",
    "hat_tricks_leaderboard": "Top {count} players by hat-tricks{scope}:",
    "hat_tricks_empty": "I couldn't find any hat-tricks{scope}.",
    "streak": (
        "{subject} longest run of consecutive games {label}{scope} is {count} games, "
        "from {start} to {end}."
    ),
    "streak_one": "{subject} longest run of consecutive games {label}{scope} is 1 game, on {start}.",
    "streak_zero": "{player} has not had a game {label}{scope}.",
    "streak_current": "The current run is {count} {games}.",
    "awards": "{subject} has been {selected} {times}{scope}.",
    "awards_zero": "{subject} has not been {selected}{scope}.",
    "awards_single": "{subject} has been {selected} the most{scope}, {times}.",
    "awards_leaderboard": "Top {count} players by {selections}{scope}:",
    "awards_empty": "I couldn't find any {selections}{scope}.",
}

STREAK_LABELS = {
    "goals": "with a goal",
    "goal_involvement": "with a goal or assist",
    "clean_sheet": "with a clean sheet",
}

AWARD_PHRASES = {
    "weekly_totw": ("selected in the Team of the Week", "Team of the Week selections"),
    "season_totw": ("selected in the Team of the Season", "Team of the Season selections"),
    "player_of_the_month": ("named Player of the Month", "Player of the Month awards"),
}

FIXTURE_OUTCOMES = {"W": "win", "D": "draw", "L": "defeat"}

SEASON_RECORD_PHRASES = {
    ("goalsAgainst", "most"): ("conceded the most goals", "goals against"),
    ("goalsAgainst", "least"): ("conceded the fewest goals", "goals against"),
    ("goalsFor", "most"): ("scored the most goals", "goals"),
    ("goalsFor", "least"): ("scored the fewest goals", "goals"),
    ("points", "most"): ("earned the most points", "points"),
    ("points", "least"): ("earned the fewest points", "points"),
}

SOURCES = {
    "player_stat": ["Player match records"],
    "player_comparison": ["Player match records"],
    "ranking": ["Player match records"],
    "team_stat": ["Fixture results"],
    "club_totals": ["Fixture results"],
    "club_team_ranking": ["Fixture results"],
    "club_player_count": ["Player match records"],
    "league_position": ["League tables"],
    "relationship_games": ["Player match records", "Fixture results"],
    "relationship_teammates": ["Player match records", "Fixture results"],
    "player_season": ["Player match records"],
    "fixture_record": ["Fixture results"],
    "hat_tricks": ["Player match records"],
    "streak": ["Player match records", "Fixture results"],
    "awards": ["Team of the Week and awards"],
}


def render(template: str, **values: Any) -> str:
    """Fill a template, then collapse whitespace left by empty slots."""
    text = TEMPLATES[template].format(**values)
    text = re.sub(r"\s+", " ", text).strip()
    return re.sub(r"\s+([.,:!?])", r"\1", text)


def format_value(value: float, decimals: int = 0) -> str:
    """
    Integers without decimals, averages with the metric's precision.

    Examples:
        >>> format_value(42)
        '42'
        >>> format_value(0.5, 2)
        '0.50'
    """
    if decimals <= 0:
        return str(int(round(value)))
    return f"{float(value):.{decimals}f}"


def scope_phrase(time_range: str = "", team: Optional[str] = None) -> str:
    parts = []
    if team:
        parts.append(f"for the {team}")
    if time_range:
        parts.append(time_range)
    return (" " + " ".join(parts)) if parts else ""


def superlative(direction: str) -> str:
    return "fewest" if direction == "least" else "most"


def _title(descriptor: MetricDescriptor, team: bool = False) -> str:
    name = descriptor.display_name(2, team=team)
    return name[:1].upper() + name[1:]


def _join_names(items: List[str]) -> str:
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + " and " + items[-1]


def possessive(name: str) -> str:
    """
    Examples:
        >>> possessive("Luke Bangs")
        "Luke Bangs'"
        >>> possessive("The 2nd XI")
        "The 2nd XI's"
    """
    return f"{name}'" if name.endswith("s") else f"{name}'s"


def times_phrase(count: int) -> str:
    return {1: "once", 2: "twice"}.get(count, f"{count} times")


def format_count_table(entries: List[Dict[str, Any]], heading: str) -> str:
    """Pipe table of ranked players with a single count column."""
    rows = [[entry["rank"], entry["player"], entry["count"]] for entry in entries]
    return tabulate(rows, headers=["Rank", "Player", heading], tablefmt="pipe")


# ============================================================================
# CATEGORY SYNTHESIZERS
# ============================================================================


def synthesize_player_stat(data: Dict[str, Any]) -> SynthesizedAnswer:
    subject = data["player"]
    team = data.get("team")
    scope = scope_phrase(data.get("time_range", ""))
    sentences = []
    for code in data["metrics"]:
        descriptor = get_metric(code)
        value = data["stats"][code]
        if value == 0 and descriptor.zero_phrase:
            sentences.append(
                render(
                    "zero",
                    subject=subject,
                    zero_phrase=descriptor.zero_phrase,
                    scope=scope_phrase(data.get("time_range", ""), team),
                )
            )
            continue
        sentences.append(
            render(
                "team_specific" if team else "basic",
                subject=subject,
                team=team,
                verb=VERB_TABLE.get(code, ""),
                value=format_value(value, descriptor.decimals),
                metric=descriptor.display_name(value),
                scope=scope,
            )
        )

    visualization = {
        "type": "stat_card",
        "title": subject,
        "data": [
            {"metric": _title(get_metric(code)), "value": data["stats"][code]}
            for code in data["metrics"]
        ]
        + [{"metric": "Appearances", "value": data.get("appearances", 0)}],
    }
    return SynthesizedAnswer(answer=" ".join(sentences), visualization=visualization)


def synthesize_player_comparison(data: Dict[str, Any]) -> SynthesizedAnswer:
    scope = scope_phrase(data.get("time_range", ""), data.get("team"))
    sentences = []
    for code in data["metrics"]:
        descriptor = get_metric(code)
        leader = data["leaders"][code]
        others = ", ".join(
            f"{entry['player']}: {format_value(entry['stats'][code], descriptor.decimals)}"
            for entry in data["players"]
            if entry["player"] != leader["player"]
        )
        sentence = render(
            "comparison",
            subject=leader["player"],
            verb=VERB_TABLE.get(code, ""),
            superlative=superlative(data["direction"]),
            metric=descriptor.display_name(2),
            value=format_value(leader["value"], descriptor.decimals),
            scope=scope,
        )
        sentences.append(f"{sentence[:-1]} ({others})." if others else sentence)

    visualization = {
        "type": "comparison",
        "title": " vs ".join(entry["player"] for entry in data["players"]),
        "data": [
            {
                "player": entry["player"],
                **{_title(get_metric(code)): entry["stats"][code] for code in data["metrics"]},
            }
            for entry in data["players"]
        ],
    }
    return SynthesizedAnswer(answer=" ".join(sentences), visualization=visualization)


def format_leaderboard_table(entries: List[Dict[str, Any]], descriptor: MetricDescriptor) -> str:
    """
    Format a player leaderboard as a pipe table.

    Args:
        entries: Ranked entries with player, value and appearances
        descriptor: Metric being ranked

    Returns:
        Formatted table as string
    """
    headers = ["Rank", "Player", _title(descriptor), "Apps"]
    rows = [
        [
            entry["rank"],
            entry["player"],
            format_value(entry["value"], descriptor.decimals),
            entry["appearances"],
        ]
        for entry in entries
    ]
    return tabulate(rows, headers=headers, tablefmt="pipe")


def synthesize_ranking(data: Dict[str, Any]) -> SynthesizedAnswer:
    descriptor = get_metric(data["metric"])
    entries = data["entries"]
    scope = scope_phrase(data.get("time_range", ""), data.get("team"))

    if not entries:
        return SynthesizedAnswer(
            answer=render("leaderboard_empty", metric=descriptor.display_name(2), scope=scope)
        )

    table_data = [
        {"rank": e["rank"], "player": e["player"], "value": e["value"], "appearances": e["appearances"]}
        for e in entries
    ]

    if not data["leaderboard"]:
        top = entries[0]
        answer = render(
            "ranking_single",
            subject=top["player"],
            verb=VERB_TABLE.get(descriptor.code, ""),
            superlative=superlative(data["direction"]),
            metric=descriptor.display_name(2),
            value=format_value(top["value"], descriptor.decimals),
            scope=scope,
        )
        return SynthesizedAnswer(
            answer=answer,
            visualization={"type": "stat_card", "title": top["player"], "data": table_data},
        )

    heading = render(
        "leaderboard", count=len(entries), metric=descriptor.display_name(2), scope=scope
    )
    answer = f"{heading}\n\n{format_leaderboard_table(entries, descriptor)}"
    return SynthesizedAnswer(
        answer=answer,
        visualization={"type": "table", "title": _title(descriptor), "data": table_data},
    )


def synthesize_team_stat(data: Dict[str, Any]) -> SynthesizedAnswer:
    scope = scope_phrase(data.get("time_range", ""))
    sentences = []
    cards = []
    for entry in data["teams"]:
        for code in data["metrics"]:
            descriptor = get_metric(code)
            value = entry["stats"][code]
            sentences.append(
                render(
                    "team",
                    team=entry["team"],
                    verb=TEAM_VERB_TABLE.get(code, ""),
                    value=format_value(value, descriptor.decimals),
                    metric=descriptor.display_name(value, team=True),
                    scope=scope,
                )
            )
            cards.append(
                {"team": entry["team"], "metric": _title(descriptor, team=True), "value": value}
            )
    visualization = {
        "type": "stat_card",
        "title": ", ".join(entry["team"] for entry in data["teams"]),
        "data": cards,
    }
    return SynthesizedAnswer(answer=" ".join(sentences), visualization=visualization)


def synthesize_club_totals(data: Dict[str, Any]) -> SynthesizedAnswer:
    scope = scope_phrase(data.get("time_range", ""))
    sentences = []
    for code in data["metrics"]:
        descriptor = get_metric(code)
        value = data["stats"][code]
        sentences.append(
            render(
                "club",
                club=data["club"],
                verb=TEAM_VERB_TABLE.get(code, ""),
                value=format_value(value, descriptor.decimals),
                metric=descriptor.display_name(value, team=True),
                scope=scope,
            )
        )
    visualization = {
        "type": "stat_card",
        "title": data["club"],
        "data": [
            {"metric": _title(get_metric(code), team=True), "value": data["stats"][code]}
            for code in data["metrics"]
        ],
    }
    return SynthesizedAnswer(answer=" ".join(sentences), visualization=visualization)


def synthesize_club_team_ranking(data: Dict[str, Any]) -> SynthesizedAnswer:
    descriptor = get_metric(data["metric"])
    scope = scope_phrase(data.get("time_range", ""))
    entries = data["entries"]
    if not entries:
        return SynthesizedAnswer(answer=f"I couldn't find any fixtures{scope}.")

    top = entries[0]
    answer = render(
        "club_team_ranking",
        team=top["team"],
        verb=TEAM_VERB_TABLE.get(descriptor.code, ""),
        superlative=superlative(data["direction"]),
        metric=descriptor.display_name(2, team=True),
        value=format_value(top["value"], descriptor.decimals),
        scope=scope,
    )
    visualization = {
        "type": "table",
        "title": _title(descriptor, team=True),
        "data": [{"rank": e["rank"], "team": e["team"], "value": e["value"]} for e in entries],
    }
    return SynthesizedAnswer(answer=answer, visualization=visualization)


def synthesize_club_player_count(data: Dict[str, Any]) -> SynthesizedAnswer:
    count = data["player_count"]
    answer = render(
        "club_player_count",
        value=count,
        players="player has" if count == 1 else "players have",
        club=data["club"],
        scope=scope_phrase(data.get("time_range", "")),
    )
    return SynthesizedAnswer(
        answer=answer,
        visualization={
            "type": "stat_card",
            "title": data["club"],
            "data": [{"metric": "Players", "value": count}],
        },
    )


def synthesize_league(data: Dict[str, Any]) -> SynthesizedAnswer:
    if not data.get("found"):
        subject = f"the {data['team']}" if data.get("team") else "the club"
        return SynthesizedAnswer(
            answer=render(
                "league_not_found", subject=subject, scope=scope_phrase(data.get("time_range", ""))
            )
        )

    row = data["row"]
    intent = data["intent"]
    values = {
        "team": row["teamName"],
        "season": row["season"],
        "division": f" ({row['division']})" if row.get("division") else "",
        "ordinal": format_ordinal(row["position"]),
        "points": row["points"],
        "played": row["played"],
        "goals_against": row["goalsAgainst"],
        "goal_difference": f"{row['goalDifference']:+d}" if row["goalDifference"] else "0",
    }

    if intent == "season_record":
        record, unit = SEASON_RECORD_PHRASES[(data["column"], data["direction"])]
        answer = render(
            "league_season_record",
            team=values["team"],
            record=record,
            season=values["season"],
            value=f"{row[data['column']]} {unit}",
        )
    elif intent == "position":
        template = "league_current_position" if data.get("current") else "league_position"
        answer = render(template, **values)
    else:
        answer = render(f"league_{intent}", **values)

    visualization = {
        "type": "stat_card",
        "title": f"{row['teamName']} {row['season']}",
        "data": [
            {"metric": "Position", "value": row["position"]},
            {"metric": "Points", "value": row["points"]},
            {"metric": "Goal Difference", "value": row["goalDifference"]},
        ],
    }
    return SynthesizedAnswer(answer=answer, visualization=visualization)


def synthesize_relationship_games(data: Dict[str, Any]) -> SynthesizedAnswer:
    scope = scope_phrase(data.get("time_range", ""), data.get("team"))
    sentences = [
        render(
            "relationship",
            first=pair["players"][0],
            second=pair["players"][1],
            value=pair["games"],
            games="game" if pair["games"] == 1 else "games",
            scope=scope,
        )
        for pair in data["pairs"]
    ]
    visualization = {
        "type": "stat_card",
        "title": "Games together",
        "data": [
            {"players": " & ".join(pair["players"]), "value": pair["games"]}
            for pair in data["pairs"]
        ],
    }
    return SynthesizedAnswer(answer=" ".join(sentences), visualization=visualization)


def synthesize_relationship_teammates(data: Dict[str, Any]) -> SynthesizedAnswer:
    scope = scope_phrase(data.get("time_range", ""), data.get("team"))
    teammates = data["teammates"]
    if not teammates:
        return SynthesizedAnswer(
            answer=render("teammates_empty", subject=data["player"], scope=scope)
        )
    listing = _join_names(
        [
            f"{t['player']} ({t['games']} {'game' if t['games'] == 1 else 'games'})"
            for t in teammates
        ]
    )
    answer = render("teammates", subject=data["player"], teammates=listing, scope=scope)
    return SynthesizedAnswer(
        answer=answer,
        visualization={"type": "table", "title": f"{data['player']}'s teammates", "data": teammates},
    )


def synthesize_player_season(data: Dict[str, Any]) -> SynthesizedAnswer:
    descriptor = get_metric(data["metric"])
    scope = scope_phrase(data.get("time_range", ""), data.get("team"))
    seasons = data["seasons"]
    if not seasons:
        return SynthesizedAnswer(
            answer=render("player_season_empty", subject=data["player"], scope=scope)
        )

    best = seasons[0]
    answer = render(
        "player_season",
        subject=data["player"],
        verb=VERB_TABLE.get(descriptor.code, ""),
        superlative=superlative(data["direction"]),
        metric=descriptor.display_name(2),
        scope=scope,
        season=best["season"],
        value=format_value(best["value"], descriptor.decimals),
    )
    visualization = {
        "type": "table",
        "title": f"{possessive(data['player'])} {descriptor.display_name(2)} by season",
        "data": seasons,
    }
    return SynthesizedAnswer(answer=answer, visualization=visualization)


def synthesize_fixture_record(data: Dict[str, Any]) -> SynthesizedAnswer:
    intent = data["intent"]
    scope = scope_phrase(data.get("time_range", ""))
    fixture = data.get("fixture")
    if fixture is None:
        fixtures = "wins" if intent == "biggest_win" else "fixtures"
        return SynthesizedAnswer(
            answer=render(
                "fixture_not_found",
                fixtures=fixtures,
                scope=scope_phrase(data.get("time_range", ""), data.get("team")),
            )
        )

    subject = possessive(f"The {data['team']}" if data.get("team") else data["club"])
    venue = {"Home": " at home", "Away": " away"}.get(fixture.get("home_or_away") or "", "")
    score = f"{fixture['goals_for']}-{fixture['goals_against']}"
    values = dict(
        subject=subject,
        scope=scope,
        score=score,
        opposition=fixture.get("opposition") or "unknown opposition",
        venue=venue,
        date=fixture.get("date"),
    )
    if intent == "biggest_win":
        answer = render("biggest_win", **values)
    else:
        answer = render(
            "highest_scoring_game",
            outcome=FIXTURE_OUTCOMES.get(fixture.get("result") or "", "game"),
            total=fixture.get("totalGoals", fixture["goals_for"] + fixture["goals_against"]),
            **values,
        )
    return SynthesizedAnswer(
        answer=answer,
        visualization={"type": "stat_card", "title": score, "data": [fixture]},
    )


def synthesize_hat_tricks(data: Dict[str, Any]) -> SynthesizedAnswer:
    scope = scope_phrase(data.get("time_range", ""), data.get("team"))
    entries = data["players"]

    if data["ranked"]:
        if not entries:
            return SynthesizedAnswer(answer=render("hat_tricks_empty", scope=scope))
        if not data["leaderboard"]:
            top = entries[0]
            answer = render(
                "hat_tricks_single", subject=top["player"], count=top["count"], scope=scope
            )
            return SynthesizedAnswer(
                answer=answer,
                visualization={"type": "stat_card", "title": top["player"], "data": entries},
            )
        heading = render("hat_tricks_leaderboard", count=len(entries), scope=scope)
        return SynthesizedAnswer(
            answer=f"{heading}\n\n{format_count_table(entries, 'Hat-tricks')}",
            visualization={"type": "table", "title": "Hat-tricks", "data": entries},
        )

    sentences = []
    for entry in entries:
        if entry["count"] == 0:
            sentences.append(render("hat_tricks_zero", subject=entry["player"], scope=scope))
            continue
        sentences.append(
            render(
                "hat_tricks",
                subject=entry["player"],
                count=entry["count"],
                hat_tricks="hat-trick" if entry["count"] == 1 else "hat-tricks",
                scope=scope,
            )
        )
    return SynthesizedAnswer(
        answer=" ".join(sentences),
        visualization={"type": "stat_card", "title": "Hat-tricks", "data": entries},
    )


def synthesize_streak(data: Dict[str, Any]) -> SynthesizedAnswer:
    scope = scope_phrase(data.get("time_range", ""), data.get("team"))
    label = STREAK_LABELS[data["kind"]]
    count = data["count"]

    if count == 0:
        return SynthesizedAnswer(
            answer=render("streak_zero", player=data["player"], label=label, scope=scope)
        )

    values = dict(
        subject=possessive(data["player"]),
        label=label,
        scope=scope,
        count=count,
        start=data["start"],
        end=data["end"],
    )
    sentences = [render("streak_one" if count == 1 else "streak", **values)]
    if data.get("current"):
        sentences.append(
            render(
                "streak_current",
                count=data["current"],
                games="game" if data["current"] == 1 else "games",
            )
        )
    visualization = {
        "type": "stat_card",
        "title": data["player"],
        "data": [
            {"metric": "Longest run", "value": count},
            {"metric": "Current run", "value": data.get("current", 0)},
            {"metric": "Games", "value": data.get("games", 0)},
        ],
    }
    return SynthesizedAnswer(answer=" ".join(sentences), visualization=visualization)


def synthesize_awards(data: Dict[str, Any]) -> SynthesizedAnswer:
    scope = scope_phrase(data.get("time_range", ""))
    selected, selections = AWARD_PHRASES[data["award"]]
    entries = data["players"]

    if data["ranked"]:
        if not entries:
            return SynthesizedAnswer(
                answer=render("awards_empty", selections=selections, scope=scope)
            )
        if not data["leaderboard"]:
            top = entries[0]
            answer = render(
                "awards_single",
                subject=top["player"],
                selected=selected,
                times=times_phrase(top["count"]),
                scope=scope,
            )
            return SynthesizedAnswer(
                answer=answer,
                visualization={"type": "stat_card", "title": top["player"], "data": entries},
            )
        heading = render(
            "awards_leaderboard", count=len(entries), selections=selections, scope=scope
        )
        return SynthesizedAnswer(
            answer=f"{heading}\n\n{format_count_table(entries, 'Selections')}",
            visualization={"type": "table", "title": selections, "data": entries},
        )

    sentences = []
    for entry in entries:
        if entry["count"] == 0:
            sentences.append(
                render("awards_zero", subject=entry["player"], selected=selected, scope=scope)
            )
            continue
        sentences.append(
            render(
                "awards",
                subject=entry["player"],
                selected=selected,
                times=times_phrase(entry["count"]),
                scope=scope,
            )
        )
    return SynthesizedAnswer(
        answer=" ".join(sentences),
        visualization={"type": "stat_card", "title": selections, "data": entries},
    )


SYNTHESIZERS: Dict[str, Callable[[Dict[str, Any]], SynthesizedAnswer]] = {
    "player_stat": synthesize_player_stat,
    "player_comparison": synthesize_player_comparison,
    "ranking": synthesize_ranking,
    "team_stat": synthesize_team_stat,
    "club_totals": synthesize_club_totals,
    "club_team_ranking": synthesize_club_team_ranking,
    "club_player_count": synthesize_club_player_count,
    "league_position": synthesize_league,
    "relationship_games": synthesize_relationship_games,
    "relationship_teammates": synthesize_relationship_teammates,
    "player_season": synthesize_player_season,
    "fixture_record": synthesize_fixture_record,
    "hat_tricks": synthesize_hat_tricks,
    "streak": synthesize_streak,
    "awards": synthesize_awards,
}


# ============================================================================
# MAIN SYNTHESIS
# ============================================================================


def synthesize_response(result: QueryResult) -> SynthesizedAnswer:
    """
    Format a successful handler result.

    Args:
        result: QueryResult without an error

    Returns:
        SynthesizedAnswer with answer text, sources and visualization

    Raises:
        KeyError: If the result type has no synthesizer
    """
    logger.debug(f"Synthesizing response for result type: {result.type}")
    if result.type == "ambiguous":
        return SynthesizedAnswer(answer=result.data["message"])

    synthesized = SYNTHESIZERS[result.type](result.data)
    synthesized.sources = list(SOURCES.get(result.type, []))
    return synthesized
