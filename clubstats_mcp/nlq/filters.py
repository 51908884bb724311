# clubstats_mcp/nlq/filters.py
"""
FilterSpec compiler.

Turns a FilterSpec into alias-agnostic Cypher predicate fragments plus named
parameter bindings. Fragments reference the Fixture as `f.` and the
MatchDetail as `md.`; handlers that repeat the same filters against a second
or third aliased match clause retarget the fragments textually with
retarget_predicates() and reuse the same bindings.

Fragment order is fixed: time range, teams, location, opposition,
competition, result, position.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from ..api.errors import InvalidFilterError

logger = logging.getLogger(__name__)

TimeRangeType = Literal["all_time", "season", "before_date", "after_date", "between"]

RESULT_CODES = {"Win": "W", "Draw": "D", "Loss": "L"}

EXCLUDED_FIXTURE_STATUSES = ["Void", "Postponed", "Abandoned"]


# ============================================================================
# DATA CLASSES
# ============================================================================


@dataclass
class TimeRange:
    """Tagged time range: all_time | season | before_date | after_date | between."""

    type: str = "all_time"
    seasons: List[str] = field(default_factory=list)
    before_date: Optional[str] = None
    after_date: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @classmethod
    def all_time(cls) -> "TimeRange":
        return cls()

    @classmethod
    def for_seasons(cls, seasons: List[str]) -> "TimeRange":
        return cls(type="season", seasons=list(seasons))

    @classmethod
    def before(cls, day: str) -> "TimeRange":
        return cls(type="before_date", before_date=day)

    @classmethod
    def after(cls, day: str) -> "TimeRange":
        return cls(type="after_date", after_date=day)

    @classmethod
    def between(cls, start: str, end: str) -> "TimeRange":
        return cls(type="between", start_date=start, end_date=end)

    @property
    def is_all_time(self) -> bool:
        return self.type == "all_time"

    def describe(self) -> str:
        """Human phrase for answers ("in 2019/20", "before 2020-01-01")."""
        if self.type == "season" and self.seasons:
            return "in " + " and ".join(self.seasons)
        if self.type == "before_date" and self.before_date:
            return f"before {self.before_date}"
        if self.type == "after_date" and self.after_date:
            return f"after {self.after_date}"
        if self.type == "between" and self.start_date and self.end_date:
            return f"between {self.start_date} and {self.end_date}"
        return ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "seasons": self.seasons,
            "before_date": self.before_date,
            "after_date": self.after_date,
            "start_date": self.start_date,
            "end_date": self.end_date,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TimeRange":
        if not data:
            return cls()
        return cls(
            type=data.get("type", "all_time"),
            seasons=list(data.get("seasons") or []),
            before_date=data.get("before_date"),
            after_date=data.get("after_date"),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
        )


@dataclass
class OppositionFilter:
    mode: Literal["all", "search"] = "all"
    search_term: str = ""


@dataclass
class CompetitionFilter:
    types: List[str] = field(default_factory=list)
    search_term: str = ""


@dataclass
class FilterSpec:
    """Result-narrowing constraints. Every default means "no restriction"."""

    time_range: TimeRange = field(default_factory=TimeRange)
    teams: List[str] = field(default_factory=list)
    location: List[str] = field(default_factory=list)
    opposition: OppositionFilter = field(default_factory=OppositionFilter)
    competition: CompetitionFilter = field(default_factory=CompetitionFilter)
    result: List[str] = field(default_factory=list)
    position: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time_range": self.time_range.to_dict(),
            "teams": self.teams,
            "location": self.location,
            "opposition": {
                "mode": self.opposition.mode,
                "search_term": self.opposition.search_term,
            },
            "competition": {
                "types": self.competition.types,
                "search_term": self.competition.search_term,
            },
            "result": self.result,
            "position": self.position,
        }


# ============================================================================
# COMPILER
# ============================================================================


def _compile_time_range(time_range: TimeRange, params: Dict[str, Any]) -> List[str]:
    kind = time_range.type
    if kind == "all_time":
        return []
    if kind == "season":
        if not time_range.seasons:
            return []
        params["seasons"] = list(time_range.seasons)
        return ["f.season IN $seasons"]
    if kind == "before_date":
        params["before_date"] = time_range.before_date
        return ["f.date < $before_date"]
    if kind == "after_date":
        params["after_date"] = time_range.after_date
        return ["f.date > $after_date"]
    if kind == "between":
        params["start_date"] = time_range.start_date
        params["end_date"] = time_range.end_date
        return ["f.date >= $start_date AND f.date <= $end_date"]
    raise InvalidFilterError("time_range.type", kind)


def compile_filters(spec: FilterSpec, params: Dict[str, Any]) -> List[str]:
    """
    Compile a FilterSpec into predicate fragments.

    Args:
        spec: Filter specification
        params: Parameter bag; named bindings are added to it

    Returns:
        Predicate fragments in fixed field order

    Raises:
        InvalidFilterError: If the time range type is not recognised

    Examples:
        >>> params = {}
        >>> compile_filters(FilterSpec(teams=["2nd XI"]), params)
        ['f.team IN $teams']
        >>> params
        {'teams': ['2nd XI']}
    """
    predicates = _compile_time_range(spec.time_range, params)

    if spec.teams:
        params["teams"] = list(spec.teams)
        predicates.append("f.team IN $teams")

    if spec.location:
        params["locations"] = list(spec.location)
        predicates.append("f.homeOrAway IN $locations")

    if spec.opposition.mode == "search" and spec.opposition.search_term.strip():
        params["opposition_search"] = spec.opposition.search_term.strip()
        predicates.append("toLower(f.opposition) CONTAINS toLower($opposition_search)")

    if spec.competition.types:
        params["comp_types"] = list(spec.competition.types)
        predicates.append("f.compType IN $comp_types")

    if spec.competition.search_term.strip():
        params["competition_search"] = spec.competition.search_term.strip()
        predicates.append(
            "toLower(f.competition) CONTAINS toLower($competition_search)"
        )

    if spec.result:
        params["results"] = [RESULT_CODES.get(r, r) for r in spec.result]
        predicates.append("f.result IN $results")

    if spec.position:
        params["positions"] = list(spec.position)
        predicates.append("md.class IN $positions")

    logger.debug(f"Compiled {len(predicates)} filter predicate(s)")
    return predicates


def fixture_status_predicate(params: Dict[str, Any], alias: str = "f") -> str:
    """Predicate excluding void, postponed and abandoned fixtures."""
    params["excluded_statuses"] = EXCLUDED_FIXTURE_STATUSES
    return f"NOT coalesce({alias}.status, '') IN $excluded_statuses"


def retarget_predicates(predicates: List[str], alias_map: Dict[str, str]) -> List[str]:
    """
    Replay predicate fragments under different match aliases.

    Args:
        predicates: Fragments produced by compile_filters
        alias_map: Old alias -> new alias (e.g. {"f": "f2", "md": "md2"})

    Returns:
        New fragments, same count and order, same parameter names

    Examples:
        >>> retarget_predicates(["md.class IN $positions"], {"md": "md2"})
        ['md2.class IN $positions']
    """
    if not alias_map:
        return list(predicates)
    pattern = re.compile(
        r"(?<![\w$])(" + "|".join(re.escape(a) for a in alias_map) + r")\."
    )
    return [pattern.sub(lambda m: f"{alias_map[m.group(1)]}.", p) for p in predicates]


def where_clause(predicates: List[str]) -> str:
    """Join fragments into a WHERE clause ('' when there are none)."""
    if not predicates:
        return ""
    return "WHERE " + " AND ".join(predicates)


# ============================================================================
# FILTERS FROM ANALYSIS
# ============================================================================


def build_filter_spec(analysis, include_team_entities: bool = True) -> FilterSpec:
    """
    Derive a FilterSpec from a QuestionAnalysis.

    Args:
        analysis: QuestionAnalysis from the parser
        include_team_entities: Treat team entities as a team filter

    Returns:
        FilterSpec for the question
    """
    modifiers = analysis.modifiers
    teams = analysis.entity_names("team") if include_team_entities else []
    oppositions = analysis.entity_names("opposition")
    leagues = analysis.entity_names("league")

    return FilterSpec(
        time_range=analysis.time_range,
        teams=teams,
        location=list(modifiers.get("location", [])),
        opposition=(
            OppositionFilter(mode="search", search_term=oppositions[0])
            if oppositions
            else OppositionFilter()
        ),
        competition=CompetitionFilter(
            types=list(modifiers.get("comp_types", [])),
            search_term=leagues[0] if leagues else "",
        ),
        result=list(modifiers.get("results", [])),
        position=list(modifiers.get("positions", [])),
    )
