"""
Tests for the FilterSpec compiler.
"""

import re

import pytest

from clubstats_mcp.api.errors import InvalidFilterError
from clubstats_mcp.nlq.filters import (
    CompetitionFilter,
    FilterSpec,
    OppositionFilter,
    TimeRange,
    compile_filters,
    fixture_status_predicate,
    retarget_predicates,
    where_clause,
)


# ============================================================================
# TIME RANGES
# ============================================================================


def test_all_time_has_no_predicate():
    """All-time ranges add neither predicates nor bindings."""
    params = {}
    assert compile_filters(FilterSpec(time_range=TimeRange.all_time()), params) == []
    assert params == {}


def test_season_range():
    """Seasons compile to an IN predicate."""
    params = {}
    predicates = compile_filters(
        FilterSpec(time_range=TimeRange.for_seasons(["2019/20", "2020/21"])), params
    )
    assert predicates == ["f.season IN $seasons"]
    assert params["seasons"] == ["2019/20", "2020/21"]


def test_date_ranges():
    """Before, after and between ranges bind ISO dates."""
    params = {}
    assert compile_filters(FilterSpec(time_range=TimeRange.before("2020-01-01")), params) == [
        "f.date < $before_date"
    ]
    assert params["before_date"] == "2020-01-01"

    params = {}
    assert compile_filters(FilterSpec(time_range=TimeRange.after("2021-07-31")), params) == [
        "f.date > $after_date"
    ]

    params = {}
    predicates = compile_filters(
        FilterSpec(time_range=TimeRange.between("2019-01-01", "2019-12-31")), params
    )
    assert predicates == ["f.date >= $start_date AND f.date <= $end_date"]
    assert params == {"start_date": "2019-01-01", "end_date": "2019-12-31"}


def test_unknown_time_range_type():
    """Unrecognised time range types are rejected."""
    with pytest.raises(InvalidFilterError):
        compile_filters(FilterSpec(time_range=TimeRange(type="fortnight")), {})


# ============================================================================
# FIELD ORDER AND BINDINGS
# ============================================================================


def test_full_spec_field_order():
    """Fragments follow time, teams, location, opposition, competition, result, position."""
    spec = FilterSpec(
        time_range=TimeRange.for_seasons(["2019/20"]),
        teams=["2nd XI"],
        location=["Home"],
        opposition=OppositionFilter(mode="search", search_term=" Old Wimbledonians "),
        competition=CompetitionFilter(types=["League"]),
        result=["Win", "Draw"],
        position=["GK"],
    )
    params = {}
    predicates = compile_filters(spec, params)

    assert predicates == [
        "f.season IN $seasons",
        "f.team IN $teams",
        "f.homeOrAway IN $locations",
        "toLower(f.opposition) CONTAINS toLower($opposition_search)",
        "f.compType IN $comp_types",
        "f.result IN $results",
        "md.class IN $positions",
    ]
    assert params["opposition_search"] == "Old Wimbledonians"
    assert params["results"] == ["W", "D"]


def test_opposition_all_mode_ignores_term():
    """Opposition mode 'all' never filters."""
    params = {}
    spec = FilterSpec(opposition=OppositionFilter(mode="all", search_term="Hampton"))
    assert compile_filters(spec, params) == []


def test_competition_search_term():
    """A competition name becomes a case-insensitive CONTAINS."""
    params = {}
    spec = FilterSpec(competition=CompetitionFilter(search_term="Surrey"))
    assert compile_filters(spec, params) == [
        "toLower(f.competition) CONTAINS toLower($competition_search)"
    ]


def test_status_predicate():
    """Void, postponed and abandoned fixtures are excluded."""
    params = {}
    assert fixture_status_predicate(params) == "NOT coalesce(f.status, '') IN $excluded_statuses"
    assert params["excluded_statuses"] == ["Void", "Postponed", "Abandoned"]


# ============================================================================
# RETARGETING
# ============================================================================


def test_retarget_preserves_count_and_bindings():
    """Retargeting under a second alias keeps count and parameter names."""
    spec = FilterSpec(
        time_range=TimeRange.for_seasons(["2019/20"]),
        teams=["1st XI"],
        position=["DEF"],
    )
    params = {}
    predicates = compile_filters(spec, params)
    retargeted = retarget_predicates(predicates, {"f": "f2", "md": "md2"})

    assert len(retargeted) == len(predicates)
    assert retargeted == [
        "f2.season IN $seasons",
        "f2.team IN $teams",
        "md2.class IN $positions",
    ]
    bindings = lambda fragments: sorted(re.findall(r"\$(\w+)", " ".join(fragments)))
    assert bindings(retargeted) == bindings(predicates)
    assert set(bindings(predicates)) <= set(params)


def test_retarget_leaves_parameters_alone():
    """Parameter names that look like aliases are not rewritten."""
    assert retarget_predicates(["toLower(f.opposition) CONTAINS toLower($f)"], {"f": "f2"}) == [
        "toLower(f2.opposition) CONTAINS toLower($f)"
    ]


def test_where_clause():
    assert where_clause([]) == ""
    assert where_clause(["a = 1", "b = 2"]) == "WHERE a = 1 AND b = 2"
