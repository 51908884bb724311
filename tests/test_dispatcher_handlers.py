"""
Tests for the query dispatcher and the handler family.
"""

import pytest

from clubstats_mcp.config import EngineConfig
from clubstats_mcp.graph.mock_store import MockGraphStore
from clubstats_mcp.nlq.dispatcher import DISPATCH_RULES, DispatchRule, dispatch, select_rule
from clubstats_mcp.nlq.handlers import HandlerContext
from clubstats_mcp.nlq.parser import analyze_question

LEAGUE_ROW = {
    "teamName": "2nd XI",
    "season": "2018/19",
    "division": "Division 2",
    "position": 2,
    "played": 18,
    "won": 12,
    "drawn": 2,
    "lost": 4,
    "goalsFor": 50,
    "goalsAgainst": 20,
    "goalDifference": 30,
    "points": 38,
}


def _analyze(question, catalog_entries):
    return analyze_question(question, catalog_entries)


# ============================================================================
# RULE SELECTION
# ============================================================================


@pytest.mark.parametrize(
    "question, rule",
    [
        ("How many goals has Luke Bangs scored?", "player_stat"),
        ("Who has more goals, Luke Bangs or Oli Goddard?", "player_comparison"),
        ("Who has scored the most goals?", "player_ranking"),
        ("How many goals have the 3s scored?", "team"),
        ("How many players have played for the club?", "club"),
        ("What's the 2s' highest league finish?", "league"),
        ("Who has Jonny Sourris played with most?", "relationship"),
        ("Luke Bangs with Oli Goddard", "relationship"),
        ("Which season did Luke Bangs score the most goals?", "player_season"),
        ("What was the 2nd XI's biggest win?", "fixture"),
        ("Who has scored the most hat-tricks?", "fixture"),
        ("How many games in a row has Luke Bangs scored?", "streak"),
        ("How many times has Luke Bangs been in the Team of the Week?", "awards"),
        ("How many did they score?", "ambiguous"),
    ],
)
def test_select_rule(catalog_entries, question, rule):
    """Each family is picked by exactly the expected rule."""
    assert select_rule(_analyze(question, catalog_entries)).name == rule


def test_rule_table_ends_with_fallback():
    assert DISPATCH_RULES[-1].name == "fallback"


# ============================================================================
# PLAYER HANDLERS
# ============================================================================


@pytest.mark.asyncio
async def test_player_stat(catalog_entries, handler_ctx, store):
    """Single player totals, with coerced numbers and status exclusion."""
    store.add_response("p.playerName = $player_name", [{"appearances": {"low": 120, "high": 0}, "G": 42}])
    result = await dispatch(_analyze("How many goals has Luke Bangs scored?", catalog_entries), handler_ctx)

    assert result.success
    assert result.type == "player_stat"
    assert result.data["player"] == "Luke Bangs"
    assert result.data["stats"] == {"G": 42}
    assert result.data["appearances"] == 120

    query, params = store.executed[-1]
    assert "NOT coalesce(f.status, '') IN $excluded_statuses" in query
    assert params["player_name"] == "Luke Bangs"
    assert params["graph_label"] == "testGraph"
    assert result.queries[0]["handler"] == "player"


@pytest.mark.asyncio
async def test_player_stat_with_filters(catalog_entries, handler_ctx, store):
    """Season, team and location filters reach the query."""
    analysis = _analyze(
        "How many goals has Luke Bangs scored for the 2s at home in 2019/20?", catalog_entries
    )
    store.add_response("p.playerName = $player_name", [{"appearances": 10, "G": 6}])
    result = await dispatch(analysis, handler_ctx)

    query, params = store.executed[-1]
    assert "f.season IN $seasons" in query
    assert "f.team IN $teams" in query
    assert "f.homeOrAway IN $locations" in query
    assert params["seasons"] == ["2019/20"]
    assert params["teams"] == ["2nd XI"]
    assert result.data["team"] == "2nd XI"


@pytest.mark.asyncio
async def test_player_stat_no_rows_is_zero(catalog_entries, handler_ctx):
    result = await dispatch(_analyze("How many red cards has Oli Goddard got?", catalog_entries), handler_ctx)
    assert result.data["stats"] == {"R": 0}
    assert result.data["appearances"] == 0


@pytest.mark.asyncio
async def test_player_comparison(catalog_entries, handler_ctx, store):
    store.add_response(
        "p.playerName IN $player_names",
        [
            {"playerName": "Luke Bangs", "appearances": 100, "G": 42},
            {"playerName": "Oli Goddard", "appearances": 90, "G": 55},
        ],
    )
    result = await dispatch(
        _analyze("Who has more goals, Luke Bangs or Oli Goddard?", catalog_entries), handler_ctx
    )

    assert result.type == "player_comparison"
    assert result.data["leaders"]["G"] == {"player": "Oli Goddard", "value": 55}
    assert [p["player"] for p in result.data["players"]] == ["Luke Bangs", "Oli Goddard"]


# ============================================================================
# RANKING
# ============================================================================


@pytest.mark.asyncio
async def test_single_answer_ranking(catalog_entries, handler_ctx, store):
    store.add_response("LIMIT $limit", [{"playerName": "Luke Bangs", "value": 42, "appearances": 120}])
    result = await dispatch(_analyze("Who has scored the most goals?", catalog_entries), handler_ctx)

    query, params = store.executed[-1]
    assert params["limit"] == 1
    assert "ORDER BY value DESC" in query
    assert "p.allowOnSite = true" in query
    assert result.data["leaderboard"] is False
    assert result.data["entries"][0]["player"] == "Luke Bangs"


@pytest.mark.asyncio
async def test_leaderboard_limit_and_direction(catalog_entries, handler_ctx, store):
    result = await dispatch(_analyze("Top 3 players with the fewest yellow cards", catalog_entries), handler_ctx)

    query, params = store.executed[-1]
    assert params["limit"] == 3
    assert "ORDER BY value ASC" in query
    assert result.data["leaderboard"] is True
    assert result.data["entries"] == []


@pytest.mark.asyncio
async def test_per_appearance_ranking_requires_minimum(catalog_entries, handler_ctx, store):
    """Per-appearance rankings ignore players with few appearances."""
    await dispatch(_analyze("Who has the most goals per game?", catalog_entries), handler_ctx)

    query, params = store.executed[-1]
    assert "WHERE appearances >= $min_appearances" in query
    assert params["min_appearances"] == 10


# ============================================================================
# TEAM / CLUB
# ============================================================================


@pytest.mark.asyncio
async def test_team_stats(catalog_entries, handler_ctx, store):
    store.add_response("f.team = $team_name", [{"games": 20, "G": 61}])
    result = await dispatch(_analyze("How many goals have the 3s scored?", catalog_entries), handler_ctx)

    assert result.type == "team_stat"
    assert result.data["teams"] == [{"team": "3rd XI", "games": 20, "stats": {"G": 61}}]
    query, _ = store.executed[-1]
    assert "MatchDetail" not in query


@pytest.mark.asyncio
async def test_team_rejects_player_only_metric(catalog_entries, handler_ctx):
    """Assists are not tracked per team."""
    result = await dispatch(_analyze("How many assists have the 3s got?", catalog_entries), handler_ctx)

    assert result.type == "error"
    assert result.error.kind == "invalid_metric"
    assert result.error.details == {"metric": "A", "context": "team"}


@pytest.mark.asyncio
async def test_club_player_count(catalog_entries, handler_ctx, store):
    store.add_response("count(DISTINCT p) AS playerCount", [{"playerCount": 312}])
    result = await dispatch(
        _analyze("How many players have played for the club?", catalog_entries), handler_ctx
    )

    assert result.type == "club_player_count"
    assert result.data["player_count"] == 312
    assert result.data["club"] == "Dorkinians"


@pytest.mark.asyncio
async def test_club_team_ranking(catalog_entries, handler_ctx, store):
    store.add_response(
        "f.team AS teamName",
        [
            {"teamName": "1st XI", "value": 20, "games": 18},
            {"teamName": "3rd XI", "value": 31, "games": 18},
        ],
    )
    result = await dispatch(
        _analyze("Which team has conceded the fewest goals?", catalog_entries), handler_ctx
    )

    assert result.type == "club_team_ranking"
    assert result.data["metric"] == "C"
    assert result.data["direction"] == "least"
    assert result.data["entries"][0]["team"] == "1st XI"
    assert "ORDER BY value ASC" in store.executed[-1][0]


# ============================================================================
# LEAGUE
# ============================================================================


@pytest.mark.asyncio
async def test_league_highest_finish(catalog_entries, handler_ctx, store):
    store.add_response("LeagueTable", [LEAGUE_ROW])
    result = await dispatch(_analyze("What's the 2s' highest league finish?", catalog_entries), handler_ctx)

    assert result.type == "league_position"
    assert result.data["intent"] == "highest_finish"
    assert result.data["row"]["position"] == 2

    query, params = store.executed[-1]
    assert "lt.team CONTAINS $club_name" in query
    assert "ORDER BY lt.position ASC" in query
    assert params["team_name"] == "2nd XI"


@pytest.mark.asyncio
async def test_league_not_found(catalog_entries, handler_ctx):
    result = await dispatch(_analyze("What was the 4s' goal difference in 2019/20?", catalog_entries), handler_ctx)

    assert result.data["intent"] == "goal_difference"
    assert result.data["found"] is False


# ============================================================================
# RELATIONSHIP
# ============================================================================


@pytest.mark.asyncio
async def test_games_together_every_pair(catalog_entries, handler_ctx, store):
    """Three players answer all three pairs."""
    store.add_response(
        "gamesTogether",
        lambda query, params: [{"gamesTogether": len(params["player_name"]) + len(params["other_name"])}],
    )
    result = await dispatch(
        _analyze(
            "How many games have Luke Bangs, Oli Goddard and Kieran Mackrell played together?",
            catalog_entries,
        ),
        handler_ctx,
    )

    assert result.type == "relationship_games"
    assert [pair["players"] for pair in result.data["pairs"]] == [
        ["Luke Bangs", "Oli Goddard"],
        ["Luke Bangs", "Kieran Mackrell"],
        ["Oli Goddard", "Kieran Mackrell"],
    ]
    assert len(result.queries) == 3


@pytest.mark.asyncio
async def test_relationship_team_filter_on_both_players(catalog_entries, handler_ctx, store):
    await dispatch(
        _analyze("How many games have Luke Bangs and Oli Goddard played together for the 1s?", catalog_entries),
        handler_ctx,
    )

    query, params = store.executed[-1]
    assert "md.team IN $teams" in query
    assert "md2.team IN $teams" in query
    assert params["teams"] == ["1st XI"]


@pytest.mark.asyncio
async def test_top_teammates(catalog_entries, handler_ctx, store):
    store.add_response(
        "teammateName",
        [
            {"teammateName": "Oli Goddard", "gamesTogether": 80},
            {"teammateName": "Luke Bangs", "gamesTogether": 64},
        ],
    )
    result = await dispatch(_analyze("Who has Jonny Sourris played with most?", catalog_entries), handler_ctx)

    assert result.type == "relationship_teammates"
    assert result.data["teammates"][0] == {"rank": 1, "player": "Oli Goddard", "games": 80}
    assert store.executed[-1][1]["limit"] == 3


# ============================================================================
# PLAYER SEASONS
# ============================================================================


@pytest.mark.asyncio
async def test_player_best_season(catalog_entries, handler_ctx, store):
    """'Which season' questions rank the player's seasons, not the career total."""
    store.add_response(
        "f.season AS season",
        [
            {"season": "2019/20", "value": {"low": 18, "high": 0}, "appearances": 20},
            {"season": "2018/19", "value": 12, "appearances": 18},
        ],
    )
    result = await dispatch(
        _analyze("Which season did Luke Bangs score the most goals?", catalog_entries), handler_ctx
    )

    assert result.type == "player_season"
    assert result.data["seasons"][0] == {"season": "2019/20", "value": 18, "appearances": 20}
    query, params = store.executed[-1]
    assert "ORDER BY value DESC" in query
    assert "f.season IS NOT NULL" in query
    assert params["player_name"] == "Luke Bangs"


# ============================================================================
# FIXTURE RECORDS
# ============================================================================


@pytest.mark.asyncio
async def test_biggest_win(catalog_entries, handler_ctx, store):
    store.add_response(
        "AS margin",
        [
            {
                "date": "2019-10-12",
                "season": "2019/20",
                "team": "2nd XI",
                "opposition": "Old Wimbledonians",
                "homeOrAway": "Home",
                "result": "W",
                "goalsFor": 7,
                "goalsAgainst": 0,
                "margin": {"low": 7, "high": 0},
            }
        ],
    )
    result = await dispatch(_analyze("What was the 2nd XI's biggest win?", catalog_entries), handler_ctx)

    assert result.type == "fixture_record"
    assert result.data["fixture"]["margin"] == 7
    assert result.data["team"] == "2nd XI"
    query, params = store.executed[-1]
    assert "f.result = 'W'" in query
    assert "NOT coalesce(f.status, '') IN $excluded_statuses" in query
    assert "ORDER BY margin DESC" in query
    assert params["teams"] == ["2nd XI"]


@pytest.mark.asyncio
async def test_highest_scoring_game_not_found(catalog_entries, handler_ctx, store):
    result = await dispatch(
        _analyze("What was the highest scoring game in 2019/20?", catalog_entries), handler_ctx
    )

    assert result.type == "fixture_record"
    assert result.data["fixture"] is None
    query, params = store.executed[-1]
    assert "AS totalGoals" in query
    assert params["seasons"] == ["2019/20"]


@pytest.mark.asyncio
async def test_hat_tricks_for_player(catalog_entries, handler_ctx, store):
    store.add_response("hatTricks", [{"playerName": "Luke Bangs", "hatTricks": 3}])
    result = await dispatch(
        _analyze("How many hat-tricks has Luke Bangs scored?", catalog_entries), handler_ctx
    )

    assert result.type == "hat_tricks"
    assert result.data["players"] == [{"player": "Luke Bangs", "count": 3}]
    query, params = store.executed[-1]
    assert "coalesce(md.goals, 0) + coalesce(md.penaltiesScored, 0) >= 3" in query
    assert "LIMIT" not in query
    assert params["player_names"] == ["Luke Bangs"]


@pytest.mark.asyncio
async def test_hat_trick_ranking(catalog_entries, handler_ctx, store):
    store.add_response("hatTricks", [{"playerName": "Oli Goddard", "hatTricks": 5}])
    result = await dispatch(_analyze("Who has scored the most hat-tricks?", catalog_entries), handler_ctx)

    assert result.data["ranked"] is True
    assert result.data["players"][0] == {"rank": 1, "player": "Oli Goddard", "count": 5}
    assert store.executed[-1][1]["limit"] == 1


# ============================================================================
# STREAKS / AWARDS
# ============================================================================


@pytest.mark.asyncio
async def test_goal_streak(catalog_entries, handler_ctx, store):
    """The longest run is computed over games in date order."""
    games = [
        {"date": "2019-09-07", "goals": 1, "assists": 0, "cleanSheet": False},
        {"date": "2019-09-14", "goals": 2, "assists": 0, "cleanSheet": False},
        {"date": "2019-09-21", "goals": 1, "assists": 1, "cleanSheet": True},
        {"date": "2019-09-28", "goals": 0, "assists": 1, "cleanSheet": False},
        {"date": "2019-10-05", "goals": 1, "assists": 0, "cleanSheet": False},
    ]
    store.add_response("AS cleanSheet", games)
    result = await dispatch(
        _analyze("How many games in a row has Luke Bangs scored?", catalog_entries), handler_ctx
    )

    assert result.type == "streak"
    assert result.data["kind"] == "goals"
    assert (result.data["count"], result.data["start"], result.data["end"]) == (3, "2019-09-07", "2019-09-21")
    assert result.data["current"] == 1
    query, _ = store.executed[-1]
    assert "coalesce(md.minutes, 0) > 0" in query
    assert query.endswith("ORDER BY date ASC")


@pytest.mark.asyncio
async def test_awards_count_with_season(catalog_entries, handler_ctx, store):
    store.add_response("IN_WEEKLY_TOTW", [{"playerName": "Luke Bangs", "awardCount": 4}])
    result = await dispatch(
        _analyze("How many times was Luke Bangs in the team of the week in 2019/20?", catalog_entries),
        handler_ctx,
    )

    assert result.type == "awards"
    assert result.data["players"] == [{"player": "Luke Bangs", "count": 4}]
    query, params = store.executed[-1]
    assert "a.season IN $seasons" in query
    assert params["seasons"] == ["2019/20"]


# ============================================================================
# FAILURES
# ============================================================================


@pytest.mark.asyncio
async def test_store_failure_becomes_query_failed(catalog_entries, handler_ctx, store):
    store.fail_with(RuntimeError("Connection refused"))
    result = await dispatch(_analyze("How many goals has Luke Bangs scored?", catalog_entries), handler_ctx)

    assert result.type == "error"
    assert result.error.kind == "query_failed"
    assert result.error.details["reason"] == "connection"
    assert len(result.queries) == 1


@pytest.mark.asyncio
async def test_slow_store_times_out(catalog_entries):
    """A query slower than the configured timeout fails as query_failed."""
    slow = MockGraphStore(graph_label="testGraph", delay_seconds=0.5)
    ctx = HandlerContext(store=slow, config=EngineConfig(query_timeout_seconds=0.05))
    result = await dispatch(_analyze("How many goals has Luke Bangs scored?", catalog_entries), ctx)

    assert result.type == "error"
    assert result.error.kind == "query_failed"
    assert result.error.details["reason"] == "timeout"
    assert "timed out" in result.error.message


@pytest.mark.asyncio
async def test_unexpected_handler_error_is_internal(catalog_entries, handler_ctx):
    async def broken(analysis, ctx):
        raise ValueError("boom")

    rules = [DispatchRule("broken", lambda a: True, broken)]
    result = await dispatch(_analyze("How many goals has Luke Bangs scored?", catalog_entries), handler_ctx, rules)

    assert result.type == "error"
    assert result.error.kind == "internal"


@pytest.mark.asyncio
async def test_ambiguous_result(catalog_entries, handler_ctx, store):
    result = await dispatch(_analyze("How many did they score?", catalog_entries), handler_ctx)

    assert result.type == "ambiguous"
    assert result.data["reason"] == "missing_both"
    assert store.executed == []
