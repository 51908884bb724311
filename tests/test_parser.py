"""
Tests for the question analyzer: entities, metrics, time ranges, modifiers
and classification.
"""

import pytest

from clubstats_mcp.nlq.parser import (
    CLARIFICATION_MESSAGES,
    QuestionAnalysis,
    analyze_question,
    extract_direction,
    normalize_question,
    players_joined_by_with,
)


# ============================================================================
# PLAYER QUESTIONS
# ============================================================================


def test_player_goals(catalog_entries):
    """Canonical player question."""
    analysis = analyze_question("How many goals has Luke Bangs scored?", catalog_entries)

    assert analysis.type == "player"
    assert analysis.entity_names() == ["Luke Bangs"]
    assert analysis.metrics == ["G"]
    assert analysis.time_range.is_all_time
    assert analysis.comparison_direction is None


def test_entity_match_is_case_insensitive(catalog_entries):
    """Lower-case names still match the catalog and keep canonical casing."""
    analysis = analyze_question("how many assists has oli goddard got?", catalog_entries)

    assert analysis.players == ["Oli Goddard"]
    assert analysis.metrics == ["A"]
    assert all(e.resolved for e in analysis.entities)


def test_unknown_capitalised_name_is_unresolved(catalog_entries):
    """Names missing from the catalog are kept as unresolved players."""
    analysis = analyze_question("How many goals has Luke Bang scored?", catalog_entries)

    assert len(analysis.entities) == 1
    entity = analysis.entities[0]
    assert entity.name == "Luke Bang"
    assert entity.type == "player"
    assert entity.resolved is False


def test_longest_metric_alias_wins(catalog_entries):
    """'goals per game' is one per-appearance metric, not goals plus games."""
    analysis = analyze_question("What is Luke Bangs' goals per game?", catalog_entries)

    assert analysis.metrics == ["GperAPP"]
    assert analysis.players == ["Luke Bangs"]


def test_multiple_metrics_keep_question_order(catalog_entries):
    analysis = analyze_question(
        "How many assists and goals has Kieran Mackrell got?", catalog_entries
    )
    assert analysis.metrics == ["A", "G"]


def test_comparison_two_players(catalog_entries):
    """Two players and a metric compare."""
    analysis = analyze_question(
        "Who has more goals, Luke Bangs or Oli Goddard?", catalog_entries
    )

    assert analysis.type == "player"
    assert analysis.players == ["Luke Bangs", "Oli Goddard"]
    assert analysis.comparison_direction == "most"


# ============================================================================
# RANKINGS
# ============================================================================


def test_ranking_without_players(catalog_entries):
    """Superlative questions with no player rank everyone."""
    analysis = analyze_question("Who has scored the most goals?", catalog_entries)

    assert analysis.type == "player"
    assert analysis.players == []
    assert analysis.metrics == ["G"]
    assert analysis.comparison_direction == "most"


def test_ranking_within_team(catalog_entries):
    """'for the 2s' keeps the ranking but filters to a team."""
    analysis = analyze_question("Who has scored the most goals for the 2s?", catalog_entries)

    assert analysis.type == "player"
    assert analysis.teams == ["2nd XI"]


def test_leaderboard_modifiers(catalog_entries):
    """'top 5' asks for a leaderboard of five."""
    analysis = analyze_question("Top 5 goalscorers for the 2s", catalog_entries)

    assert analysis.type == "player"
    assert analysis.metrics == ["G"]
    assert analysis.modifiers["leaderboard"] is True
    assert analysis.modifiers["top_n"] == 5


def test_direction():
    assert extract_direction("who has the fewest yellow cards") == "least"
    assert extract_direction("who has the most assists") == "most"
    assert extract_direction("top 3 players with the fewest yellow cards") == "least"
    assert extract_direction("top 5 goalscorers") == "most"
    assert extract_direction("how many goals") is None


# ============================================================================
# TEAM / CLUB / LEAGUE / RELATIONSHIP
# ============================================================================


def test_team_question(catalog_entries):
    """Team alias plus a team metric is a team question."""
    analysis = analyze_question("How many goals have the 3s scored?", catalog_entries)

    assert analysis.type == "team"
    assert analysis.teams == ["3rd XI"]
    assert analysis.metrics == ["G"]


def test_league_highest_finish(catalog_entries):
    """The 2s' highest league finish goes to the league handler."""
    analysis = analyze_question("What's the 2s' highest league finish?", catalog_entries)

    assert analysis.type == "league"
    assert analysis.teams == ["2nd XI"]
    assert analysis.comparison_direction == "most"


def test_club_player_count(catalog_entries):
    analysis = analyze_question("How many players have played for the club?", catalog_entries)
    assert analysis.type == "club"


def test_club_team_ranking_conceded(catalog_entries):
    """'conceded the fewest goals' asks about goals conceded only."""
    analysis = analyze_question("Which team has conceded the fewest goals?", catalog_entries)

    assert analysis.type == "club"
    assert analysis.metrics == ["C"]
    assert analysis.comparison_direction == "least"


def test_relationship_games_together(catalog_entries):
    analysis = analyze_question(
        "How many games have Luke Bangs and Oli Goddard played together?", catalog_entries
    )

    assert analysis.type == "relationship"
    assert analysis.players == ["Luke Bangs", "Oli Goddard"]


def test_relationship_teammates(catalog_entries):
    analysis = analyze_question("Who has Jonny Sourris played with most?", catalog_entries)

    assert analysis.type == "relationship"
    assert analysis.players == ["Jonny Sourris"]


@pytest.mark.parametrize(
    "question",
    [
        "Luke Bangs with Oli Goddard",
        "How many goals has Luke Bangs scored with Oli Goddard?",
    ],
)
def test_players_joined_by_with_is_relationship(catalog_entries, question):
    analysis = analyze_question(question, catalog_entries)

    assert analysis.type == "relationship"
    assert analysis.players == ["Luke Bangs", "Oli Goddard"]


def test_compare_with_stays_comparison(catalog_entries):
    """'Compare A with B' compares statistics, not games together."""
    analysis = analyze_question("Compare Luke Bangs with Oli Goddard for goals", catalog_entries)

    assert analysis.type == "player"
    assert players_joined_by_with(analysis.players, analysis.question.lower()) is False


# ============================================================================
# FIXTURES / STREAKS / AWARDS / SEASONS
# ============================================================================


@pytest.mark.parametrize(
    "question, intent",
    [
        ("What was the 2nd XI's biggest win?", "biggest_win"),
        ("What is the club's largest victory?", "biggest_win"),
        ("What was the highest scoring game in 2019/20?", "highest_scoring_game"),
        ("Which game had the most goals?", "highest_scoring_game"),
        ("How many hat-tricks has Luke Bangs scored?", "hat_tricks"),
        ("Who has scored the most hat tricks?", "hat_tricks"),
    ],
)
def test_fixture_intents(catalog_entries, question, intent):
    analysis = analyze_question(question, catalog_entries)

    assert analysis.type == "fixture"
    assert analysis.modifiers["fixture_intent"] == intent


@pytest.mark.parametrize(
    "question, kind",
    [
        ("How many games in a row has Luke Bangs scored?", "goals"),
        ("What is Luke Bangs' longest streak of goal involvements?", "goal_involvement"),
        ("How many consecutive games has Oli Goddard scored or assisted in?", "goal_involvement"),
        ("How many consecutive clean sheets has Kieran Mackrell kept?", "clean_sheet"),
    ],
)
def test_streak_kinds(catalog_entries, question, kind):
    analysis = analyze_question(question, catalog_entries)

    assert analysis.type == "streak"
    assert analysis.modifiers["streak"] == kind


def test_streak_without_player_is_ambiguous(catalog_entries):
    analysis = analyze_question("How many games in a row did we score?", catalog_entries)

    assert analysis.type == "ambiguous"
    assert analysis.ambiguity_reason == "missing_entity"


@pytest.mark.parametrize(
    "question, award",
    [
        ("How many times has Luke Bangs been in the Team of the Week?", "weekly_totw"),
        ("How many TOTW appearances does Oli Goddard have?", "weekly_totw"),
        ("Has Luke Bangs made the team of the season?", "season_totw"),
        ("Who has won player of the month the most?", "player_of_the_month"),
    ],
)
def test_award_questions(catalog_entries, question, award):
    analysis = analyze_question(question, catalog_entries)

    assert analysis.type == "awards"
    assert analysis.modifiers["award"] == award


def test_best_season_for_player(catalog_entries):
    """'Which season' with a player asks for that player's best season."""
    analysis = analyze_question("Which season did Luke Bangs score the most goals?", catalog_entries)

    assert analysis.type == "player"
    assert analysis.metrics == ["G"]
    assert analysis.modifiers["best_season"] is True


def test_most_prolific_season_defaults_to_goals(catalog_entries):
    analysis = analyze_question("What was Luke Bangs' most prolific season?", catalog_entries)

    assert analysis.type == "player"
    assert analysis.metrics == ["G"]
    assert analysis.comparison_direction == "most"


# ============================================================================
# TIME RANGES
# ============================================================================


@pytest.mark.parametrize(
    "question, seasons",
    [
        ("How many goals has Luke Bangs scored in 2019/20?", ["2019/20"]),
        ("How many goals has Luke Bangs scored in 2019-20?", ["2019/20"]),
        ("How many goals has Luke Bangs scored in 2019-2020?", ["2019/20"]),
        (
            "How many goals has Luke Bangs scored between 2018/19 and 2020/21?",
            ["2018/19", "2019/20", "2020/21"],
        ),
    ],
)
def test_season_ranges(catalog_entries, question, seasons):
    """Season strings normalize to YYYY/YY."""
    analysis = analyze_question(question, catalog_entries)

    assert analysis.time_range.type == "season"
    assert analysis.time_range.seasons == seasons
    assert analysis.players == ["Luke Bangs"]


def test_since_year(catalog_entries):
    """'since 2019' includes 1 January 2019."""
    analysis = analyze_question(
        "How many goals has Luke Bangs scored since 2019?", catalog_entries
    )
    assert analysis.time_range.type == "after_date"
    assert analysis.time_range.after_date == "2018-12-31"


def test_before_season(catalog_entries):
    analysis = analyze_question(
        "How many goals had Luke Bangs scored before 2020/21?", catalog_entries
    )
    assert analysis.time_range.type == "before_date"
    assert analysis.time_range.before_date == "2020-08-01"


def test_between_dates(catalog_entries):
    analysis = analyze_question(
        "How many goals did Luke Bangs score between 01/09/2019 and 31/12/2019?",
        catalog_entries,
    )
    assert analysis.time_range.type == "between"
    assert analysis.time_range.start_date == "2019-09-01"
    assert analysis.time_range.end_date == "2019-12-31"


# ============================================================================
# FILTER MODIFIERS
# ============================================================================


def test_location_and_opposition(catalog_entries):
    """Home games against a named opposition."""
    analysis = analyze_question(
        "How many goals has Luke Bangs scored against Old Wimbledonians at home?",
        catalog_entries,
    )

    assert analysis.modifiers["location"] == ["Home"]
    assert analysis.entity_names("opposition") == ["Old Wimbledonians"]
    assert analysis.type == "player"


def test_position_and_competition(catalog_entries):
    analysis = analyze_question(
        "How many clean sheets has Jonny Sourris kept in goal in league games?",
        catalog_entries,
    )

    assert analysis.metrics == ["CLS"]
    assert analysis.modifiers["positions"] == ["GK"]
    assert analysis.modifiers["comp_types"] == ["League"]


# ============================================================================
# AMBIGUITY
# ============================================================================


def test_missing_both(catalog_entries):
    """No entity and no metric asks for both."""
    analysis = analyze_question("How many did they score?", catalog_entries)

    assert analysis.type == "ambiguous"
    assert analysis.ambiguity_reason == "missing_both"
    assert analysis.clarification_message == CLARIFICATION_MESSAGES["missing_both"]


def test_missing_metric(catalog_entries):
    analysis = analyze_question("Tell me about Luke Bangs", catalog_entries)

    assert analysis.type == "ambiguous"
    assert analysis.ambiguity_reason == "missing_metric"


def test_missing_entity(catalog_entries):
    analysis = analyze_question("How many goals?", catalog_entries)

    assert analysis.type == "ambiguous"
    assert analysis.ambiguity_reason == "missing_entity"


def test_too_many_metrics(catalog_entries):
    analysis = analyze_question(
        "How many goals, assists, saves and yellow cards has Luke Bangs got?",
        catalog_entries,
    )
    assert analysis.ambiguity_reason == "too_many_metrics"


def test_first_person_flag(catalog_entries):
    analysis = analyze_question("How many goals have I scored?", catalog_entries)

    assert analysis.modifiers.get("first_person") is True
    assert analysis.type == "ambiguous"


# ============================================================================
# DETERMINISM / SERIALIZATION
# ============================================================================


def test_deterministic(catalog_entries):
    """Same question and catalog give the same analysis."""
    question = "Who has the most assists for the 1s in 2021/22?"
    first = analyze_question(question, catalog_entries).to_dict()
    second = analyze_question(question, catalog_entries).to_dict()
    assert first == second


def test_analysis_dict_round_trip(catalog_entries):
    analysis = analyze_question("How many goals has Luke Bangs scored in 2019/20?", catalog_entries)
    restored = QuestionAnalysis.from_dict(analysis.to_dict())

    assert restored.to_dict() == analysis.to_dict()


def test_normalize_question():
    assert normalize_question("  What’s   the  2s’ record? ") == "What's the 2s' record?"
