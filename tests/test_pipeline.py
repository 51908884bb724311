"""
End-to-end tests for QuestionProcessor over the mock graph store.
"""

import pytest

from clubstats_mcp.cache.context_store import InMemoryContextStore
from clubstats_mcp.config import EngineConfig
from clubstats_mcp.graph.mock_store import MockGraphStore
from clubstats_mcp.nlq.parser import CLARIFICATION_MESSAGES
from clubstats_mcp.nlq.pipeline import QuestionProcessor, substitute_user_context
from clubstats_mcp.nlq.suggestions import INTERNAL_MESSAGE

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


@pytest.fixture
def goals_store(store):
    store.add_response("p.playerName = $player_name", [{"appearances": 120, "G": 42}])
    return store


# ============================================================================
# ANSWERS
# ============================================================================


@pytest.mark.asyncio
async def test_player_goals(processor, goals_store):
    response = await processor.process_question("How many goals has Luke Bangs scored?")

    assert response.answer == "Luke Bangs has scored 42 goals."
    assert response.sources == ["Player match records"]
    assert response.visualization["type"] == "stat_card"
    assert response.debug is None


@pytest.mark.asyncio
async def test_league_finish(processor, store):
    store.add_response("LeagueTable", [LEAGUE_ROW])
    response = await processor.process_question("What's the 2s' highest league finish?")

    assert "2nd" in response.answer
    assert "2018/19" in response.answer


@pytest.mark.asyncio
async def test_best_season_is_not_career_total(processor, store):
    store.add_response(
        "f.season AS season",
        [
            {"season": "2019/20", "value": 18, "appearances": 20},
            {"season": "2018/19", "value": 12, "appearances": 18},
        ],
    )
    response = await processor.process_question("Which season did Luke Bangs score the most goals?")

    assert response.answer == "Luke Bangs scored the most goals in 2019/20, with 18."
    assert response.visualization["type"] == "table"


@pytest.mark.asyncio
async def test_ambiguous_question_asks_for_clarification(processor, store):
    response = await processor.process_question("How many did they score?")

    assert response.answer == CLARIFICATION_MESSAGES["missing_both"]
    assert all("AS entityName" in query for query, _ in store.executed)


@pytest.mark.asyncio
async def test_typo_suggests_player(processor):
    """A misspelt name comes back with a spelling suggestion."""
    response = await processor.process_question("How many goals has Luke Bang scored?")

    assert "Did you mean: Luke Bangs?" in response.answer
    assert response.sources == []


# ============================================================================
# CONVERSATION
# ============================================================================


@pytest.mark.asyncio
async def test_follow_up_uses_session_context(processor, goals_store):
    """'he' in a follow-up refers to the previous turn's player."""
    await processor.process_question("How many goals has Luke Bangs scored?", session_id="s1")
    response = await processor.process_question("How many assists did he get?", session_id="s1")

    assert response.answer == "Luke Bangs has not recorded an assist."


@pytest.mark.asyncio
async def test_follow_up_does_not_cross_sessions(processor, goals_store):
    await processor.process_question("How many goals has Luke Bangs scored?", session_id="s1")
    response = await processor.process_question("How many assists did he get?", session_id="s2")

    assert "Luke Bangs" not in response.answer


@pytest.mark.asyncio
async def test_first_person_with_user_context(processor, goals_store):
    response = await processor.process_question(
        "How many goals have I scored?", user_context="Luke Bangs"
    )
    assert response.answer == "Luke Bangs has scored 42 goals."


def test_substitute_user_context():
    assert substitute_user_context("How many goals have I scored?", "Luke Bangs") == (
        "How many goals has Luke Bangs scored?"
    )
    assert substitute_user_context("What are my assists?", "Oli Goddard") == (
        "What are Oli Goddard's assists?"
    )


# ============================================================================
# FAILURES AND DEBUG
# ============================================================================


@pytest.mark.asyncio
async def test_store_failure_is_conversational(processor, store):
    """Backend failures become a message with tips, never an exception."""
    store.fail_with(RuntimeError("Connection refused"))
    response = await processor.process_question("How many goals has Luke Bangs scored?")

    assert response.answer.startswith("I can't reach the club statistics database right now.")
    assert "- Try rephrasing your question" in response.answer
    assert "Connection refused" not in response.answer


@pytest.mark.asyncio
async def test_slow_query_answers_took_too_long(catalog_entries):
    """A graph call past the configured timeout is answered conversationally."""
    slow = MockGraphStore(catalog=catalog_entries, graph_label="testGraph", delay_seconds=0.2)
    processor = QuestionProcessor(
        slow,
        EngineConfig(graph_label="testGraph", query_timeout_seconds=0.05),
        context_store=InMemoryContextStore(),
    )
    response = await processor.process_question("How many goals has Luke Bangs scored?")

    assert response.answer.startswith("That question took too long to answer.")
    assert response.sources == []


@pytest.mark.asyncio
async def test_unexpected_failure_is_conversational(processor, monkeypatch):
    """Errors outside the handler family still produce an answer."""

    async def broken_refresh():
        raise RuntimeError("catalog exploded")

    monkeypatch.setattr(processor.catalog, "ensure_fresh", broken_refresh)
    response = await processor.process_question("How many goals has Luke Bangs scored?")

    assert response.answer == INTERNAL_MESSAGE
    assert "exploded" not in response.answer


@pytest.mark.asyncio
async def test_debug_only_in_development(store):
    store.add_response("p.playerName = $player_name", [{"appearances": 120, "G": 42}])
    processor = QuestionProcessor(
        store,
        EngineConfig(graph_label="testGraph", environment="development"),
        context_store=InMemoryContextStore(),
    )
    response = await processor.process_question("How many goals has Luke Bangs scored?")

    assert response.debug["result_type"] == "player_stat"
    assert response.debug["analysis"]["metrics"] == ["G"]
    assert len(response.debug["queries"]) == 1
    assert response.debug["queries"][0]["handler"] == "player"
    assert response.debug["processing_steps"][-1] == "dispatched: player_stat"


@pytest.mark.asyncio
async def test_lifecycle(processor, store):
    await processor.start()
    assert store.is_connected()
    assert processor.catalog.is_loaded
    await processor.close()
