"""
Tests for the entity catalog and fuzzy resolver.
"""

import pytest

from clubstats_mcp.api.entity_resolver import (
    EntityCatalog,
    EntityResolver,
    blended_similarity,
    dice_similarity,
    normalize_name,
    sequence_similarity,
)
from clubstats_mcp.graph.mock_store import MockGraphStore


# ============================================================================
# RESOLUTION
# ============================================================================


def test_exact_match(resolver):
    """Exact names match with no suggestions."""
    result = resolver.resolve("Luke Bangs", "player")

    assert result.matched is True
    assert result.canonical_name == "Luke Bangs"
    assert result.suggestions == []
    assert result.status == "exact"


def test_exact_match_ignores_case_and_spacing(resolver):
    result = resolver.resolve("  luke   BANGS ", "player")
    assert result.matched is True
    assert result.canonical_name == "Luke Bangs"


def test_one_character_typo(resolver):
    """A typo is not a match; the intended name is suggested first."""
    result = resolver.resolve("Luke Bang", "player")

    assert result.matched is False
    assert result.suggestions[0] == "Luke Bangs"
    assert result.status == "suggestions"


def test_nothing_close(resolver):
    result = resolver.resolve("Zzyzx Qwerty", "player")

    assert result.matched is False
    assert result.suggestions == []
    assert result.status == "not_found"


def test_suggestions_capped(store):
    catalog = EntityCatalog(store)
    catalog.set_entries({"player": ["Sam Smith", "Sam Smyth", "Sam Smithe", "Sam Smiths"]})
    resolver = EntityResolver(catalog)

    result = resolver.resolve("Sam Smit", "player")
    assert len(result.suggestions) == 3


def test_team_resolution(resolver):
    assert resolver.resolve("2nd XI", "team").matched is True
    assert resolver.resolve("2nd X", "team").suggestions[0] == "2nd XI"


def test_to_reference(resolver):
    """Resolution results convert to the public EntityReference model."""
    reference = resolver.resolve("Luke Bang", "player").to_reference()

    assert reference.entity_type == "player"
    assert reference.matched is False
    assert reference.name is None
    assert 0.6 <= reference.confidence <= 1.0
    assert reference.suggestions[0] == "Luke Bangs"


def test_swappable_similarity(store):
    """A different strategy plugs in without touching the resolver."""
    catalog = EntityCatalog(store)
    catalog.set_entries({"player": ["Kieran Mackrell"]})
    resolver = EntityResolver(catalog, similarity=lambda q, c: 0.99)

    result = resolver.resolve("anyone", "player")
    assert result.suggestions == ["Kieran Mackrell"]


# ============================================================================
# SIMILARITY FUNCTIONS
# ============================================================================


def test_similarity_bounds():
    for fn in (sequence_similarity, dice_similarity, blended_similarity):
        assert fn("Luke Bangs", "luke bangs") == pytest.approx(1.0)
        assert 0.0 <= fn("Luke Bangs", "Oli Goddard") < 0.6


def test_normalize_name():
    assert normalize_name("  O'Neill,  Sean ") == "oneill sean"


# ============================================================================
# CATALOG
# ============================================================================


@pytest.mark.asyncio
async def test_catalog_refresh_from_store():
    """Catalog loads every entity type through the store."""
    store = MockGraphStore(catalog={"player": ["Luke Bangs"], "team": ["1st XI"]})
    catalog = EntityCatalog(store)

    await catalog.ensure_fresh()

    assert catalog.is_loaded
    assert catalog.names("player") == ["Luke Bangs"]
    assert catalog.names("team") == ["1st XI"]
    assert catalog.names("league") == []
    assert len(store.executed) == 4
    assert all(params["graph_label"] == "testGraph" for _, params in store.executed)


@pytest.mark.asyncio
async def test_stale_catalog_refreshes_in_background():
    """Stale snapshots keep serving while a refresh runs."""
    store = MockGraphStore(catalog={"player": ["Luke Bangs"]})
    catalog = EntityCatalog(store, ttl_seconds=300)
    await catalog.ensure_fresh()

    store.catalog["player"].append("New Signing")
    catalog.invalidate()
    await catalog.ensure_fresh()
    # Previous snapshot still served until the task finishes
    assert catalog.names("player") == ["Luke Bangs"]

    await catalog._refresh_task
    assert "New Signing" in catalog.names("player")


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_snapshot():
    store = MockGraphStore(catalog={"player": ["Luke Bangs"]})
    catalog = EntityCatalog(store)
    await catalog.ensure_fresh()

    async def broken(query, params=None):
        raise RuntimeError("connection refused")

    store.execute_query = broken
    catalog.invalidate()
    await catalog.ensure_fresh()
    await catalog._refresh_task

    assert catalog.names("player") == ["Luke Bangs"]
