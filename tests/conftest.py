"""
Shared fixtures for the club statistics test suite.

Every test runs against MockGraphStore; no Neo4j or Redis is needed.
"""

import pytest

from clubstats_mcp.api.entity_resolver import EntityCatalog, EntityResolver
from clubstats_mcp.cache.context_store import InMemoryContextStore
from clubstats_mcp.config import EngineConfig
from clubstats_mcp.graph.mock_store import MockGraphStore
from clubstats_mcp.nlq.handlers import HandlerContext
from clubstats_mcp.nlq.pipeline import QuestionProcessor

CATALOG = {
    "player": ["Luke Bangs", "Oli Goddard", "Kieran Mackrell", "Jonny Sourris"],
    "team": ["1st XI", "2nd XI", "3rd XI", "4th XI"],
    "opposition": ["Old Wimbledonians", "Hampton Wick Royal"],
    "league": ["Surrey Premier League"],
}


@pytest.fixture
def catalog_entries():
    """Catalog snapshot used by analyzer tests."""
    return {k: list(v) for k, v in CATALOG.items()}


@pytest.fixture
def config():
    return EngineConfig(graph_label="testGraph", environment="production")


@pytest.fixture
def store():
    """Mock graph store preloaded with the test catalog."""
    return MockGraphStore(catalog=CATALOG, graph_label="testGraph")


@pytest.fixture
def resolver(store):
    catalog = EntityCatalog(store)
    catalog.set_entries(CATALOG)
    return EntityResolver(catalog)


@pytest.fixture
def handler_ctx(store, config, resolver):
    return HandlerContext(store=store, config=config, resolver=resolver)


@pytest.fixture
def processor(store, config):
    """QuestionProcessor over the mock store with in-memory context."""
    return QuestionProcessor(store, config, context_store=InMemoryContextStore())
