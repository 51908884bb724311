# clubstats_mcp/api/entity_resolver.py
"""
Entity resolution with fuzzy matching and TTL-refreshed catalogs.
Resolves user-supplied names to canonical graph entities:
- Players (only those allowed on site)
- Teams
- Oppositions
- Leagues
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Any, Callable, Dict, List, Literal, Optional

from ..graph.store import GraphStore
from .models import EntityReference

logger = logging.getLogger(__name__)

EntityType = Literal["player", "team", "opposition", "league"]
ENTITY_TYPES = ("player", "team", "opposition", "league")

MIN_CONFIDENCE = 0.6
MAX_SUGGESTIONS = 3

CATALOG_QUERIES: Dict[str, str] = {
    "player": (
        "MATCH (e:Player {graphLabel: $graph_label}) "
        "WHERE e.allowOnSite = true AND e.playerName IS NOT NULL "
        "RETURN DISTINCT e.playerName AS entityName ORDER BY entityName"
    ),
    "team": (
        "MATCH (e:Team {graphLabel: $graph_label}) "
        "WHERE e.teamName IS NOT NULL "
        "RETURN DISTINCT e.teamName AS entityName ORDER BY entityName"
    ),
    "opposition": (
        "MATCH (e:Opposition {graphLabel: $graph_label}) "
        "WHERE e.oppositionName IS NOT NULL "
        "RETURN DISTINCT e.oppositionName AS entityName ORDER BY entityName"
    ),
    "league": (
        "MATCH (e:League {graphLabel: $graph_label}) "
        "WHERE e.leagueName IS NOT NULL "
        "RETURN DISTINCT e.leagueName AS entityName ORDER BY entityName"
    ),
}


# ============================================================================
# FUZZY MATCH STRATEGIES
# ============================================================================

SimilarityFn = Callable[[str, str], float]


def normalize_name(name: str) -> str:
    """Trim, collapse whitespace, drop punctuation and lowercase."""
    cleaned = re.sub(r"[^\w\s]", "", name or "")
    return re.sub(r"\s+", " ", cleaned).strip().lower()


def sequence_similarity(query: str, candidate: str) -> float:
    """
    Similarity score between two names (0.0-1.0).

    Args:
        query: User-supplied name
        candidate: Catalog name

    Returns:
        Ratio from difflib.SequenceMatcher on normalized names
    """
    return SequenceMatcher(None, normalize_name(query), normalize_name(candidate)).ratio()


def _bigrams(text: str) -> List[str]:
    return [text[i : i + 2] for i in range(len(text) - 1)]


def dice_similarity(query: str, candidate: str) -> float:
    """Sørensen-Dice coefficient over character bigrams."""
    a = _bigrams(normalize_name(query).replace(" ", ""))
    b = _bigrams(normalize_name(candidate).replace(" ", ""))
    if not a or not b:
        return 1.0 if normalize_name(query) == normalize_name(candidate) else 0.0

    remaining = list(b)
    overlap = 0
    for gram in a:
        if gram in remaining:
            remaining.remove(gram)
            overlap += 1
    return 2.0 * overlap / (len(a) + len(b))


def blended_similarity(query: str, candidate: str) -> float:
    """Average of sequence and Dice similarity."""
    return (sequence_similarity(query, candidate) + dice_similarity(query, candidate)) / 2


# ============================================================================
# RESOLUTION RESULT
# ============================================================================


@dataclass
class EntityCandidate:
    """One scored catalog entry."""

    name: str
    type: str
    score: float
    source: str = "graph"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "score": round(self.score, 3),
            "source": self.source,
        }


@dataclass
class ResolutionResult:
    """
    Outcome of resolving one name.

    status distinguishes an exact hit, a miss with close candidates, and a
    miss where nothing scored above the threshold.
    """

    query: str
    entity_type: str
    matched: bool
    canonical_name: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    candidates: List[EntityCandidate] = field(default_factory=list)

    @property
    def status(self) -> Literal["exact", "suggestions", "not_found"]:
        if self.matched:
            return "exact"
        return "suggestions" if self.suggestions else "not_found"

    def to_reference(self) -> EntityReference:
        best = self.candidates[0].score if self.candidates else 0.0
        return EntityReference(
            entity_type=self.entity_type,
            query=self.query,
            matched=self.matched,
            name=self.canonical_name,
            confidence=1.0 if self.matched else min(best, 1.0),
            suggestions=self.suggestions,
        )


# ============================================================================
# ENTITY CATALOG
# ============================================================================


class EntityCatalog:
    """
    Type-partitioned name catalog loaded from the graph store.

    Readers always get the current snapshot. When the snapshot is older than
    the TTL (or invalidated) a background refresh is scheduled and readers
    keep using the previous snapshot until it completes.
    """

    def __init__(self, store: GraphStore, ttl_seconds: int = 300):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, List[str]] = {t: [] for t in ENTITY_TYPES}
        self._loaded_at: Optional[float] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def is_loaded(self) -> bool:
        return self._loaded_at is not None

    def is_stale(self) -> bool:
        if self._loaded_at is None:
            return True
        return time.time() - self._loaded_at > self.ttl_seconds

    def names(self, entity_type: str) -> List[str]:
        return self._entries.get(entity_type, [])

    def snapshot(self) -> Dict[str, List[str]]:
        return {t: list(names) for t, names in self._entries.items()}

    def set_entries(self, entries: Dict[str, List[str]]) -> None:
        """Replace the snapshot directly (used for preloaded catalogs)."""
        self._entries = {t: list(entries.get(t, [])) for t in ENTITY_TYPES}
        self._loaded_at = time.time()

    def invalidate(self) -> None:
        """Mark the snapshot stale; the next ensure_fresh() refreshes it."""
        self._loaded_at = None if not self.is_loaded else 0.0

    async def refresh(self) -> None:
        """Reload every entity type; keeps the old snapshot on failure."""
        loaded: Dict[str, List[str]] = {}
        for entity_type, query in CATALOG_QUERIES.items():
            rows = await self.store.execute_query(query)
            loaded[entity_type] = [r["entityName"] for r in rows if r.get("entityName")]

        self._entries = loaded
        self._loaded_at = time.time()
        logger.info(
            "Entity catalog refreshed: "
            + ", ".join(f"{t}={len(n)}" for t, n in loaded.items())
        )

    async def _background_refresh(self) -> None:
        try:
            await self.refresh()
        except Exception as e:
            logger.warning(f"Catalog refresh failed, serving previous snapshot: {e}")

    async def ensure_fresh(self) -> None:
        """
        Make sure a snapshot exists and schedule a refresh if it is stale.

        Only the very first load is awaited.
        """
        if not self.is_loaded:
            await self.refresh()
            return

        if self.is_stale() and (self._refresh_task is None or self._refresh_task.done()):
            logger.debug("Catalog stale, scheduling background refresh")
            self._refresh_task = asyncio.create_task(self._background_refresh())


# ============================================================================
# RESOLVER
# ============================================================================


class EntityResolver:
    """
    Resolve names against an EntityCatalog with a swappable similarity function.

    Example:
        resolver = EntityResolver(catalog)
        result = resolver.resolve("luke bang", "player")
        result.matched       # False
        result.suggestions   # ["Luke Bangs"]
    """

    def __init__(
        self,
        catalog: EntityCatalog,
        similarity: SimilarityFn = sequence_similarity,
        min_confidence: float = MIN_CONFIDENCE,
        max_suggestions: int = MAX_SUGGESTIONS,
    ):
        self.catalog = catalog
        self.similarity = similarity
        self.min_confidence = min_confidence
        self.max_suggestions = max_suggestions

    def rank_suggestions(
        self, query: str, entity_type: str, top_n: Optional[int] = None
    ) -> List[EntityCandidate]:
        """
        Rank catalog entries of one type by similarity to the query.

        Args:
            query: User-supplied name
            entity_type: player, team, opposition or league
            top_n: Maximum number of candidates (defaults to max_suggestions)

        Returns:
            Candidates at or above min_confidence, best first (ties by name)
        """
        limit = top_n or self.max_suggestions
        scored = [
            EntityCandidate(name=name, type=entity_type, score=self.similarity(query, name))
            for name in self.catalog.names(entity_type)
        ]
        scored = [c for c in scored if c.score >= self.min_confidence]
        scored.sort(key=lambda c: (-c.score, c.name))
        return scored[:limit]

    def find_exact(self, name: str, entity_type: str) -> Optional[str]:
        target = normalize_name(name)
        for candidate in self.catalog.names(entity_type):
            if normalize_name(candidate) == target:
                return candidate
        return None

    def resolve(self, name: str, entity_type: str) -> ResolutionResult:
        """
        Resolve one name.

        Args:
            name: User-supplied name
            entity_type: player, team, opposition or league

        Returns:
            ResolutionResult; matched only on an exact (normalized) match
        """
        exact = self.find_exact(name, entity_type)
        if exact:
            return ResolutionResult(
                query=name, entity_type=entity_type, matched=True, canonical_name=exact
            )

        candidates = self.rank_suggestions(name, entity_type)
        logger.debug(
            f"No exact {entity_type} match for '{name}', "
            f"{len(candidates)} candidate(s) above {self.min_confidence}"
        )
        return ResolutionResult(
            query=name,
            entity_type=entity_type,
            matched=False,
            suggestions=[c.name for c in candidates],
            candidates=candidates,
        )
