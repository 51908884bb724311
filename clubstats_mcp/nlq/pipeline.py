# clubstats_mcp/nlq/pipeline.py
"""
Complete NLQ Pipeline Interface.

QuestionProcessor.process_question() answers one club statistics question:
1. Make sure the entity catalog is loaded (stale snapshots refresh in the
   background)
2. Analyze the question
3. Substitute the user's own name for first-person references
4. Merge with the session's conversation context and reclassify
5. Resolve names the analyzer could not match exactly
6. Record the turn
7. Dispatch to a handler
8. Format the answer, or a conversational error message

Every stage is timed into NLQ_PIPELINE_STAGE_DURATION.
"""

import logging
import re
import time
from typing import Any, Dict, List, Optional

from ..api.entity_resolver import EntityCatalog, EntityResolver
from ..api.errors import ClubStatsError, EntityNotFoundError, InternalError
from ..api.models import ChatbotResponse
from ..cache.context_store import ContextStore, InMemoryContextStore
from ..config import EngineConfig
from ..graph.store import GraphStore
from ..observability.metrics import MetricsManager, get_metrics_manager, track_nlq_stage
from .context import ContextManager
from .dispatcher import dispatch
from .handlers import HandlerContext, QueryResult
from .parser import Entity, QuestionAnalysis, analyze_question, classify_question
from .suggestions import generate_error_response
from .synthesizer import synthesize_response

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"

FIRST_PERSON_SUBSTITUTIONS = [
    (re.compile(r"\bhave i\b", re.IGNORECASE), "has {name}"),
    (re.compile(r"\bi have\b", re.IGNORECASE), "{name} has"),
    (re.compile(r"\bi've\b", re.IGNORECASE), "{name} has"),
    (re.compile(r"\bam i\b", re.IGNORECASE), "is {name}"),
    (re.compile(r"\bi'm\b", re.IGNORECASE), "{name} is"),
    (re.compile(r"\bmy\b", re.IGNORECASE), "{name}'s"),
    (re.compile(r"\b(?:me|myself)\b", re.IGNORECASE), "{name}"),
    (re.compile(r"\bi\b", re.IGNORECASE), "{name}"),
]


def substitute_user_context(question: str, user_name: str) -> str:
    """
    Replace first-person references with the user's player name.

    Examples:
        >>> substitute_user_context("How many goals have I scored?", "Luke Bangs")
        'How many goals has Luke Bangs scored?'
    """
    text = question
    for pattern, replacement in FIRST_PERSON_SUBSTITUTIONS:
        text = pattern.sub(replacement.format(name=user_name), text)
    return text


class QuestionProcessor:
    """
    Answers natural-language questions about club statistics.

    Example:
        processor = QuestionProcessor(store, config)
        response = await processor.process_question(
            "How many goals has Luke Bangs scored?", session_id="abc"
        )
        response.answer  # "Luke Bangs has scored 42 goals."
    """

    def __init__(
        self,
        store: GraphStore,
        config: Optional[EngineConfig] = None,
        context_store: Optional[ContextStore] = None,
        resolver: Optional[EntityResolver] = None,
        metrics: Optional[MetricsManager] = None,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.catalog = (
            resolver.catalog
            if resolver is not None
            else EntityCatalog(store, ttl_seconds=self.config.catalog_ttl_seconds)
        )
        self.resolver = resolver or EntityResolver(self.catalog)
        self.context = ContextManager(
            context_store or InMemoryContextStore(),
            max_idle_seconds=self.config.context_max_idle_seconds,
        )
        self.metrics = metrics or get_metrics_manager()

    # ────────────────────────────────────────────────────────────────────
    # Stages
    # ────────────────────────────────────────────────────────────────────

    def _substitute_first_person(
        self, analysis: QuestionAnalysis, user_context: Optional[str]
    ) -> QuestionAnalysis:
        if not user_context or not analysis.modifiers.get("first_person"):
            return analysis
        rewritten = substitute_user_context(analysis.question, user_context)
        logger.debug(f"First-person question rewritten for '{user_context}'")
        return analyze_question(rewritten, self.catalog.snapshot())

    def _resolve_entities(self, analysis: QuestionAnalysis) -> Optional[EntityNotFoundError]:
        """
        Swap unresolved names for their canonical catalog entries.

        Returns:
            EntityNotFoundError for the first name with no exact match
        """
        resolved: List[Entity] = []
        for entity in analysis.entities:
            if entity.resolved:
                resolved.append(entity)
                continue
            result = self.resolver.resolve(entity.name, entity.type)
            if not result.matched:
                return EntityNotFoundError(entity.type, entity.name, result.suggestions)
            resolved.append(Entity(name=result.canonical_name, type=entity.type))
        analysis.entities = resolved
        return None

    def _debug_payload(
        self, analysis: QuestionAnalysis, result: QueryResult, steps: List[str]
    ) -> Optional[Dict[str, Any]]:
        if not self.config.is_development:
            return None
        return {
            "analysis": analysis.to_dict(),
            "result_type": result.type,
            "queries": result.queries,
            "processing_steps": steps,
        }

    # ────────────────────────────────────────────────────────────────────
    # Main entry point
    # ────────────────────────────────────────────────────────────────────

    async def process_question(
        self,
        question: str,
        user_context: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> ChatbotResponse:
        """
        Answer one question.

        Args:
            question: Natural-language question
            user_context: The asking player's name, used for "I"/"my" questions
            session_id: Conversation identifier (defaults to "default")

        Returns:
            ChatbotResponse; failures come back as a conversational answer
        """
        session_id = session_id or DEFAULT_SESSION_ID
        steps: List[str] = []
        start_time = time.perf_counter()
        logger.info(f"Processing question for session {session_id}: '{question}'")

        try:
            response, analysis, result = await self._run_stages(
                question, user_context, session_id, steps
            )
        except ClubStatsError as e:
            # Catalog load or context store failure before a handler ran
            logger.error(f"Question pipeline failed ({e.code}): {e.message}")
            analysis = QuestionAnalysis(question=question, type="unknown")
            result = QueryResult.failure(e)
            response = self._format(analysis, result, steps)
        except Exception as e:
            logger.exception(f"Unexpected failure answering question: {e}")
            analysis = QuestionAnalysis(question=question, type="unknown")
            result = QueryResult.failure(InternalError())
            response = self._format(analysis, result, steps)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(f"Answered {analysis.type} question in {elapsed_ms:.1f}ms ({result.type})")
        return response

    async def _run_stages(
        self,
        question: str,
        user_context: Optional[str],
        session_id: str,
        steps: List[str],
    ):
        with track_nlq_stage("catalog", self.metrics):
            await self.catalog.ensure_fresh()
            self.metrics.update_catalog_size(self.catalog.snapshot())

        with track_nlq_stage("analyze", self.metrics):
            analysis = analyze_question(question, self.catalog.snapshot())
            analysis = self._substitute_first_person(analysis, user_context)
        steps.append(f"analyzed: type={analysis.type}")

        with track_nlq_stage("merge", self.metrics):
            analysis = await self.context.merge_context(session_id, analysis)
            classify_question(analysis)
        if analysis.modifiers.get("context_merge"):
            steps.append(f"context merged: {analysis.modifiers['context_merge']}")

        with track_nlq_stage("resolve", self.metrics):
            not_found = self._resolve_entities(analysis)

        with track_nlq_stage("record", self.metrics):
            await self.context.add_turn(session_id, analysis)
            self.metrics.set_active_sessions(len(await self.context.store.keys()))

        if not_found is not None:
            steps.append(f"unresolved {not_found.entity_type}: {not_found.query}")
            result = QueryResult.failure(not_found)
        else:
            with track_nlq_stage("dispatch", self.metrics):
                ctx = HandlerContext(
                    store=self.store,
                    config=self.config,
                    resolver=self.resolver,
                    metrics=self.metrics,
                )
                result = await dispatch(analysis, ctx)
            steps.append(f"dispatched: {result.type}")

        with track_nlq_stage("format", self.metrics):
            response = self._format(analysis, result, steps)
        return response, analysis, result

    def _format(
        self, analysis: QuestionAnalysis, result: QueryResult, steps: List[str]
    ) -> ChatbotResponse:
        if result.error is not None:
            self.metrics.record_error(result.error.kind)
            self.metrics.record_question(analysis.type, "error")
            return ChatbotResponse(
                answer=generate_error_response(result.error, self.resolver),
                sources=[],
                debug=self._debug_payload(analysis, result, steps),
            )

        synthesized = synthesize_response(result)
        status = "clarification" if result.type == "ambiguous" else "answered"
        self.metrics.record_question(analysis.type, status)
        return ChatbotResponse(
            answer=synthesized.answer,
            sources=synthesized.sources,
            visualization=synthesized.visualization,
            debug=self._debug_payload(analysis, result, steps),
        )

    # ────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ────────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Connect the store, load the catalog and start the context sweeper."""
        await self.store.connect()
        await self.catalog.ensure_fresh()
        self.context.start_sweeper(self.config.context_sweep_interval_seconds)

    async def close(self) -> None:
        await self.context.stop_sweeper()
        await self.context.store.close()
        await self.store.close()
