# clubstats_mcp/nlq/context.py
"""
Conversation context manager.

Keeps a short per-session history so follow-up questions such as
"How many did he get in 2019/20?" can borrow the player and metric from the
previous turn. Contexts live in an injectable ContextStore and are evicted
by a periodic sweep once idle for longer than max_idle_seconds.
"""

import asyncio
import copy
import logging
import re
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..cache.context_store import ContextStore
from .parser import QuestionAnalysis, extract_time_range

logger = logging.getLogger(__name__)

MAX_HISTORY = 3
MAX_IDLE_SECONDS = 3600

PRONOUN_CUE = re.compile(
    r"\b(those|that|them|it|this|these|they|he|she|his|her|their)\b", re.IGNORECASE
)
TEMPORAL_CUE = re.compile(
    r"\b(in|during|for)\s+(\d{4}\s*[/-]\s*\d{2,4}|\d{4})\b", re.IGNORECASE
)
QUANTITY_CUE = re.compile(r"\b(how many|how much)\b", re.IGNORECASE)
QUESTION_WORD = re.compile(
    r"\b(who|whose|what|which|how|when|where|why|did|does|do|has|have|is|are|was|were|can|could)\b",
    re.IGNORECASE,
)


# ============================================================================
# DATA CLASSES
# ============================================================================


@dataclass
class ConversationContext:
    """Bounded history for one session."""

    session_id: str
    history: List[Dict[str, Any]] = field(default_factory=list)
    last_question: Optional[str] = None
    last_activity: float = field(default_factory=time.time)
    pending_clarification: Optional[Dict[str, Any]] = None

    def append(self, question: str, analysis: QuestionAnalysis, max_history: int = MAX_HISTORY):
        self.history.append(
            {
                "question": question,
                "analysis": analysis.to_dict(),
                "timestamp": time.time(),
            }
        )
        if len(self.history) > max_history:
            self.history = self.history[-max_history:]

    def last_analysis(self) -> Optional[QuestionAnalysis]:
        if not self.history:
            return None
        return QuestionAnalysis.from_dict(self.history[-1]["analysis"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "history": self.history,
            "last_question": self.last_question,
            "last_activity": self.last_activity,
            "pending_clarification": self.pending_clarification,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationContext":
        return cls(
            session_id=data["session_id"],
            history=list(data.get("history", [])),
            last_question=data.get("last_question"),
            last_activity=float(data.get("last_activity", time.time())),
            pending_clarification=data.get("pending_clarification"),
        )


# ============================================================================
# CUE DETECTION
# ============================================================================


def detect_referential_cue(question: str) -> Optional[str]:
    """
    Find the first referential cue in a question.

    Returns:
        "temporal", "pronoun" or "quantity", or None
    """
    if TEMPORAL_CUE.search(question):
        return "temporal"
    if PRONOUN_CUE.search(question):
        return "pronoun"
    if QUANTITY_CUE.search(question):
        return "quantity"
    return None


def is_bare_reply(question: str) -> bool:
    """
    True for a clarification answer such as "Luke Bangs" or "goals".

    Examples:
        >>> is_bare_reply("Luke Bangs")
        True
        >>> is_bare_reply("Who has scored the most goals?")
        False
    """
    return bool(question.strip()) and QUESTION_WORD.search(question) is None


# ============================================================================
# MANAGER
# ============================================================================


class ContextManager:
    """
    Merge follow-up questions with session history.

    Appends for the same session are serialized with a per-session lock;
    different sessions never block each other.
    """

    def __init__(
        self,
        store: ContextStore,
        max_history: int = MAX_HISTORY,
        max_idle_seconds: float = MAX_IDLE_SECONDS,
    ):
        self.store = store
        self.max_history = max_history
        self.max_idle_seconds = max_idle_seconds
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._sweeper: Optional[asyncio.Task] = None

    async def get_context(self, session_id: str) -> Optional[ConversationContext]:
        data = await self.store.get(session_id)
        return ConversationContext.from_dict(data) if data else None

    async def merge_context(
        self, session_id: str, analysis: QuestionAnalysis
    ) -> QuestionAnalysis:
        """
        Back-fill missing entities/metrics from the session.

        Args:
            session_id: Opaque session identifier
            analysis: Analysis of the new question

        Returns:
            A merged copy; the input analysis is not modified
        """
        context = await self.get_context(session_id)
        merged = copy.deepcopy(analysis)
        if context is None:
            return merged

        steps: List[str] = []
        cue = detect_referential_cue(analysis.question)

        if context.pending_clarification and (
            cue is not None or is_bare_reply(analysis.question)
        ):
            pending = QuestionAnalysis.from_dict(context.pending_clarification)
            if not merged.entities and pending.entities:
                merged.entities = copy.deepcopy(pending.entities)
                steps.append("entities_from_pending")
            if not merged.metrics and pending.metrics:
                merged.metrics = list(pending.metrics)
                steps.append("metrics_from_pending")
            if (
                steps
                and merged.time_range.is_all_time
                and not pending.time_range.is_all_time
            ):
                merged.time_range = copy.deepcopy(pending.time_range)
                steps.append("time_range_from_pending")
            if steps:
                merged.modifiers["context_merge"] = steps
                return merged

        if cue is None:
            return merged

        previous = context.last_analysis()
        if previous is not None:
            if not merged.entities and previous.entities:
                merged.entities = copy.deepcopy(previous.entities)
                steps.append("entities")
            if not merged.metrics and previous.metrics:
                merged.metrics = list(previous.metrics)
                steps.append("metrics")

        temporal = TEMPORAL_CUE.search(analysis.question)
        if temporal:
            time_range = extract_time_range(temporal.group(0), [])
            if not time_range.is_all_time:
                merged.time_range = time_range
                steps.append("time_range")

        if steps:
            merged.modifiers["context_merge"] = steps
            logger.debug(f"Session {session_id}: merged {steps} (cue={cue})")
        return merged

    async def add_turn(self, session_id: str, analysis: QuestionAnalysis) -> ConversationContext:
        """
        Record a processed question.

        Every turn joins the history; an ambiguous turn also becomes the
        pending clarification until the next unambiguous one.
        """
        async with self._locks[session_id]:
            context = await self.get_context(session_id) or ConversationContext(
                session_id=session_id
            )
            context.last_question = analysis.question
            context.last_activity = time.time()
            if analysis.type == "ambiguous":
                context.pending_clarification = analysis.to_dict()
            else:
                context.pending_clarification = None
            context.append(analysis.question, analysis, self.max_history)
            await self.store.set(session_id, context.to_dict())
            return context

    async def clear(self, session_id: str) -> None:
        async with self._locks[session_id]:
            await self.store.delete(session_id)
        self._locks.pop(session_id, None)

    async def sweep(self, now: Optional[float] = None) -> int:
        """Remove idle contexts and their locks."""
        removed = await self.store.sweep(self.max_idle_seconds, now=now)
        live = set(await self.store.keys())
        for session_id in [s for s in self._locks if s not in live]:
            lock = self._locks[session_id]
            if not lock.locked():
                self._locks.pop(session_id, None)
        if removed:
            logger.info(f"Swept {removed} idle conversation context(s)")
        return removed

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.sweep()
            except Exception as e:
                logger.warning(f"Context sweep failed: {e}")

    def start_sweeper(self, interval_seconds: float = 300) -> asyncio.Task:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(interval_seconds))
            logger.info(f"Context sweeper started (every {interval_seconds}s)")
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
