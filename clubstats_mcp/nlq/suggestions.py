# clubstats_mcp/nlq/suggestions.py
"""
Error & suggestion engine.

Turns a QueryError into a conversational answer. Failures never surface
as exceptions or stack traces to the user: each error kind gets a message
family of its own, with spelling suggestions, metric alternatives or
rephrasing tips where they help.
"""

import logging
from difflib import SequenceMatcher
from typing import List, Optional

from ..api.entity_resolver import EntityResolver
from ..api.errors import classify_query_failure
from .handlers import QueryError
from .parser import CLARIFICATION_MESSAGES
from .vocabulary import METRIC_CATALOG, PLAYER_VOCABULARY, TEAM_VOCABULARY

logger = logging.getLogger(__name__)

MAX_METRIC_SUGGESTIONS = 5

QUERY_FAILURE_TIPS = [
    "Try rephrasing your question",
    "Check that all names are spelled correctly",
    "Simplify your question if it's complex",
]

QUERY_FAILURE_MESSAGES = {
    "timeout": "That question took too long to answer.",
    "syntax": "I had trouble turning that question into a database query.",
    "not_found": "I couldn't find the data needed to answer that question.",
    "connection": "I can't reach the club statistics database right now.",
    "unknown": "Something went wrong while looking up the answer.",
}

INTERNAL_MESSAGE = (
    "Sorry, something went wrong while answering your question. Please try again."
)


def entity_not_found_message(
    entity_type: str, name: str, suggestions: Optional[List[str]] = None
) -> str:
    """
    Message for a name that matched nothing in the catalog.

    Examples:
        >>> entity_not_found_message("player", "Luke Bang", ["Luke Bangs"])
        'I couldn\\'t find a player named "Luke Bang" in the database. Did you mean: Luke Bangs?'
    """
    message = f'I couldn\'t find a {entity_type} named "{name}" in the database.'
    if suggestions:
        return f"{message} Did you mean: {', '.join(suggestions[:3])}?"
    return f"{message} Please check the spelling and try again."


def rank_metric_alternatives(metric: str, vocabulary: List[str]) -> List[str]:
    """Display names from the vocabulary, closest to the requested metric first."""
    target = metric.lower()

    def score(code: str) -> float:
        descriptor = METRIC_CATALOG[code]
        names = [code.lower(), descriptor.plural.lower()] + [a.lower() for a in descriptor.aliases]
        return max(SequenceMatcher(None, target, n).ratio() for n in names)

    ranked = sorted(vocabulary, key=lambda code: (-score(code), code))
    return [METRIC_CATALOG[code].plural for code in ranked[:MAX_METRIC_SUGGESTIONS]]


def invalid_metric_message(metric: str, context: str = "player") -> str:
    vocabulary = TEAM_VOCABULARY if context in ("team", "club") else PLAYER_VOCABULARY
    descriptor = METRIC_CATALOG.get(metric)
    label = descriptor.plural if descriptor else metric
    alternatives = rank_metric_alternatives(metric, vocabulary)
    return (
        f"I can't answer questions about {label} for a {context}. "
        f"Try one of these instead: {', '.join(alternatives)}."
    )


def query_failed_message(error_text: str, reason: Optional[str] = None) -> str:
    reason = reason if reason in QUERY_FAILURE_MESSAGES else classify_query_failure(error_text)
    tips = "\n".join(f"- {tip}" for tip in QUERY_FAILURE_TIPS)
    return f"{QUERY_FAILURE_MESSAGES[reason]}\n\n{tips}"


def generate_error_response(
    error: QueryError, resolver: Optional[EntityResolver] = None
) -> str:
    """
    Conversational message for a failed question.

    Args:
        error: Error carried by the handler result
        resolver: Used to look up suggestions when the error carries none

    Returns:
        Message safe to show to the user
    """
    logger.debug(f"Generating error response for kind={error.kind}")
    details = error.details or {}

    if error.kind == "entity_not_found":
        entity_type = details.get("entity_type", "player")
        name = details.get("query", "")
        suggestions = list(details.get("suggestions") or [])
        if not suggestions and resolver is not None and name:
            suggestions = resolver.resolve(name, entity_type).suggestions
        return entity_not_found_message(entity_type, name, suggestions)

    if error.kind == "invalid_metric":
        return invalid_metric_message(details.get("metric", ""), details.get("context", "player"))

    if error.kind == "query_failed":
        return query_failed_message(error.message, details.get("reason"))

    if error.kind == "ambiguous_query":
        reason = details.get("reason", "missing_both")
        return CLARIFICATION_MESSAGES.get(reason, error.message)

    return INTERNAL_MESSAGE
