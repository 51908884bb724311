# clubstats_mcp/api/errors.py
"""
Error taxonomy for the club statistics engine.

Provides:
1. Error code constants shared by the server envelope and the NLQ pipeline
2. Exception hierarchy for each failure mode of the question pipeline
3. Classification of raw graph-store failures into query failure reasons
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# ============================================================================
# ERROR CODES
# ============================================================================


class ErrorCode:
    """Standard error codes for the club statistics engine."""

    # Client errors (4xx equivalent)
    INVALID_PARAMETER = "INVALID_PARAMETER"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    INVALID_METRIC = "INVALID_METRIC"
    INVALID_FILTER = "INVALID_FILTER"
    AMBIGUOUS_QUESTION = "AMBIGUOUS_QUESTION"

    # Graph store errors (5xx equivalent)
    QUERY_FAILED = "QUERY_FAILED"
    QUERY_TIMEOUT = "QUERY_TIMEOUT"
    GRAPH_UNAVAILABLE = "GRAPH_UNAVAILABLE"

    # Infrastructure errors
    CONTEXT_STORE_ERROR = "CONTEXT_STORE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Error kinds carried by QueryResult.error; one per user-facing message family
ERROR_KINDS = (
    "entity_not_found",
    "invalid_metric",
    "query_failed",
    "ambiguous_query",
    "internal",
)


# ============================================================================
# EXCEPTION HIERARCHY
# ============================================================================


class ClubStatsError(Exception):
    """Base exception for all club statistics engine errors."""

    kind = "internal"

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for ResponseEnvelope."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ClubStatsError):
    """Raised at the server boundary when a request is malformed."""

    def __init__(self, param_name: str, param_value: Any, expected: str):
        super().__init__(
            message=f"Invalid parameter '{param_name}': expected {expected}",
            code=ErrorCode.INVALID_PARAMETER,
            details={
                "param_name": param_name,
                "param_length": len(param_value) if isinstance(param_value, str) else None,
                "expected": expected,
            },
        )


class EntityNotFoundError(ClubStatsError):
    """Raised when a player/team/opposition/league name cannot be resolved."""

    kind = "entity_not_found"

    def __init__(
        self, entity_type: str, query: str, suggestions: Optional[List[str]] = None
    ):
        super().__init__(
            message=f"{entity_type.capitalize()} '{query}' not found",
            code=ErrorCode.ENTITY_NOT_FOUND,
            details={
                "entity_type": entity_type,
                "query": query,
                "suggestions": suggestions or [],
            },
        )
        self.entity_type = entity_type
        self.query = query
        self.suggestions = suggestions or []


class InvalidMetricError(ClubStatsError):
    """Raised when a metric code has no descriptor or does not fit the question."""

    kind = "invalid_metric"

    def __init__(self, metric: str, context: str = "player"):
        super().__init__(
            message=f"Metric '{metric}' is not available for {context} questions",
            code=ErrorCode.INVALID_METRIC,
            details={"metric": metric, "context": context},
        )
        self.metric = metric
        self.context = context


class InvalidFilterError(ClubStatsError):
    """Raised when a FilterSpec cannot be compiled."""

    kind = "internal"

    def __init__(self, field_name: str, value: Any):
        super().__init__(
            message=f"Unsupported filter value for '{field_name}': {value}",
            code=ErrorCode.INVALID_FILTER,
            details={"field": field_name, "value": str(value)},
        )


class AmbiguousQuestionError(ClubStatsError):
    """Raised when a question cannot be answered without clarification."""

    kind = "ambiguous_query"

    def __init__(self, message: str, reason: str = "unclear"):
        super().__init__(
            message=message,
            code=ErrorCode.AMBIGUOUS_QUESTION,
            details={"reason": reason},
        )
        self.reason = reason


class QueryExecutionError(ClubStatsError):
    """Raised when the graph store fails (timeout, syntax, connection)."""

    kind = "query_failed"

    def __init__(self, message: str, reason: str = "unknown"):
        code = {
            "timeout": ErrorCode.QUERY_TIMEOUT,
            "connection": ErrorCode.GRAPH_UNAVAILABLE,
        }.get(reason, ErrorCode.QUERY_FAILED)
        super().__init__(message=message, code=code, details={"reason": reason})
        self.reason = reason


class InternalError(ClubStatsError):
    """Unexpected failure inside the engine."""

    def __init__(self, message: str = "Unexpected internal error"):
        super().__init__(message=message, code=ErrorCode.INTERNAL_ERROR)


# ============================================================================
# FAILURE CLASSIFICATION
# ============================================================================


def classify_query_failure(error_text: str) -> str:
    """
    Classify raw error text from the graph store into a failure reason.

    Args:
        error_text: Exception message or driver error text

    Returns:
        One of "timeout", "syntax", "not_found", "connection", "unknown"

    Examples:
        >>> classify_query_failure("Transaction timed out after 10s")
        'timeout'
        >>> classify_query_failure("Invalid input 'RETRN': expected ...")
        'syntax'
    """
    text = (error_text or "").lower()
    if "timeout" in text or "timed out" in text:
        return "timeout"
    if "syntax" in text or "invalid input" in text:
        return "syntax"
    if "not found" in text or "does not exist" in text:
        return "not_found"
    if "connection" in text or "unavailable" in text or "refused" in text:
        return "connection"
    return "unknown"
