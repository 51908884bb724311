# clubstats_mcp/api/models.py
"""
Standard response envelope and data models for the club statistics server.

Every MCP tool returns a ResponseEnvelope serialized with sorted keys.
ChatbotResponse is the payload of ask_club_question; EntityReference and
MetricInfo back the catalog tools.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# RESPONSE ENVELOPE
# ============================================================================


class ErrorDetail(BaseModel):
    """Structured error information."""

    code: str = Field(
        ..., description="Error code (e.g., 'INVALID_PARAMETER', 'ENTITY_NOT_FOUND')"
    )
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        None, description="Additional error context"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "code": "INVALID_PARAMETER",
                "message": "Invalid parameter 'question': expected 1-1000 characters",
                "details": {"param_name": "question", "param_length": 1204},
            }
        }
    )


class ResponseMetadata(BaseModel):
    """Metadata for every response."""

    version: str = Field(default="v1", description="API version")
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc)
        .isoformat()
        .replace("+00:00", "Z"),
        description="ISO-8601 UTC timestamp",
    )
    source: Literal["graph", "catalog", "static"] = Field(
        default="graph", description="Data source type"
    )
    execution_time_ms: Optional[float] = Field(
        None, description="Tool execution time in milliseconds"
    )


class ResponseEnvelope(BaseModel):
    """
    Universal response envelope for all club statistics tools.

    Conversational failures (unknown player, ambiguous question) are still
    'success' envelopes carrying a friendly answer; only malformed requests
    produce status='error'.
    """

    status: Literal["success", "error"] = Field(..., description="Response status")
    data: Optional[Any] = Field(None, description="Response payload")
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)
    errors: Optional[List[ErrorDetail]] = Field(
        None, description="Error details (present if status != success)"
    )

    def to_json_string(self, **kwargs) -> str:
        """
        Serialize to JSON with sorted keys so identical answers compare equal.
        """
        return json.dumps(
            self.model_dump(mode="json"),
            sort_keys=True,
            **kwargs,
        )


# ============================================================================
# QUESTION / ANSWER MODELS
# ============================================================================


class ChatbotResponse(BaseModel):
    """
    Answer to one natural-language question.

    `debug` is only populated in development mode and never carries stack
    traces.
    """

    answer: str = Field(..., description="Natural-language answer")
    sources: List[str] = Field(default_factory=list, description="Data sources used")
    visualization: Optional[Dict[str, Any]] = Field(
        None, description="Structured data for charts/tables"
    )
    debug: Optional[Dict[str, Any]] = Field(
        None, description="Query text and processing steps (development only)"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "answer": "Luke Bangs has scored 42 goals.",
                "sources": ["Player match records"],
                "visualization": {
                    "type": "stat_card",
                    "title": "Luke Bangs",
                    "data": [{"metric": "Goals", "value": 42}],
                },
                "debug": None,
            }
        }
    )


class EntityReference(BaseModel):
    """
    Resolved entity reference (player, team, opposition, league).
    Returned by the resolve_club_entity tool.
    """

    entity_type: Literal["player", "team", "opposition", "league"] = Field(
        ..., description="Type of entity resolved"
    )
    query: str = Field(..., description="Name as supplied by the caller")
    matched: bool = Field(..., description="True when an exact catalog entry exists")
    name: Optional[str] = Field(None, description="Canonical catalog name")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Best match score")
    suggestions: List[str] = Field(default_factory=list)


class MetricInfo(BaseModel):
    """Public description of one supported metric."""

    code: str
    name: str
    aliases: List[str] = Field(default_factory=list)
    per_appearance: bool = False
    player_metric: bool = True
    team_metric: bool = False


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================


def success_response(
    data: Any,
    source: Literal["graph", "catalog", "static"] = "graph",
    execution_time_ms: Optional[float] = None,
) -> ResponseEnvelope:
    """
    Create a success response envelope.

    Args:
        data: Tool-specific response data
        source: Data source type
        execution_time_ms: Execution time in milliseconds

    Returns:
        ResponseEnvelope with status="success"
    """
    return ResponseEnvelope(
        status="success",
        data=data,
        metadata=ResponseMetadata(source=source, execution_time_ms=execution_time_ms),
        errors=None,
    )


def error_response(
    error_code: str,
    error_message: str,
    details: Optional[Dict[str, Any]] = None,
) -> ResponseEnvelope:
    """
    Create an error response envelope.

    Args:
        error_code: Error code (e.g., 'INVALID_PARAMETER')
        error_message: Human-readable error message
        details: Additional error context

    Returns:
        ResponseEnvelope with status="error"
    """
    return ResponseEnvelope(
        status="error",
        data=None,
        metadata=ResponseMetadata(),
        errors=[ErrorDetail(code=error_code, message=error_message, details=details)],
    )
