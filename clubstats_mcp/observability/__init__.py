"""
Observability module for the club statistics server.

Provides Prometheus metrics for the question pipeline.
"""

from clubstats_mcp.observability.metrics import (
    ERROR_COUNT,
    GRAPH_QUERY_DURATION,
    NLQ_PIPELINE_STAGE_DURATION,
    QUESTION_COUNT,
    REQUEST_COUNT,
    REQUEST_DURATION,
    MetricsManager,
    get_metrics_manager,
    initialize_metrics,
    track_metrics,
    track_nlq_stage,
)

__all__ = [
    "ERROR_COUNT",
    "GRAPH_QUERY_DURATION",
    "NLQ_PIPELINE_STAGE_DURATION",
    "QUESTION_COUNT",
    "REQUEST_COUNT",
    "REQUEST_DURATION",
    "MetricsManager",
    "get_metrics_manager",
    "initialize_metrics",
    "track_metrics",
    "track_nlq_stage",
]
