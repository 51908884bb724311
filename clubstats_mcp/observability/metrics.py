"""
Prometheus metrics for the club statistics engine.
This module provides metrics tracking for:
- Questions answered per question type and outcome
- NLQ pipeline stage durations
- Graph query durations per handler family
- Errors by kind
- Active conversation sessions and catalog sizes
"""

import functools
import logging
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

logger = logging.getLogger(__name__)

# METRIC DEFINITIONS

# Tool metrics
REQUEST_COUNT = Counter(
    "clubstats_requests_total",
    "Total number of requests by tool",
    ["tool_name", "status"],  # status: success, error
)

REQUEST_DURATION = Histogram(
    "clubstats_request_duration_seconds",
    "Request duration in seconds",
    ["tool_name"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Question metrics
QUESTION_COUNT = Counter(
    "clubstats_questions_total",
    "Questions processed by type and outcome",
    ["question_type", "status"],  # status: answered, clarification, error
)

# Error metrics
ERROR_COUNT = Counter(
    "clubstats_errors_total",
    "Total number of errors by kind",
    ["kind"],  # entity_not_found, invalid_metric, query_failed, ambiguous_query, internal
)

# NLQ Pipeline metrics
NLQ_PIPELINE_STAGE_DURATION = Histogram(
    "clubstats_nlq_stage_duration_seconds",
    "NLQ pipeline stage duration",
    ["stage"],  # stage: catalog, analyze, merge, resolve, record, dispatch, format
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

GRAPH_QUERY_DURATION = Histogram(
    "clubstats_graph_query_duration_seconds",
    "Graph query duration by handler family",
    ["handler"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0),
)

# Context metrics
ACTIVE_SESSIONS = Gauge(
    "clubstats_active_sessions", "Conversation contexts currently stored"
)

CATALOG_SIZE = Gauge(
    "clubstats_catalog_entries", "Entity catalog size", ["entity_type"]
)

# System info
SERVER_INFO = Info("clubstats_server", "Club statistics server information")

SERVER_START_TIME = Gauge(
    "clubstats_server_start_time_seconds", "Server start time in unix timestamp"
)

# METRICS MANAGER


class MetricsManager:
    """
    Centralized metrics management.

    Provides convenience methods for recording pipeline, graph and
    context metrics.
    """

    def __init__(self):
        self.start_time = time.time()
        SERVER_START_TIME.set(self.start_time)
        logger.info("Metrics manager initialized")

    # ────────────────────────────────────────────────────────────────────
    # Request Metrics
    # ────────────────────────────────────────────────────────────────────

    def record_request(
        self,
        tool_name: str,
        duration: float,
        status: str = "success",
    ):
        """
        Record a tool request with duration and status.

        Args:
            tool_name: Name of the tool called
            duration: Request duration in seconds
            status: Request status (success, error)
        """
        REQUEST_COUNT.labels(tool_name=tool_name, status=status).inc()
        REQUEST_DURATION.labels(tool_name=tool_name).observe(duration)

    def record_question(self, question_type: str, status: str):
        QUESTION_COUNT.labels(question_type=question_type, status=status).inc()

    def record_error(self, kind: str):
        ERROR_COUNT.labels(kind=kind).inc()

    # ────────────────────────────────────────────────────────────────────
    # NLQ Pipeline Metrics
    # ────────────────────────────────────────────────────────────────────

    def record_nlq_stage(self, stage: str, duration: float):
        """
        Record NLQ pipeline stage duration.

        Args:
            stage: Pipeline stage name
            duration: Stage duration in seconds
        """
        NLQ_PIPELINE_STAGE_DURATION.labels(stage=stage).observe(duration)

    def record_graph_query(self, handler: str, duration: float):
        GRAPH_QUERY_DURATION.labels(handler=handler).observe(duration)

    # ────────────────────────────────────────────────────────────────────
    # Context / Catalog Metrics
    # ────────────────────────────────────────────────────────────────────

    def set_active_sessions(self, count: int):
        ACTIVE_SESSIONS.set(count)

    def update_catalog_size(self, sizes: Dict[str, List[str]]):
        """
        Update catalog gauges from a catalog snapshot.

        Args:
            sizes: Entity type -> names
        """
        for entity_type, names in sizes.items():
            CATALOG_SIZE.labels(entity_type=entity_type).set(len(names))

    # ────────────────────────────────────────────────────────────────────
    # Server Info
    # ────────────────────────────────────────────────────────────────────

    def set_server_info(self, version: str, environment: str = "production"):
        SERVER_INFO.info({"version": version, "environment": environment})

    # ────────────────────────────────────────────────────────────────────
    # Export
    # ────────────────────────────────────────────────────────────────────

    def get_metrics(self) -> bytes:
        """
        Get metrics in Prometheus format.

        Returns:
            Metrics in Prometheus text format
        """
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST


# GLOBAL METRICS MANAGER

_metrics_manager: Optional[MetricsManager] = None


def initialize_metrics() -> MetricsManager:
    """
    Initialize global metrics manager.

    Returns:
        Initialized metrics manager
    """
    global _metrics_manager
    _metrics_manager = MetricsManager()
    return _metrics_manager


def get_metrics_manager() -> MetricsManager:
    """
    Get the global metrics manager, initializing it on first use.

    Returns:
        Global metrics manager instance
    """
    if _metrics_manager is None:
        return initialize_metrics()
    return _metrics_manager


# DECORATORS / CONTEXT MANAGERS


@contextmanager
def track_nlq_stage(stage: str, metrics: Optional[MetricsManager] = None):
    """
    Time an NLQ pipeline stage.

    Example:
        with track_nlq_stage("analyze"):
            analysis = analyze_question(question, catalog)
    """
    manager = metrics or get_metrics_manager()
    start_time = time.perf_counter()
    try:
        yield
    finally:
        manager.record_nlq_stage(stage, time.perf_counter() - start_time)


def track_metrics(tool_name: Optional[str] = None):
    """
    Decorator to track request count and duration for an async tool.

    Args:
        tool_name: Name of the tool (defaults to function name)
    """

    def decorator(func: Callable) -> Callable:
        actual_tool_name = tool_name or func.__name__

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.time()
            status = "success"
            try:
                return await func(*args, **kwargs)
            except Exception:
                status = "error"
                raise
            finally:
                get_metrics_manager().record_request(
                    tool_name=actual_tool_name,
                    duration=time.time() - start_time,
                    status=status,
                )

        return async_wrapper

    return decorator
