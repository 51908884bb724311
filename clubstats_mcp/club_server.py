# clubstats_mcp/club_server.py
"""
MCP server for club statistics questions.

Tools:
- ask_club_question: answer a natural-language question
- resolve_club_entity: fuzzy-resolve a player/team/opposition/league name
- list_club_metrics: supported metrics and their aliases
- get_engine_status: store connection, catalog sizes and configuration

Every tool returns a ResponseEnvelope serialized with to_json_string().
Only malformed requests produce an error envelope; failures inside the
question pipeline come back as a conversational answer.
"""

import argparse
import asyncio
import logging
import os
import socket
import sys
import time
from typing import Optional

from mcp.server.fastmcp import FastMCP
from prometheus_client import start_http_server

from clubstats_mcp.api.entity_resolver import ENTITY_TYPES
from clubstats_mcp.api.errors import ClubStatsError, ErrorCode, ValidationError
from clubstats_mcp.api.models import MetricInfo, error_response, success_response
from clubstats_mcp.cache.context_store import create_context_store
from clubstats_mcp.config import EngineConfig
from clubstats_mcp.graph.store import Neo4jGraphStore
from clubstats_mcp.nlq.pipeline import QuestionProcessor
from clubstats_mcp.nlq.vocabulary import METRIC_CATALOG
from clubstats_mcp.observability import get_metrics_manager, initialize_metrics, track_metrics

logger = logging.getLogger(__name__)

SERVER_VERSION = "0.1.0"

MAX_QUESTION_LENGTH = 1000
MAX_USER_CONTEXT_LENGTH = 200

# ── 1) Read configuration up‑front ────────────────────────
CONFIG = EngineConfig.from_env()
HOST = CONFIG.host
BASE_PORT = CONFIG.port

# ── 2) Create the global server instance for decorator registration ──
mcp_server = FastMCP(name="clubstats_mcp", host=HOST, port=BASE_PORT)

mcp = mcp_server  # Alias so the FastMCP CLI can auto‑discover the server

_processor: Optional[QuestionProcessor] = None
_processor_lock = asyncio.Lock()


def port_available(port: int, host: str = HOST) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            return False
        return True


async def get_processor() -> QuestionProcessor:
    """Build the shared QuestionProcessor on first use."""
    global _processor
    async with _processor_lock:
        if _processor is None:
            store = Neo4jGraphStore.from_config(CONFIG)
            context_store = create_context_store(
                CONFIG.context_backend, CONFIG.redis_url, CONFIG.redis_db
            )
            processor = QuestionProcessor(store, CONFIG, context_store=context_store)
            await processor.start()
            _processor = processor
            logger.info(f"Question processor ready (graph label '{CONFIG.graph_label}')")
    return _processor


def validate_question(question: str, user_context: Optional[str]) -> None:
    if not isinstance(question, str) or not question.strip():
        raise ValidationError("question", question, "a non-empty string")
    if len(question) > MAX_QUESTION_LENGTH:
        raise ValidationError(
            "question", question, f"at most {MAX_QUESTION_LENGTH} characters"
        )
    if user_context is not None and len(user_context) > MAX_USER_CONTEXT_LENGTH:
        raise ValidationError(
            "user_context", user_context, f"at most {MAX_USER_CONTEXT_LENGTH} characters"
        )


# ============================================================================
# TOOLS
# ============================================================================


@mcp_server.tool()
@track_metrics("ask_club_question")
async def ask_club_question(
    question: str,
    user_context: Optional[str] = None,
    session_id: Optional[str] = None,
) -> str:
    """
    Answer a natural-language question about the club's match statistics.

    Args:
        question: Question text (1-1000 characters)
        user_context: Name of the player asking; "I"/"my" questions use it
        session_id: Conversation id; follow-up questions in the same session
            reuse players and metrics from earlier turns

    Returns:
        JSON ResponseEnvelope whose data is {answer, sources, visualization, debug}

    Examples:
        ask_club_question("How many goals has Luke Bangs scored?")
        ask_club_question("What about assists?", session_id="abc")
        ask_club_question("What's the 2s' highest league finish?")
    """
    start_time = time.time()

    try:
        validate_question(question, user_context)
        processor = await get_processor()
        response = await processor.process_question(
            question, user_context=user_context, session_id=session_id
        )
        execution_time_ms = (time.time() - start_time) * 1000
        return success_response(
            data=response.model_dump(),
            source="graph",
            execution_time_ms=execution_time_ms,
        ).to_json_string()

    except ValidationError as e:
        logger.info(f"Rejected question: {e.message}")
        return error_response(
            error_code=e.code, error_message=e.message, details=e.details
        ).to_json_string()

    except ClubStatsError as e:
        logger.error(f"ask_club_question failed ({e.code}): {e.message}")
        return error_response(
            error_code=e.code, error_message=e.message, details=e.details
        ).to_json_string()

    except Exception as e:
        logger.exception("Unexpected error in ask_club_question")
        return error_response(
            error_code=ErrorCode.INTERNAL_ERROR,
            error_message=f"Failed to answer question: {type(e).__name__}",
        ).to_json_string()


@mcp_server.tool()
@track_metrics("resolve_club_entity")
async def resolve_club_entity(name: str, entity_type: str = "player") -> str:
    """
    Fuzzy-resolve a name against the club's entity catalog.

    Args:
        name: Name as typed, e.g. "Luke Bang"
        entity_type: "player", "team", "opposition" or "league"

    Returns:
        JSON ResponseEnvelope with an EntityReference: matched, canonical
        name, confidence and up to three suggestions
    """
    start_time = time.time()

    try:
        if entity_type not in ENTITY_TYPES:
            raise ValidationError("entity_type", entity_type, f"one of {', '.join(ENTITY_TYPES)}")
        if not name or not name.strip():
            raise ValidationError("name", name, "a non-empty string")

        processor = await get_processor()
        await processor.catalog.ensure_fresh()
        result = processor.resolver.resolve(name, entity_type)

        execution_time_ms = (time.time() - start_time) * 1000
        return success_response(
            data=result.to_reference().model_dump(),
            source="catalog",
            execution_time_ms=execution_time_ms,
        ).to_json_string()

    except ClubStatsError as e:
        return error_response(
            error_code=e.code, error_message=e.message, details=e.details
        ).to_json_string()

    except Exception as e:
        logger.exception("Unexpected error in resolve_club_entity")
        return error_response(
            error_code=ErrorCode.INTERNAL_ERROR,
            error_message=f"Failed to resolve entity: {type(e).__name__}",
        ).to_json_string()


@mcp_server.tool()
@track_metrics("list_club_metrics")
async def list_club_metrics() -> str:
    """List every metric the engine understands, with aliases and scope."""
    try:
        metrics = [
            MetricInfo(
                code=code,
                name=descriptor.plural,
                aliases=list(descriptor.aliases),
                per_appearance=descriptor.per_appearance,
                player_metric=descriptor.player_metric,
                team_metric=descriptor.team_aggregate is not None,
            ).model_dump()
            for code, descriptor in METRIC_CATALOG.items()
        ]
        return success_response(data={"metrics": metrics}, source="static").to_json_string()

    except Exception as e:
        logger.exception("Unexpected error in list_club_metrics")
        return error_response(
            error_code=ErrorCode.INTERNAL_ERROR,
            error_message=f"Failed to list metrics: {type(e).__name__}",
        ).to_json_string()


@mcp_server.tool()
@track_metrics("get_engine_status")
async def get_engine_status() -> str:
    """Store connectivity, catalog sizes and non-secret configuration."""
    try:
        processor = await get_processor()
        snapshot = processor.catalog.snapshot()
        data = {
            "version": SERVER_VERSION,
            "store_connected": processor.store.is_connected(),
            "catalog": {entity_type: len(names) for entity_type, names in snapshot.items()},
            "config": CONFIG.to_dict(),
        }
        return success_response(data=data, source="catalog").to_json_string()

    except ClubStatsError as e:
        return error_response(
            error_code=e.code, error_message=e.message, details=e.details
        ).to_json_string()

    except Exception as e:
        logger.exception("Unexpected error in get_engine_status")
        return error_response(
            error_code=ErrorCode.INTERNAL_ERROR,
            error_message=f"Failed to read engine status: {type(e).__name__}",
        ).to_json_string()


# ============================================================================
# ENTRY POINT
# ============================================================================


def main():
    """Parse CLI args and start FastMCP server (with fallback)."""
    parser = argparse.ArgumentParser(prog="clubstats-mcp")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default=os.getenv("MCP_TRANSPORT", "stdio"),
        help="MCP transport to use",
    )
    parser.add_argument(
        "--host",
        default=HOST,
        help="Host to bind for SSE",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for SSE (defaults to CLUBSTATS_PORT)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=int(os.getenv("CLUBSTATS_METRICS_PORT", "0")) or None,
        help="Expose Prometheus metrics on this port",
    )
    args = parser.parse_args()

    transport = args.transport
    host = args.host
    port = args.port or BASE_PORT

    initialize_metrics()
    get_metrics_manager().set_server_info(
        version=SERVER_VERSION, environment=CONFIG.environment
    )
    logger.info("✓ Prometheus metrics initialized")

    if args.metrics_port:
        start_http_server(args.metrics_port)
        logger.info(f"✓ Metrics HTTP server started on port {args.metrics_port} (/metrics)")

    # if using network transport, check availability
    if transport != "stdio" and not port_available(port, host):
        logger.warning("Port %s:%s not available → falling back to stdio", host, port)
        transport = "stdio"

    mcp_server.settings.host = host
    mcp_server.settings.port = port
    try:
        if transport == "stdio":
            logger.info("Starting FastMCP server on STDIO")
            mcp.run()
        else:
            logger.info("Starting FastMCP server on %s://%s:%s", transport, host, port)
            mcp.run(transport=transport)
    except Exception:
        logger.exception("Failed to start MCP server (transport=%s)", transport)
        sys.exit(1)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    main()
