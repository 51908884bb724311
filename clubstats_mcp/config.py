# clubstats_mcp/config.py
"""
Environment-driven configuration for the club statistics engine.

Values are read from the process environment after loading the project's
.env file. Every setting has a default so the engine can start against a
local Neo4j instance without any configuration.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_project_root = Path(__file__).parent.parent
load_dotenv(dotenv_path=_project_root / ".env")


@dataclass
class EngineConfig:
    """Configuration for the question engine, graph store and server."""

    # Graph store
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "password"
    neo4j_database: str = "neo4j"
    graph_label: str = "dorkiniansWebsite"
    club_name: str = "Dorkinians"
    query_timeout_seconds: float = 10.0

    # Entity catalog
    catalog_ttl_seconds: int = 300

    # Conversation context
    context_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379"
    redis_db: int = 0
    context_max_idle_seconds: int = 3600
    context_sweep_interval_seconds: int = 300

    # Rankings
    default_top_n: int = 5
    max_top_n: int = 10
    min_appearances_for_average: int = 10

    # Runtime
    environment: Literal["development", "production"] = "production"
    host: str = "127.0.0.1"
    port: int = 8010

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Build configuration from CLUBSTATS_* environment variables.

        Returns:
            EngineConfig populated from the environment
        """
        environment = os.getenv("CLUBSTATS_ENV", "production").lower()
        if environment not in ("development", "production"):
            logger.warning(
                f"Unknown CLUBSTATS_ENV '{environment}', falling back to production"
            )
            environment = "production"

        backend = os.getenv("CLUBSTATS_CONTEXT_BACKEND", "memory").lower()
        if backend not in ("memory", "redis"):
            logger.warning(f"Unknown context backend '{backend}', using memory")
            backend = "memory"

        return cls(
            neo4j_uri=os.getenv("CLUBSTATS_NEO4J_URI", cls.neo4j_uri),
            neo4j_user=os.getenv("CLUBSTATS_NEO4J_USER", cls.neo4j_user),
            neo4j_password=os.getenv("CLUBSTATS_NEO4J_PASSWORD", cls.neo4j_password),
            neo4j_database=os.getenv("CLUBSTATS_NEO4J_DATABASE", cls.neo4j_database),
            graph_label=os.getenv("CLUBSTATS_GRAPH_LABEL", cls.graph_label),
            club_name=os.getenv("CLUBSTATS_CLUB_NAME", cls.club_name),
            query_timeout_seconds=float(
                os.getenv("CLUBSTATS_QUERY_TIMEOUT", str(cls.query_timeout_seconds))
            ),
            catalog_ttl_seconds=int(
                os.getenv("CLUBSTATS_CATALOG_TTL", str(cls.catalog_ttl_seconds))
            ),
            context_backend=backend,
            redis_url=os.getenv("REDIS_URL", cls.redis_url),
            redis_db=int(os.getenv("REDIS_DB", str(cls.redis_db))),
            context_max_idle_seconds=int(
                os.getenv("CLUBSTATS_CONTEXT_MAX_IDLE", str(cls.context_max_idle_seconds))
            ),
            context_sweep_interval_seconds=int(
                os.getenv(
                    "CLUBSTATS_CONTEXT_SWEEP_INTERVAL",
                    str(cls.context_sweep_interval_seconds),
                )
            ),
            default_top_n=int(os.getenv("CLUBSTATS_DEFAULT_TOP_N", str(cls.default_top_n))),
            max_top_n=int(os.getenv("CLUBSTATS_MAX_TOP_N", str(cls.max_top_n))),
            min_appearances_for_average=int(
                os.getenv(
                    "CLUBSTATS_MIN_APPEARANCES", str(cls.min_appearances_for_average)
                )
            ),
            environment=environment,
            host=os.getenv("CLUBSTATS_HOST", cls.host),
            port=int(os.getenv("CLUBSTATS_PORT", str(cls.port))),
        )

    def to_dict(self) -> dict:
        """Serializable view without credentials."""
        return {
            "neo4j_uri": self.neo4j_uri,
            "neo4j_user": self.neo4j_user,
            "neo4j_database": self.neo4j_database,
            "graph_label": self.graph_label,
            "club_name": self.club_name,
            "query_timeout_seconds": self.query_timeout_seconds,
            "catalog_ttl_seconds": self.catalog_ttl_seconds,
            "context_backend": self.context_backend,
            "context_max_idle_seconds": self.context_max_idle_seconds,
            "environment": self.environment,
        }
