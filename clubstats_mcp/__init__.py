"""Club statistics MCP Server Package."""

from clubstats_mcp.club_server import main
from clubstats_mcp.nlq.pipeline import QuestionProcessor

__all__ = [
    "main",
    "QuestionProcessor",
]

__version__ = "0.1.0"
