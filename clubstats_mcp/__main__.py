import sys
import logging

# Configure logging right away – only keyword args allowed
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

def main() -> None:
    """Entry point for the club statistics MCP server."""
    try:
        from clubstats_mcp.club_server import main as server_main
        logger.info("Starting club statistics MCP server…")
        server_main()
    except Exception:
        logger.exception("Unhandled exception in __main__")
        sys.exit(1)

if __name__ == "__main__":
    main()
