# clubstats_mcp/cli.py
"""
Interactive console for asking club statistics questions locally.

    clubstats-ask --user "Luke Bangs"

Questions in one console run share a conversation session, so follow-ups
like "what about assists?" work. Type "exit" or press Ctrl-D to quit.
"""

import argparse
import asyncio
import json
import logging
import uuid

from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.prompt import Prompt

from clubstats_mcp.cache.context_store import create_context_store
from clubstats_mcp.config import EngineConfig
from clubstats_mcp.graph.store import Neo4jGraphStore
from clubstats_mcp.nlq.pipeline import QuestionProcessor

logger = logging.getLogger(__name__)

EXIT_WORDS = {"exit", "quit", ":q"}

console = Console()


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


async def run_console(user: str = None, show_debug: bool = False) -> None:
    config = EngineConfig.from_env()
    store = Neo4jGraphStore.from_config(config)
    context_store = create_context_store(config.context_backend, config.redis_url, config.redis_db)
    processor = QuestionProcessor(store, config, context_store=context_store)
    session_id = f"console-{uuid.uuid4().hex[:8]}"

    await processor.start()
    console.print(f"[bold]{config.club_name} stats[/bold] - ask a question, or 'exit' to quit.")
    try:
        while True:
            try:
                question = Prompt.ask("[cyan]?[/cyan]", console=console)
            except EOFError:
                break
            if question.strip().lower() in EXIT_WORDS:
                break
            if not question.strip():
                continue

            response = await processor.process_question(
                question, user_context=user, session_id=session_id
            )
            console.print(Markdown(response.answer))
            if show_debug and response.debug:
                console.print_json(json.dumps(response.debug, default=str))
    finally:
        await processor.close()


def main():
    parser = argparse.ArgumentParser(prog="clubstats-ask")
    parser.add_argument("--user", default=None, help="Your player name, for 'I'/'my' questions")
    parser.add_argument("--debug", action="store_true", help="Print query debug payloads")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    configure_logging(args.verbose)
    try:
        asyncio.run(run_console(args.user, args.debug))
    except KeyboardInterrupt:
        console.print()


if __name__ == "__main__":
    main()
