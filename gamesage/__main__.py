"""
GameSage CLI entry point.

Provides commands for running the services and for one-off questions.
"""

import argparse
import asyncio
import json
import sys
from contextlib import AsyncExitStack
from pathlib import Path

from gamesage import __version__
from gamesage.config.logging import get_logger, setup_logging
from gamesage.config.settings import Settings, load_settings
from gamesage.components import AppComponents
from gamesage.tools.errors import ConfigurationError


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="gamesage",
        description="Conversational video game data analyst (RAWG + LLM tool calling)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"GameSage {__version__}",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in current directory)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level from config",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("config", help="Show current configuration")

    tools_parser = subparsers.add_parser("tools", help="List the tools offered to the model")
    tools_parser.add_argument(
        "--json",
        action="store_true",
        help="Print full JSON schemas instead of a summary",
    )

    ask_parser = subparsers.add_parser(
        "ask",
        help="Ask one question and print tool activity plus the answer",
    )
    ask_parser.add_argument(
        "question",
        help='Question to ask, e.g. "What are the top rated RPGs of 2023?"',
    )
    ask_parser.add_argument(
        "--max-tool-rounds",
        type=int,
        default=None,
        help="Override the tool round-trip ceiling (default: LLM_MAX_TOOL_ROUNDS)",
    )
    ask_parser.add_argument(
        "--show-results",
        action="store_true",
        help="Print raw tool results as they arrive",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the chat service (HTTP + SSE)")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: SERVER_HOST)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: SERVER_PORT)")

    tool_serve_parser = subparsers.add_parser("serve-tools", help="Run the HTTP tool server")
    tool_serve_parser.add_argument("--host", default=None, help="Bind address (default: SERVER_HOST)")
    tool_serve_parser.add_argument(
        "--port", type=int, default=None, help="Port (default: SERVER_TOOL_SERVER_PORT)"
    )

    subparsers.add_parser("mcp", help="Run the tools as an MCP server on stdio")

    return parser


def cmd_config(settings: Settings) -> int:
    """Show current configuration."""
    logger = get_logger(__name__)

    logger.info("\n=== GameSage Configuration ===\n")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level}")
    logger.info(f"Log File: {settings.log_file or 'None (console only)'}")
    logger.info(f"\nLLM Model: {settings.llm.model}")
    logger.info(f"LLM API Key: {'Set' if settings.llm.api_key else 'Not set'}")
    logger.info(f"LLM Max Tool Rounds: {settings.llm.max_tool_rounds}")
    logger.info(f"\nRAWG Base URL: {settings.rawg.base_url}")
    logger.info(f"RAWG API Key: {'Set' if settings.rawg.api_key else 'Not set'}")
    logger.info(f"RAWG Page Size: default {settings.rawg.default_page_size}, max {settings.rawg.max_page_size}")
    logger.info(f"\nServer: {settings.server.host}:{settings.server.port}")
    logger.info(f"Tool Server Port: {settings.server.tool_server_port}")
    logger.info(f"Remote Tool Server: {settings.server.tool_server_url or 'None (in-process tools)'}")
    logger.info(f"Client Token: {'Set' if settings.server.client_token else 'Not set (open)'}")
    logger.info(f"Shared Secret: {'Set' if settings.server.shared_secret else 'Not set (open)'}")

    return 0


async def cmd_tools(args, settings: Settings) -> int:
    """List tool schemas."""
    logger = get_logger(__name__)

    try:
        async with AsyncExitStack() as stack:
            executor = await AppComponents(settings).create_executor(stack)
            schemas = executor.registry.schemas()
    except Exception as e:
        logger.error(f"Could not load tools: {e}", exc_info=True)
        return 1

    if args.json:
        print(json.dumps([schema.to_listing() for schema in schemas], indent=2))
        return 0

    for schema in schemas:
        required = ", ".join(schema.required_parameters) or "none"
        print(f"{schema.name}  (required: {required})")
        print(f"    {schema.description}\n")
    return 0


async def cmd_ask(args, settings: Settings) -> int:
    """
    Run one orchestration and print its events.

    Tool activity goes to stderr so the answer on stdout can be piped.
    """
    logger = get_logger(__name__)

    if args.max_tool_rounds is not None:
        settings.llm.max_tool_rounds = args.max_tool_rounds

    try:
        async with AsyncExitStack() as stack:
            factory = AppComponents(settings)
            executor = await factory.create_executor(stack)
            orchestrator = factory.create_orchestrator(executor)

            try:
                run = orchestrator.start(args.question)
            except (ConfigurationError, ValueError) as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1

            logger.info(f"Sending to {settings.llm.model}...")

            async for event in run:
                if event.type == "tool_start":
                    print(f"→ {event.data['toolName']} {json.dumps(event.data['args'])}", file=sys.stderr)
                    if args.show_results:
                        print(json.dumps(event.data["result"], indent=2)[:2000], file=sys.stderr)
                elif event.type == "tool_complete":
                    print(f"✓ {event.data['toolName']}", file=sys.stderr)
                elif event.type == "response":
                    print(f"\n{event.data}")
                elif event.type == "error":
                    print(f"\nError: {event.data}", file=sys.stderr)
                    return 1

            usage = run.usage
            print(
                f"\nTokens: {usage.total_tokens} "
                f"(prompt {usage.prompt_tokens} + completion {usage.completion_tokens}), "
                f"tool calls: {len(run.tool_executions)}",
                file=sys.stderr,
            )
            return 0

    except Exception as e:
        logger.error(f"Query failed: {e}", exc_info=True)
        return 1


def cmd_serve(args, settings: Settings) -> int:
    """Run the chat service under uvicorn."""
    import uvicorn

    from gamesage.server import create_chat_app

    logger = get_logger(__name__)
    if not settings.llm.api_key:
        logger.warning(
            "LLM API key not set (LLM_API_KEY). "
            "The service will start but chat requests will fail until this is configured."
        )

    uvicorn.run(
        create_chat_app(settings),
        host=args.host or settings.server.host,
        port=args.port or settings.server.port,
        log_config=None,
    )
    return 0


def cmd_serve_tools(args, settings: Settings) -> int:
    """Run the tool server under uvicorn."""
    import uvicorn

    from gamesage.server import create_tool_app

    logger = get_logger(__name__)
    if not settings.rawg.api_key:
        logger.warning("RAWG API key not set (RAWG_API_KEY); fetch_game_data calls will fail.")

    uvicorn.run(
        create_tool_app(settings),
        host=args.host or settings.server.host,
        port=args.port or settings.server.tool_server_port,
        log_config=None,
    )
    return 0


async def cmd_mcp(settings: Settings) -> int:
    """Serve the in-process tools over MCP stdio."""
    from gamesage.tools.mcp_server import serve_stdio

    async with AsyncExitStack() as stack:
        executor = await AppComponents(settings).create_executor(stack, local=True)
        await serve_stdio(executor)
    return 0


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    # Load settings
    try:
        settings = load_settings(env_file=args.env_file)
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    # Override log level if specified
    if args.log_level:
        settings.log_level = args.log_level

    setup_logging(settings)

    if args.command == "config":
        return cmd_config(settings)
    elif args.command == "tools":
        return asyncio.run(cmd_tools(args, settings))
    elif args.command == "ask":
        return asyncio.run(cmd_ask(args, settings))
    elif args.command == "serve":
        return cmd_serve(args, settings)
    elif args.command == "serve-tools":
        return cmd_serve_tools(args, settings)
    elif args.command == "mcp":
        return asyncio.run(cmd_mcp(settings))
    else:
        # Default: show help
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
