#!/usr/bin/env python3
"""
Command-line interface for the shopping assistant.

Answers a single user message against the configured catalog, or reports
the health of every component.
"""

import argparse
import asyncio
import json
from typing import List, Optional

from dotenv import load_dotenv

from src.core.database.connection import DatabaseManager
from src.pipelines.retrieval.config import ConfigurationLoader
from src.pipelines.retrieval.exceptions import ConfigurationError as RetrievalConfigurationError
from src.pipelines.retrieval.pipeline import RetrievalPipeline
from src.utils.config import DatabaseSettings

from .config import create_settings_from_yaml
from .exceptions import ConfigurationError
from .logging import setup_inference_logging
from .models import ChatRequest, ChatResponse
from .pipeline import ShoppingAssistant


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Conversational shopping assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ask one question
  python -m src.pipelines.inference "Samsung phones under 30000"

  # Check component health
  python -m src.pipelines.inference --health

  # Use a local SQLite catalog
  python -m src.pipelines.inference --database-url sqlite+aiosqlite:///catalog.db "running shoes"
        """
    )

    parser.add_argument("message", nargs="?", help="User message to answer")

    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to inference YAML configuration file"
    )
    parser.add_argument(
        "--retrieval-config",
        type=str,
        help="Path to retrieval YAML configuration file (overrides inference config)"
    )
    parser.add_argument(
        "--database-url",
        type=str,
        help="Catalog database URL (overrides DATABASE_URL)"
    )
    parser.add_argument("--user-id", type=str, help="User id attached to search events")
    parser.add_argument("--session-id", type=str, help="Session id attached to search events")

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Path to log file (default: logs/inference_pipeline.log)"
    )

    parser.add_argument("--health", action="store_true", help="Print component health and exit")
    parser.add_argument("--json", action="store_true", help="Print the full response as JSON")

    return parser


def print_response(response: ChatResponse) -> None:
    print(f"\n{response.message}\n")
    for product in response.products:
        rating = f"  {product['rating']}★" if product.get("rating") is not None else ""
        print(f"  • {product['name']} ({product.get('brand') or 'unbranded'}) ₹{product['price']}{rating}")
    print(f"\n[{response.stop_reason.value}, {response.metadata.tool_rounds} tool round(s), "
          f"{response.processing_time_ms:.0f}ms]")


async def run(args: argparse.Namespace) -> int:
    settings = create_settings_from_yaml(args.config)
    retrieval_settings = ConfigurationLoader(args.retrieval_config or settings.retrieval_config_path).load_config()

    db_manager = DatabaseManager(DatabaseSettings(url=args.database_url) if args.database_url else None)
    try:
        retrieval_pipeline = RetrievalPipeline.from_settings(retrieval_settings, db_manager)
        await retrieval_pipeline.initialize()

        assistant = ShoppingAssistant(settings, retrieval_pipeline)
        assistant.initialize()

        if args.health:
            health = await assistant.health_check()
            print(json.dumps(health, indent=2, default=str))
            return 0 if health["status"] != "unhealthy" else 1

        response = await assistant.achat(ChatRequest(
            message=args.message,
            user_id=args.user_id,
            session_id=args.session_id,
        ))
        if args.json:
            print(response.model_dump_json(indent=2))
        else:
            print_response(response)
        return 0
    finally:
        await db_manager.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for failure, 2 for usage errors)
    """
    load_dotenv()

    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.health and not (args.message and args.message.strip()):
        parser.print_usage()
        print("error: a message is required unless --health is given")
        return 2

    logger = setup_inference_logging(args.log_level, args.log_file)

    try:
        return asyncio.run(run(args))
    except (ConfigurationError, RetrievalConfigurationError) as e:
        logger.error(f"Configuration error: {e}")
        print(f"\n❌ Configuration Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
