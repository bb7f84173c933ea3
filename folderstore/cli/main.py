"""Main CLI entry point."""

import argparse
import asyncio
import logging
import sys

from folderstore.server import app
from folderstore.server.config import ServerConfig
from folderstore.server.db.session import DatabaseSessionManager

_LOGGER = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )


def load_config(args: argparse.Namespace) -> ServerConfig:
    config = ServerConfig.load(args.config_dir)
    if args.database_url:
        config.database_url = args.database_url
    return config


async def async_init_db(config: ServerConfig) -> None:
    session_manager = DatabaseSessionManager(config.database_url)
    try:
        await session_manager.create_all()
    finally:
        await session_manager.close()


def subcommand_serve(args: argparse.Namespace) -> None:
    config = load_config(args)
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    app.run(config)


def subcommand_init_db(args: argparse.Namespace) -> None:
    setup_logging(args.verbose)
    config = load_config(args)
    asyncio.run(async_init_db(config))
    _LOGGER.info(f"Initialized database at {config.database_url}")


def add_parser(subparsers) -> None:
    parser_serve = subparsers.add_parser("serve", help="run the folder store API server")
    parser_serve.add_argument("--host", type=str, help="interface to bind")
    parser_serve.add_argument("--port", type=int, help="port to listen on")
    parser_serve.set_defaults(func=subcommand_serve)

    parser_init_db = subparsers.add_parser(
        "init-db", help="create the database tables"
    )
    parser_init_db.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )
    parser_init_db.set_defaults(func=subcommand_init_db)

    for parser in (parser_serve, parser_init_db):
        parser.add_argument(
            "--config-dir", type=str, default=None, help="directory with config.yaml"
        )
        parser.add_argument(
            "--database-url", type=str, default=None, help="override the database url"
        )


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="folderstore",
        description="Multi-tenant hierarchical folder store",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    add_parser(subparsers)

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
