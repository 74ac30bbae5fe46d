"""mongorepo CLI entry point."""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path.cwd() / ".env")

from mongorepo import __version__
from mongorepo.config import get_default_connection_string, get_settings
from mongorepo.connection import get_provider, sanitize_url
from mongorepo.entities import Entity
from mongorepo.exceptions import MongoRepositoryError
from mongorepo.manager import RepositoryManager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """# mongorepo configuration
# Credentials belong in .env (MONGODB_URL), not here.

# mongodb_url: mongodb://localhost:27017/app
mongodb_database: app

client:
  server_selection_timeout_ms: 5000
  connect_timeout_ms: 5000
  app_name: mongorepo
  tz_aware: true
"""


def _init_logfire() -> None:
    """Initialize Logfire if configured, without failing commands."""
    try:
        from mongorepo.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def _url(args: argparse.Namespace) -> str:
    return args.url or get_default_connection_string()


def _manager(args: argparse.Namespace) -> RepositoryManager:
    return RepositoryManager(Entity, url=_url(args), collection_name=args.name)


def cmd_init(args: argparse.Namespace) -> int:
    """Write a configuration template."""
    config_path = get_settings().config_path
    if config_path.exists():
        logger.info(f"Config file already exists: {config_path}")
        return 0

    config_path.write_text(CONFIG_TEMPLATE)
    logger.info(f"Created config template: {config_path}")
    print(f"\n✓ Wrote {config_path}")
    print("Set MONGODB_URL in .env or uncomment mongodb_url in the file.\n")
    return 0


def cmd_ping(args: argparse.Namespace) -> int:
    """Check that the endpoint answers."""
    try:
        url = _url(args)
        if get_provider().ping(url):
            print(f"✓ {sanitize_url(url)} is reachable")
            return 0
        print(f"✗ {sanitize_url(url)} is unreachable")
        return 1
    except MongoRepositoryError as e:
        logger.error(f"Ping failed: {e}")
        return 1


def cmd_collections(args: argparse.Namespace) -> int:
    """List collections with their document counts."""
    try:
        database = get_provider().get_database(_url(args))
        names = sorted(database.list_collection_names())
        if not names:
            print("(no collections)")
        for name in names:
            print(f"{name}: {database[name].count_documents({})} documents")
        return 0
    except Exception as e:
        logger.error(f"Failed to list collections: {e}")
        return 1


def cmd_stats(args: argparse.Namespace) -> int:
    """Display collection statistics."""
    try:
        manager = _manager(args)
        if not manager.exists():
            print(f"Collection '{manager.name}' does not exist")
            return 1
        stats = manager.stats()
        for key in ("ns", "count", "size", "storageSize", "nindexes", "capped"):
            if key in stats:
                print(f"{key}: {stats[key]}")
        return 0
    except Exception as e:
        logger.error(f"Failed to read stats: {e}")
        return 1


def cmd_drop(args: argparse.Namespace) -> int:
    """Drop a collection."""
    if not args.yes:
        print(f"Refusing to drop '{args.name}' without --yes")
        return 1
    try:
        _manager(args).drop()
        print(f"✓ Dropped '{args.name}'")
        return 0
    except Exception as e:
        logger.error(f"Failed to drop collection: {e}")
        return 1


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="mongorepo: administrative commands for MongoDB collections",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"mongorepo {__version__}",
    )
    parser.add_argument(
        "--url",
        help="MongoDB connection string (defaults to MONGODB_URL)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser("init", help="Write a mongorepo.yaml template")
    parser_init.set_defaults(func=cmd_init)

    parser_ping = subparsers.add_parser("ping", help="Check connectivity")
    parser_ping.set_defaults(func=cmd_ping)

    parser_collections = subparsers.add_parser(
        "collections",
        help="List collections and document counts",
    )
    parser_collections.set_defaults(func=cmd_collections)

    parser_stats = subparsers.add_parser("stats", help="Show collection statistics")
    parser_stats.add_argument("name", help="Collection name")
    parser_stats.set_defaults(func=cmd_stats)

    parser_drop = subparsers.add_parser("drop", help="Drop a collection")
    parser_drop.add_argument("name", help="Collection name")
    parser_drop.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the drop",
    )
    parser_drop.set_defaults(func=cmd_drop)

    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    _init_logfire()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
