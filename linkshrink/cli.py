"""Command line interface: create, migrate, stats and run-server."""

from __future__ import annotations

import argparse
import logging
import re
import sys
from contextlib import closing
from typing import Sequence

from .config import CONFIG_DIR, Config, ConfigError, load_config
from .models import Link
from .repository import (
    RecordNotFound,
    SqliteClickRepository,
    SqliteLinkRepository,
    connect,
    migrate,
)
from .server import run_server
from .services import ClickService, LinkService, get_link_stats

log = logging.getLogger(__name__)

PROG = "linkshrink"

_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")
_CONTROL = re.compile(r"[\x00-\x1f\x7f]")


class _ConfigMissing(RuntimeError):
    """Raised when a command needs a configuration that failed to load."""


def _validate_request_uri(url: str) -> None:
    """Accept an absolute URI or an absolute path; raise ValueError otherwise."""
    if not url:
        raise ValueError("empty url")
    if _CONTROL.search(url):
        raise ValueError(f"invalid control character in URL {url!r}")
    if url.startswith(":"):
        raise ValueError(f"missing protocol scheme in {url!r}")
    if _SCHEME.match(url) or url.startswith("/"):
        return
    raise ValueError(f"invalid URI for request: {url!r}")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description=(
            "A URL shortening service with a REST API and a command line "
            "interface for administration."
        ),
    )
    parser.add_argument(
        "--config-dir",
        default=CONFIG_DIR,
        help="directory holding config.yaml (default: %(default)s)",
    )
    commands = parser.add_subparsers(dest="command", metavar="command")

    create = commands.add_parser(
        "create",
        help="create a short URL from a long URL",
        description="Shorten a long URL and print the generated short code.",
    )
    create.add_argument("--url", required=True, help="the long URL to shorten")

    commands.add_parser(
        "migrate",
        help="create or update the database tables",
        description="Connect to the configured SQLite database and create the "
        "'links' and 'clicks' tables.",
    )

    stats = commands.add_parser(
        "stats",
        help="show the number of clicks for a short link",
        description="Print the total number of clicks for a short code.",
    )
    stats.add_argument("--code", required=True, help="short code of the link to analyse")

    commands.add_parser(
        "run-server",
        help="start the URL shortening API server",
        description="Initialise the database, configure the API and start the HTTP server.",
    )
    return parser


def create_command(config: Config, url: str) -> Link:
    """Shorten ``url``, print the result and return the stored link."""
    _validate_request_uri(url)
    with closing(connect(config.database.name)) as conn:
        link_service = LinkService(SqliteLinkRepository(conn))
        link = link_service.create_link(url)

    full_short_url = f"{config.server.base_url}/{link.short_code}"
    print("Short URL created successfully:")
    print(f"Code: {link.short_code}")
    print(f"Full URL: {full_short_url}")
    return link


def migrate_command(config: Config) -> None:
    """Create the database tables if they are missing."""
    with closing(connect(config.database.name)) as conn:
        migrate(conn)
    print("Database migrations completed successfully.")


def stats_command(config: Config, code: str) -> tuple[Link, int]:
    """Print and return the link for ``code`` and its total number of clicks."""
    if not code:
        raise ValueError("the --code flag is required")
    with closing(connect(config.database.name)) as conn:
        link_service = LinkService(SqliteLinkRepository(conn))
        click_service = ClickService(SqliteClickRepository(conn))
        link, total_clicks = get_link_stats(link_service, click_service, code)

    print(f"Statistics for short code: {link.short_code}")
    print(f"Long URL: {link.long_url}")
    print(f"Total clicks: {total_clicks}")
    return link, total_clicks


def _require(config: Config | None) -> Config:
    if config is None:
        raise _ConfigMissing("configuration not loaded")
    return config


def _dispatch(args: argparse.Namespace, config: Config | None) -> None:
    if args.command == "create":
        create_command(_require(config), args.url)
    elif args.command == "migrate":
        migrate_command(_require(config))
    elif args.command == "stats":
        stats_command(_require(config), args.code)
    elif args.command == "run-server":
        run_server(_require(config))


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line interface and return the exit status."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return 0 if exc.code in (0, None) else 1

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config: Config | None = load_config(args.config_dir)
    except ConfigError as exc:
        log.warning("Problem while loading the configuration: %s", exc)
        config = None

    try:
        _dispatch(args, config)
    except RecordNotFound:
        if args.command == "stats":
            print(f"Error: no link found for code: {args.code}")
        else:
            print("Error: record not found")
        return 1
    except _ConfigMissing as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        print(f"Error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())