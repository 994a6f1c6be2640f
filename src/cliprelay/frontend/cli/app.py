"""Command line entry point for the relay.

Start here with `cliprelay opener` or `python -m cliprelay.frontend.cli.app opener`
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from cliprelay.core.config import default_config_path, load_config
from cliprelay.core.exceptions import ClipRelayError
from cliprelay.core.models import BuildInfo
from cliprelay.frontend.cli.logging_config import configure_logging
from cliprelay.network.server import serve

logger = logging.getLogger(__name__)


def build_parser(build: BuildInfo) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cliprelay",
        description="Relay payloads from local or forwarded sockets into the system clipboard",
    )
    parser.add_argument("--version", action="version", version=build.banner())
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug messages")

    sub = parser.add_subparsers(dest="command", required=True)
    opener = sub.add_parser("opener", help="Run the clipboard relay server")
    opener.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help=f"Path to the opener config file (defaults to {default_config_path()})",
    )
    return parser


def run_opener(config_path: Optional[str], build: BuildInfo) -> int:
    try:
        config = load_config(config_path)
        serve(config, build=build)
    except ClipRelayError as e:
        logger.error("%s", e)
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None, build: Optional[BuildInfo] = None) -> int:
    """Parse arguments and run the requested command."""
    build = build or BuildInfo.current()
    args = build_parser(build).parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.command == "opener":
        return run_opener(args.config_path, build)
    return 2


if __name__ == "__main__":
    sys.exit(main())
