"""Main CLI entry point for depresolver.

Provides commands: resolve
"""

import argparse
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from depresolver.cli.resolve import resolve_command

logger = logging.getLogger("depresolver.cli")


def setup_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """Setup logging configuration with Rich integration.

    Args:
        verbose: Enable verbose logging.
        console: Rich Console instance for coordinated output (optional).
    """
    level = logging.DEBUG if verbose else logging.INFO

    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        log_time_format="[%H:%M:%S]",
    )

    logging.basicConfig(
        level=level,
        format="[%(name)s] [%(levelname)s] %(message)s",
        handlers=[handler],
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Depresolver - Maven dependency resolver",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve dependencies and download their artifacts",
    )
    resolve_parser.add_argument(
        "coordinates",
        nargs="*",
        help="Coordinates as group:name:version[:classifier[:type]]",
    )
    resolve_parser.add_argument(
        "--pom",
        help="Resolve the dependencies declared by this project pom.xml",
    )
    resolve_parser.add_argument(
        "-r",
        "--repository",
        action="append",
        help="Additional repository as name=url or name=path (repeatable)",
    )
    resolve_parser.add_argument(
        "--no-default-repositories",
        action="store_true",
        help="Do not search ~/.m2/repository and Maven Central",
    )
    resolve_parser.add_argument(
        "-c",
        "--config",
        help=(
            "Optional resolver configuration. Can be a path to a TOML/JSON "
            "file or an inline TOML/JSON string."
        ),
    )
    resolve_parser.add_argument(
        "-o",
        "--output",
        help="Write the resolution result as JSON to this file",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        int: Exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "resolve":
        return resolve_command(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
