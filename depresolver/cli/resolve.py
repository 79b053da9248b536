"""Resolve command implementation."""

import json
import logging
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from depresolver.config.schema import set_resolver_config
from depresolver.dependency.codec import encode_resolved_dependency
from depresolver.dependency.maven2 import read_project_dependencies
from depresolver.dependency.model import CLASSIFIER, TYPE, Dependency, DependencyId
from depresolver.dependency.report import pretty_print, unresolved_report
from depresolver.dependency.repository import MavenRepository, Repository, default_repositories
from depresolver.dependency.resolver import resolve
from depresolver.errors import ConfigurationError, IO_ERRORS, PomParseError
from depresolver.runtime.config_loader import load_resolver_config

logger = logging.getLogger("depresolver.cli.resolve")


def parse_coordinate(text: str) -> DependencyId:
    """Parse ``group:name:version[:classifier[:type]]``.

    Raises:
        ConfigurationError: If fewer than three parts are given.
    """
    parts = text.strip().split(":")
    if len(parts) < 3 or len(parts) > 5 or not all(parts[:3]):
        raise ConfigurationError(
            f"Invalid coordinate '{text}', expected group:name:version[:classifier[:type]]"
        )
    attributes = {}
    if len(parts) >= 4 and parts[3]:
        attributes[CLASSIFIER] = parts[3]
    if len(parts) == 5 and parts[4]:
        attributes[TYPE] = parts[4]
    return DependencyId(parts[0], parts[1], parts[2], attributes=attributes)


def parse_repository(text: str) -> Repository:
    """Parse ``name=url`` (a bare path or URL is named after itself)."""
    name, sep, url = text.partition("=")
    if not sep:
        name, url = text, text
    location = url if "://" in url else Path(url)
    return MavenRepository(name.strip(), location)


def resolve_command(args) -> int:
    """Execute resolve command.

    Args:
        args: Parsed command-line arguments containing:
            - coordinates: Root coordinates to resolve
            - pom: Project pom.xml whose dependencies are resolved (optional)
            - repository: Additional repositories as name=url
            - no_default_repositories: Skip ~/.m2 and Maven Central
            - config: Resolver configuration source (optional)
            - output: JSON file to write the result to (optional)

    Returns:
        int: Exit code (0 when everything resolved, 1 otherwise, 2 on bad input).
    """
    console = Console()
    try:
        config_source = getattr(args, "config", None)
        if config_source:
            set_resolver_config(load_resolver_config(config_source))

        repositories: List[Repository] = [parse_repository(r) for r in (args.repository or [])]
        if not getattr(args, "no_default_repositories", False):
            repositories.extend(default_repositories())

        dependencies = [Dependency(parse_coordinate(c)) for c in (args.coordinates or [])]
        pom_path: Optional[str] = getattr(args, "pom", None)
        if pom_path:
            dependencies.extend(read_project_dependencies(Path(pom_path), repositories))
    except (ConfigurationError, PomParseError) as exc:
        logger.error("%s", exc)
        return 2
    except IO_ERRORS as exc:
        logger.error("Failed to read input: %s", exc)
        return 2

    if not dependencies:
        logger.error("Nothing to resolve: give coordinates or --pom")
        return 2

    logger.info("Resolving %d dependencies in %d repositories", len(dependencies), len(repositories))
    resolved, ok = resolve(dependencies, repositories)

    roots = [d.dependency_id for d in dependencies]
    console.print(pretty_print(resolved, roots), markup=False, highlight=False)
    if not ok:
        console.print(unresolved_report(resolved), markup=False, highlight=False)

    output = getattr(args, "output", None)
    if output:
        payload = [encode_resolved_dependency(r) for r in resolved.values()]
        try:
            Path(output).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except IO_ERRORS as exc:
            logger.error("Failed to write %s: %s", output, exc)
            return 1
        logger.info("Result written to %s", output)

    return 0 if ok else 1
