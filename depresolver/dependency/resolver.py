"""Single-coordinate lookup and transitive dependency resolution."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from depresolver.dependency.model import (
    Dependency,
    DependencyExclusion,
    DependencyId,
    ResolvedDependency,
)
from depresolver.dependency.pom import apply_dependency_management
from depresolver.dependency.repository import Repository, directory_to_lock, sort_for_resolution
from depresolver.utils.locking import directories_lock

logger = logging.getLogger("depresolver.dependency.resolver")

DependencyMapper = Callable[[Dependency], Dependency]
ResolvedMap = Dict[DependencyId, ResolvedDependency]


def _identity(dependency: Dependency) -> Dependency:
    return dependency


def resolve_single_dependency(
    dependency_id: DependencyId, repositories: Iterable[Repository]
) -> ResolvedDependency:
    """Find ``dependency_id`` in the first repository that has it.

    The preferred repository's cache is asked first, then every local
    repository, then the preferred repository when it is remote and finally
    the remaining remote repositories, each group in ``sort_for_resolution``
    order. A remote preferred repository never shadows a local copy.

    Returns:
        The first successful resolution, or a failure whose log lists every
        repository tried and why it was rejected.
    """
    repositories = list(repositories)
    chain = sort_for_resolution(repositories)
    candidates: List[Repository] = []
    preferred = dependency_id.preferred_repository
    if preferred is not None:
        if preferred.cache is not None:
            candidates.append(preferred.cache)
        if preferred.local:
            candidates.append(preferred)
    candidates.extend(r for r in chain if r.local and r not in candidates)
    if preferred is not None and preferred not in candidates:
        candidates.append(preferred)
    candidates.extend(r for r in chain if r not in candidates)

    if not candidates:
        return ResolvedDependency.failure(dependency_id, "no repositories to search in")

    tried: List[str] = []
    for repository in candidates:
        resolved = repository.resolve_in_repository(dependency_id, repositories)
        if not resolved.has_error:
            logger.debug("Resolved %s in %s", dependency_id, repository)
            return resolved
        logger.debug("%s not in %s: %s", dependency_id, repository, resolved.log)
        tried.append(f"{repository.name} ({resolved.log})")
    return ResolvedDependency.failure(dependency_id, "tried: " + ", ".join(tried))


def _short(dependency_id: DependencyId) -> str:
    return f"{dependency_id.group}:{dependency_id.name}:{dependency_id.version}"


def format_cycle(stack: Sequence[DependencyId], repeated: DependencyId) -> str:
    """Render a dependency cycle as ``A → B → ↪ C → D → ↩``.

    ``↪`` marks where the loop starts; the last element depends on it again.
    """
    start = list(stack).index(repeated)
    prefix = "".join(f"{_short(d)} → " for d in stack[:start])
    loop = "".join(f"{_short(d)} → " for d in stack[start:])
    return f"{prefix}↪ {loop}↩"


class _Resolution:
    """Mutable state of one ``resolve`` call."""

    def __init__(
        self, resolved: ResolvedMap, repositories: List[Repository], mapper: DependencyMapper
    ) -> None:
        self.resolved = resolved
        self.repositories = repositories
        self.mapper = mapper
        self.dependency_stack: List[DependencyId] = []
        self.exclusion_stack: List[Sequence[DependencyExclusion]] = []

    def _needs_lookup(self, dependency_id: DependencyId) -> bool:
        previous = self.resolved.get(dependency_id)
        if previous is None:
            return True
        return (
            previous.has_error
            and previous.id.preferred_repository is None
            and dependency_id.preferred_repository is not None
        )

    def _excluded(self, dependency_id: DependencyId) -> Optional[DependencyExclusion]:
        for exclusions in self.exclusion_stack:
            for exclusion in exclusions:
                if exclusion.excludes(dependency_id):
                    return exclusion
        return None

    def visit(self, dependency: Dependency) -> bool:
        dependency = self.mapper(dependency)
        dependency_id = dependency.dependency_id

        if dependency_id in self.dependency_stack:
            logger.info("Circular dependency: %s", format_cycle(self.dependency_stack, dependency_id))
            return True

        self.dependency_stack.append(dependency_id)
        try:
            if self._needs_lookup(dependency_id):
                self.resolved.pop(dependency_id, None)
                self.resolved[dependency_id] = resolve_single_dependency(
                    dependency_id, self.repositories
                )
            resolved = self.resolved[dependency_id]

            self.exclusion_stack.append(dependency.exclusions)
            inherited = dependency.dependency_management + tuple(resolved.dependency_management)
            try:
                ok = not resolved.has_error
                for declared in resolved.dependencies:
                    child = replace(
                        apply_dependency_management(
                            declared, dependency.dependency_management, transitive=True
                        ),
                        dependency_management=inherited,
                    )
                    exclusion = self._excluded(child.dependency_id)
                    if exclusion is not None:
                        logger.debug(
                            "Excluded %s (required by %s) by rule %s",
                            child.dependency_id, dependency_id, exclusion,
                        )
                        continue
                    if not self.visit(child):
                        ok = False
            finally:
                self.exclusion_stack.pop()
        finally:
            self.dependency_stack.pop()
        return ok


def resolve(
    dependencies: Iterable[Dependency],
    repositories: Iterable[Repository],
    mapper: Optional[DependencyMapper] = None,
    resolved: Optional[ResolvedMap] = None,
) -> Tuple[ResolvedMap, bool]:
    """Resolve ``dependencies`` and everything they transitively require.

    Resolution is best-effort: a failed coordinate does not stop the others.
    Repository and cache directories are locked for the whole call.

    Args:
        dependencies: Root dependencies.
        repositories: Repositories to search.
        mapper: Applied to every dependency before it is resolved, e.g. to
            pin versions.
        resolved: Map to fill; entries already present are reused.

    Returns:
        ``(resolved, ok)`` where ``ok`` is True only when every reachable
        dependency was resolved.
    """
    repositories = list(repositories)
    resolved = {} if resolved is None else resolved
    state = _Resolution(resolved, repositories, mapper or _identity)

    lock_directories = [d for d in (directory_to_lock(r) for r in repositories) if d is not None]
    ok = True
    with directories_lock(
        lock_directories, on_wait=lambda d: logger.info("Waiting for lock on %s", d)
    ):
        for dependency in dependencies:
            if not state.visit(dependency):
                ok = False
            assert not state.dependency_stack, "dependency stack not empty after resolution"
            assert not state.exclusion_stack, "exclusion stack not empty after resolution"

    for dependency_id, result in resolved.items():
        if result.has_error:
            logger.warning("Failed to resolve %s: %s", dependency_id, result.log)
    return resolved, ok


def artifacts(resolved: ResolvedMap) -> List[Path]:
    """Local artifact files of all resolved dependencies."""
    return [r.artifact for r in resolved.values() if r.artifact is not None]


def resolve_dependency_artifacts(
    dependencies: Iterable[Dependency],
    repositories: Iterable[Repository],
    mapper: Optional[DependencyMapper] = None,
) -> Optional[List[Path]]:
    """Resolve and return artifact files, or None if anything failed."""
    resolved, ok = resolve(dependencies, repositories, mapper)
    if not ok:
        return None
    return artifacts(resolved)


__all__ = [
    "DependencyMapper",
    "ResolvedMap",
    "resolve_single_dependency",
    "format_cycle",
    "resolve",
    "artifacts",
    "resolve_dependency_artifacts",
]
