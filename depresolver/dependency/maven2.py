"""Resolution of coordinates in Maven 2 layout repositories.

Directory layout::

    org/example/lib/1.0/lib-1.0.pom
    org/example/lib/1.0/lib-1.0[-classifier].jar
"""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import FrozenSet, Iterable, List, NamedTuple, Optional, Tuple

from depresolver.dependency.checksum import Checksum
from depresolver.dependency.metadata import (
    METADATA_FILE,
    metadata_cache_name,
    parse_snapshot_metadata,
)
from depresolver.dependency.model import (
    DEFAULT_EXCLUSIONS,
    SNAPSHOT_VERSION,
    TYPE,
    Dependency,
    DependencyId,
    ResolvedDependency,
)
from depresolver.dependency.pom import Pom, RawPom, parse_pom
from depresolver.dependency.repository import MavenRepository, Repository
from depresolver.dependency.resolver import resolve_single_dependency
from depresolver.errors import PomParseError
from depresolver.utils.validation import validate_safe_path

logger = logging.getLogger("depresolver.dependency.maven2")

JAR_PACKAGINGS = ("jar", "bundle")


class PomFile(NamedTuple):
    """A POM read from a repository."""

    raw: RawPom
    path: str
    repository: Repository
    local_path: Optional[Path]
    data: bytes


def _directory(dependency_id: DependencyId) -> str:
    return f"{dependency_id.group.replace('.', '/')}/{dependency_id.name}/{dependency_id.version}"


def _file_version(dependency_id: DependencyId) -> str:
    if dependency_id.is_snapshot and dependency_id.snapshot_version:
        return dependency_id.version[: -len("SNAPSHOT")] + dependency_id.snapshot_version
    return dependency_id.version


def artifact_path(dependency_id: DependencyId, extension: str) -> str:
    """Repository path of an artifact file, including the classifier."""
    classifier = dependency_id.classifier
    suffix = f"-{classifier}" if classifier else ""
    return (
        f"{_directory(dependency_id)}/"
        f"{dependency_id.name}-{_file_version(dependency_id)}{suffix}.{extension}"
    )


def pom_path(dependency_id: DependencyId) -> str:
    return f"{_directory(dependency_id)}/{dependency_id.name}-{_file_version(dependency_id)}.pom"


def metadata_path(dependency_id: DependencyId) -> str:
    return f"{_directory(dependency_id)}/{METADATA_FILE}"


def _resolve_snapshot_version(dependency_id: DependencyId, repository: Repository) -> Optional[str]:
    path = metadata_path(dependency_id)
    cache_path = posixpath.join(posixpath.dirname(path), metadata_cache_name(repository.name))
    data, _ = repository.retrieve(path, snapshot=True, cache_path=cache_path)
    if data is None:
        return None
    try:
        metadata = parse_snapshot_metadata(data, repository.file_url(path))
    except PomParseError as exc:
        logger.warning("%s", exc)
        return None
    return metadata.snapshot_version


def _parse(data: bytes, url: str) -> Tuple[Optional[RawPom], str]:
    try:
        return parse_pom(data, url), ""
    except PomParseError as exc:
        logger.warning("%s", exc)
        return None, str(exc)


def retrieve_pom(
    dependency_id: DependencyId, repository: Repository
) -> Tuple[DependencyId, Optional[PomFile], str]:
    """Retrieve and parse the POM of ``dependency_id`` from ``repository``.

    Snapshots missing under their plain name are looked up through
    ``maven-metadata.xml``; the returned coordinate then carries the unique
    snapshot version.

    Returns:
        ``(coordinate, pom_file, error)``; ``pom_file`` is None on failure and
        ``error`` describes why.
    """
    path = pom_path(dependency_id)
    data, local_path = repository.retrieve(path, snapshot=dependency_id.is_snapshot)

    if data is None and dependency_id.is_snapshot and not dependency_id.snapshot_version:
        snapshot_version = _resolve_snapshot_version(dependency_id, repository)
        if snapshot_version:
            logger.debug("Snapshot %s resolved to %s in %s", dependency_id, snapshot_version, repository)
            dependency_id = dependency_id.with_attributes({SNAPSHOT_VERSION: snapshot_version})
            path = pom_path(dependency_id)
            data, local_path = repository.retrieve(path, snapshot=True)

    if data is None:
        return dependency_id, None, f"pom not found at {repository.file_url(path)}"

    raw, error = _parse(data, repository.file_url(path))
    if raw is None:
        return dependency_id, None, error
    return dependency_id, PomFile(raw, path, repository, local_path, data), ""


def _relative_parent(pom_file: PomFile) -> Optional[PomFile]:
    reference = pom_file.raw.parent_reference
    if reference is None or not reference.relative_path:
        return None

    relative = posixpath.normpath(
        posixpath.join(posixpath.dirname(pom_file.path), reference.relative_path)
    )
    if not relative.endswith(".xml"):
        relative = posixpath.join(relative, "pom.xml")
    if relative == ".." or relative.startswith("../") or relative.startswith("/"):
        logger.debug("relativePath of %s leaves the repository, ignored", pom_file.raw.url)
        return None
    root = pom_file.repository.directory_path()
    if root is not None and not validate_safe_path(relative, root):
        return None

    data, local_path = pom_file.repository.retrieve(relative)
    if data is None:
        return None
    raw, _ = _parse(data, pom_file.repository.file_url(relative))
    if raw is None:
        return None

    expected_group = pom_file.raw.translate(reference.group_id)
    if raw.artifact_id != pom_file.raw.translate(reference.artifact_id) or (
        expected_group and raw.effective_group_id != expected_group
    ):
        logger.debug("Pom at relativePath %s is not the parent of %s", relative, pom_file.raw.url)
        return None
    return PomFile(raw, relative, pom_file.repository, local_path, data)


def _coordinate_parent(
    pom_file: PomFile, preferred: Optional[Repository], repositories: Iterable[Repository]
) -> Optional[PomFile]:
    raw = pom_file.raw
    reference = raw.parent_reference
    parent_id = DependencyId(
        group=raw.translate(reference.group_id) or "",
        name=raw.translate(reference.artifact_id) or "",
        version=raw.translate(reference.version) or "",
        preferred_repository=preferred,
        attributes={TYPE: "pom"},
    )
    resolved = resolve_single_dependency(parent_id, repositories)
    if resolved.has_error or resolved.artifact_data is None or resolved.resolved_from is None:
        logger.warning("Failed to retrieve parent %s of %s: %s", parent_id, raw.url, resolved.log)
        return None
    path = pom_path(resolved.id)
    parent, _ = _parse(resolved.artifact_data, resolved.artifact_url or path)
    if parent is None:
        return None
    return PomFile(parent, path, resolved.resolved_from, resolved.artifact, resolved.artifact_data)


def link_parents(
    pom_file: PomFile, repositories: Iterable[Repository], preferred: Optional[Repository] = None
) -> RawPom:
    """Retrieve the whole parent chain of ``pom_file`` and link it.

    ``<relativePath>`` is tried first, then the coordinates of ``<parent>``
    with ``preferred`` asked first. A parent that cannot be found is logged
    and the chain ends there.
    """
    repositories = list(repositories)
    seen = set()
    current = pom_file
    while current.raw.parent_reference is not None:
        reference = current.raw.parent_reference
        key = (reference.group_id, reference.artifact_id, reference.version)
        if key in seen:
            logger.warning("Parent cycle at %s in %s", key, current.raw.url)
            break
        seen.add(key)

        parent = _relative_parent(current) or _coordinate_parent(current, preferred, repositories)
        if parent is None:
            break
        current.raw.parent = parent.raw
        current = parent
        preferred = parent.repository
    return pom_file.raw


def _flatten_management(
    pom: Pom,
    repository: Optional[Repository],
    repositories: List[Repository],
    importing: FrozenSet[Tuple[str, str, str]],
) -> List[Dependency]:
    flat: List[Dependency] = []
    for entry in pom.dependency_management:
        entry_id = entry.dependency_id
        if entry_id.type != "pom" or entry_id.scope != "import":
            flat.append(entry)
            continue

        key = (entry_id.group, entry_id.name, entry_id.version)
        if key in importing:
            logger.warning("Circular dependency management import of %s in %s", entry_id, pom.url)
            continue
        imported = _import_management(entry_id, repository, repositories, importing | {key})
        if imported is None:
            logger.warning("Failed to import dependency management %s into %s", entry_id, pom.url)
            continue
        flat.extend(imported)
    return flat


def _import_management(
    dependency_id: DependencyId,
    repository: Optional[Repository],
    repositories: List[Repository],
    importing: FrozenSet[Tuple[str, str, str]],
) -> Optional[List[Dependency]]:
    resolved = resolve_single_dependency(
        dependency_id.replace(preferred_repository=repository), repositories
    )
    if resolved.has_error or resolved.artifact_data is None or resolved.resolved_from is None:
        return None
    path = pom_path(resolved.id)
    raw, _ = _parse(resolved.artifact_data, resolved.artifact_url or path)
    if raw is None:
        return None
    pom_file = PomFile(raw, path, resolved.resolved_from, resolved.artifact, resolved.artifact_data)
    link_parents(pom_file, repositories, resolved.resolved_from)
    imported = raw.resolve(resolved.resolved_from)
    return _flatten_management(imported, resolved.resolved_from, repositories, importing)


def resolve_pom(
    raw: RawPom, repository: Optional[Repository], repositories: Iterable[Repository]
) -> Tuple[Pom, List[Dependency]]:
    """Resolve a linked ``RawPom``.

    Returns:
        The ``Pom`` and its flattened dependency management, with
        ``scope=import`` entries replaced by the imported management lists.
    """
    pom = raw.resolve(repository)
    management = _flatten_management(pom, repository, list(repositories), frozenset())
    return pom, management


def resolve_in_m2_repository(
    dependency_id: DependencyId, repository: Repository, repositories: Iterable[Repository]
) -> ResolvedDependency:
    """Resolve ``dependency_id`` in ``repository`` only.

    Args:
        dependency_id: Coordinate to resolve.
        repository: Maven layout repository to look in.
        repositories: All repositories, for parent and import lookups.

    Returns:
        ResolvedDependency; ``has_error`` is set when the repository does not
        host the coordinate.
    """
    if dependency_id.is_snapshot and not repository.snapshots:
        return ResolvedDependency.failure(
            dependency_id, "Release only repository skipped for snapshot dependency", repository
        )
    if not dependency_id.is_snapshot and not repository.releases:
        return ResolvedDependency.failure(
            dependency_id, "Snapshot only repository skipped for release dependency", repository
        )
    if not dependency_id.version:
        return ResolvedDependency.failure(dependency_id, "Dependency has no version", repository)

    repositories = list(repositories)
    dependency_id, pom_file, error = retrieve_pom(dependency_id, repository)
    if pom_file is None:
        return ResolvedDependency.failure(dependency_id, error, repository)

    if dependency_id.type == "pom":
        return ResolvedDependency(
            dependency_id,
            resolved_from=repository,
            artifact=pom_file.local_path,
            artifact_url=repository.file_url(pom_file.path),
            artifact_data=pom_file.data,
        )

    link_parents(pom_file, repositories, repository)
    pom, management = resolve_pom(pom_file.raw, repository, repositories)
    dependencies = pom.resolve_effective_dependencies(management)

    packaging = dependency_id.attributes.get(TYPE) or pom.packaging
    if packaging == "pom":
        return ResolvedDependency(
            dependency_id, dependencies, repository, dependency_management=management
        )
    if packaging not in JAR_PACKAGINGS:
        return ResolvedDependency.failure(
            dependency_id, f"Unsupported dependency type '{packaging}'", repository
        )

    path = artifact_path(dependency_id, "jar")
    url = repository.file_url(path)
    data, local_path = repository.retrieve(path, snapshot=dependency_id.is_snapshot)
    if data is None:
        return ResolvedDependency.failure(dependency_id, f"Failed to retrieve jar at {url}", repository)
    if local_path is None:
        return ResolvedDependency.failure(
            dependency_id, f"Jar {url} could not be stored on the local filesystem", repository
        )
    return ResolvedDependency(
        dependency_id,
        dependencies,
        resolved_from=repository,
        artifact=local_path,
        artifact_url=url,
        dependency_management=management,
    )


def read_project_dependencies(
    pom_file: Path, repositories: Iterable[Repository]
) -> List[Dependency]:
    """Effective dependencies of a project's own ``pom.xml``.

    The project is the direct request, so ``provided``, ``test`` and
    ``system`` dependencies are kept. Each returned root excludes what a
    plain root excludes plus its own ``<exclusions>``, and carries the
    project's dependency management down to its transitive dependencies.

    Raises:
        PomParseError: If the file is not a valid POM.
        OSError: If the file cannot be read.
    """
    pom_file = pom_file.expanduser().absolute()
    root = Path(pom_file.anchor)
    project = MavenRepository("project", root, checksum=Checksum.NONE)
    path = pom_file.relative_to(root).as_posix()
    data = pom_file.read_bytes()
    raw = parse_pom(data, pom_file.as_uri())

    repositories = list(repositories)
    link_parents(PomFile(raw, path, project, pom_file, data), repositories)
    pom, management = resolve_pom(raw, None, repositories)
    return [
        Dependency(
            dependency.dependency_id,
            DEFAULT_EXCLUSIONS + dependency.exclusions,
            dependency_management=tuple(management),
        )
        for dependency in pom.resolve_effective_dependencies(management, transitive_only=False)
    ]


__all__ = [
    "JAR_PACKAGINGS",
    "PomFile",
    "artifact_path",
    "pom_path",
    "metadata_path",
    "retrieve_pom",
    "link_parents",
    "resolve_pom",
    "resolve_in_m2_repository",
    "read_project_dependencies",
]
