"""Dependency model, repositories and the transitive resolver."""

from depresolver.dependency.checksum import Checksum
from depresolver.dependency.model import (
    CLASSIFIER,
    DEFAULT_EXCLUSIONS,
    OPTIONAL,
    SCOPE,
    SNAPSHOT_VERSION,
    TYPE,
    Dependency,
    DependencyAttribute,
    DependencyExclusion,
    DependencyId,
    ResolvedDependency,
)
from depresolver.dependency.repository import (
    MavenRepository,
    Repository,
    default_repositories,
    directory_to_lock,
    local_m2_repository,
    maven_central,
    sort_for_resolution,
)
from depresolver.dependency.resolver import (
    artifacts,
    resolve,
    resolve_dependency_artifacts,
    resolve_single_dependency,
)
from depresolver.dependency.maven2 import read_project_dependencies

__all__ = [
    "Checksum",
    "CLASSIFIER",
    "DEFAULT_EXCLUSIONS",
    "OPTIONAL",
    "SCOPE",
    "SNAPSHOT_VERSION",
    "TYPE",
    "Dependency",
    "DependencyAttribute",
    "DependencyExclusion",
    "DependencyId",
    "ResolvedDependency",
    "MavenRepository",
    "Repository",
    "default_repositories",
    "directory_to_lock",
    "local_m2_repository",
    "maven_central",
    "sort_for_resolution",
    "artifacts",
    "resolve",
    "resolve_dependency_artifacts",
    "resolve_single_dependency",
    "read_project_dependencies",
]
