"""Plain-dict encoding of repositories and coordinates.

Repositories are encoded as a tagged union on ``"type"`` so that each
repository kind registers its own decoder; nothing is looked up by
reflection.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from depresolver.dependency.checksum import Checksum
from depresolver.dependency.model import (
    DEFAULT_EXCLUSIONS,
    Dependency,
    DependencyExclusion,
    DependencyId,
    ResolvedDependency,
    attribute_by_name,
)
from depresolver.dependency.repository import MavenRepository, Repository
from depresolver.errors import ConfigurationError


def encode_repository(repository: Repository) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "type": repository.TYPE,
        "name": repository.name,
        "url": repository.url,
        "releases": repository.releases,
        "snapshots": repository.snapshots,
        "checksum": repository.checksum.name.lower(),
        "tolerate_checksum_mismatch": repository.tolerate_checksum_mismatch,
        "snapshot_update_delay_seconds": repository.snapshot_update_delay_seconds,
    }
    if repository.cache is not None:
        data["cache"] = encode_repository(repository.cache)
    return data


def _decode_maven2(data: Dict[str, Any], cache: Optional[Repository]) -> Repository:
    return MavenRepository(
        name=data["name"],
        url=data["url"],
        cache=cache,
        releases=data.get("releases", True),
        snapshots=data.get("snapshots", True),
        checksum=Checksum.from_name(data["checksum"]) if "checksum" in data else None,
        tolerate_checksum_mismatch=data.get("tolerate_checksum_mismatch", False),
        snapshot_update_delay_seconds=data.get("snapshot_update_delay_seconds"),
    )


REPOSITORY_DECODERS: Dict[str, Callable[[Dict[str, Any], Optional[Repository]], Repository]] = {
    MavenRepository.TYPE: _decode_maven2,
}


def decode_repository(data: Dict[str, Any]) -> Repository:
    """Rebuild a repository from ``encode_repository`` output.

    Raises:
        ConfigurationError: On an unknown type tag or missing fields.
    """
    kind = data.get("type")
    decoder = REPOSITORY_DECODERS.get(kind)
    if decoder is None:
        raise ConfigurationError(f"Unknown repository type {kind!r}")
    cache = decode_repository(data["cache"]) if data.get("cache") else None
    try:
        return decoder(data, cache)
    except (KeyError, ValueError) as exc:
        raise ConfigurationError(f"Invalid repository definition: {exc}") from exc


def encode_dependency_id(dependency_id: DependencyId) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "group": dependency_id.group,
        "name": dependency_id.name,
        "version": dependency_id.version,
    }
    if dependency_id.preferred_repository is not None:
        data["preferred_repository"] = encode_repository(dependency_id.preferred_repository)
    if dependency_id.attributes:
        data["attributes"] = {key.name: value for key, value in dependency_id.attributes.items()}
    return data


def decode_dependency_id(data: Dict[str, Any]) -> DependencyId:
    preferred = data.get("preferred_repository")
    return DependencyId(
        group=data["group"],
        name=data["name"],
        version=data["version"],
        preferred_repository=decode_repository(preferred) if preferred else None,
        attributes={
            attribute_by_name(name): value
            for name, value in (data.get("attributes") or {}).items()
        },
    )


def encode_exclusion(exclusion: DependencyExclusion) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "group": exclusion.group,
        "name": exclusion.name,
        "version": exclusion.version,
    }
    if exclusion.attributes:
        data["attributes"] = {key.name: value for key, value in exclusion.attributes.items()}
    return data


def decode_exclusion(data: Dict[str, Any]) -> DependencyExclusion:
    return DependencyExclusion(
        group=data.get("group", "*"),
        name=data.get("name", "*"),
        version=data.get("version", "*"),
        attributes={
            attribute_by_name(name): value
            for name, value in (data.get("attributes") or {}).items()
        },
    )


def encode_dependency(dependency: Dependency) -> Dict[str, Any]:
    """Encode a dependency; default exclusions are left implicit."""
    data: Dict[str, Any] = {"id": encode_dependency_id(dependency.dependency_id)}
    if dependency.exclusions != DEFAULT_EXCLUSIONS:
        data["exclusions"] = [encode_exclusion(e) for e in dependency.exclusions]
    return data


def decode_dependency(data: Dict[str, Any]) -> Dependency:
    dependency_id = decode_dependency_id(data["id"])
    if "exclusions" not in data:
        return Dependency(dependency_id)
    return Dependency(dependency_id, tuple(decode_exclusion(e) for e in data["exclusions"]))


def encode_resolved_dependency(resolved: ResolvedDependency) -> Dict[str, Any]:
    """JSON-safe summary of a resolution result (artifact content omitted)."""
    dependencies: List[Dict[str, Any]] = [encode_dependency(d) for d in resolved.dependencies]
    return {
        "id": encode_dependency_id(resolved.id),
        "dependencies": dependencies,
        "resolved_from": resolved.resolved_from.name if resolved.resolved_from else None,
        "has_error": resolved.has_error,
        "log": resolved.log,
        "artifact": str(resolved.artifact) if resolved.artifact else None,
        "artifact_url": resolved.artifact_url,
    }


__all__ = [
    "REPOSITORY_DECODERS",
    "encode_repository",
    "decode_repository",
    "encode_dependency_id",
    "decode_dependency_id",
    "encode_exclusion",
    "decode_exclusion",
    "encode_dependency",
    "decode_dependency",
    "encode_resolved_dependency",
]
