"""Coordinate, exclusion and resolution result value types.

A ``DependencyId`` names one artifact (group, name, version plus optional
attributes such as the Maven classifier). Identity only considers the
attributes that change which file is meant; scope and optionality are
carried along but never make two coordinates distinct.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Tuple

from depresolver.errors import ConfigurationError, IO_ERRORS

if TYPE_CHECKING:
    from depresolver.dependency.repository import Repository

logger = logging.getLogger("depresolver.dependency.model")

WILDCARD = "*"

_ATTRIBUTE_REGISTRY: Dict[str, "DependencyAttribute"] = {}


@dataclass(frozen=True)
class DependencyAttribute:
    """Named key of a coordinate attribute.

    Attributes:
        name: Unique name, used when coordinates are serialized.
        makes_unique: Whether two coordinates differing in this attribute
            denote different artifacts.
        default: Value assumed when a coordinate does not set the attribute.
    """

    name: str
    makes_unique: bool
    default: Optional[str] = None

    def __post_init__(self) -> None:
        _ATTRIBUTE_REGISTRY.setdefault(self.name, self)

    def __str__(self) -> str:
        return self.name


def attribute_by_name(name: str) -> DependencyAttribute:
    """Look up a registered attribute.

    Raises:
        ConfigurationError: If no attribute with this name was created.
    """
    try:
        return _ATTRIBUTE_REGISTRY[name]
    except KeyError:
        raise ConfigurationError(f"Unknown dependency attribute '{name}'") from None


# Maven attributes
CLASSIFIER = DependencyAttribute("m2-classifier", True, "")
TYPE = DependencyAttribute("m2-type", True, "jar")
SCOPE = DependencyAttribute("m2-scope", False, "compile")
OPTIONAL = DependencyAttribute("m2-optional", False, "false")
SNAPSHOT_VERSION = DependencyAttribute("m2-snapshot-version", True, "")


class DependencyId:
    """Coordinate of a single artifact."""

    __slots__ = ("group", "name", "version", "preferred_repository", "_attributes")

    def __init__(
        self,
        group: str,
        name: str,
        version: str,
        preferred_repository: Optional["Repository"] = None,
        attributes: Optional[Mapping[DependencyAttribute, str]] = None,
    ) -> None:
        """Initialize coordinate.

        Args:
            group: Group identifier (Maven ``groupId``).
            name: Artifact name (Maven ``artifactId``).
            version: Exact version string.
            preferred_repository: Repository to ask first, usually the one
                the declaring POM came from.
            attributes: Explicitly set attributes.
        """
        self.group = group
        self.name = name
        self.version = version
        self.preferred_repository = preferred_repository
        self._attributes: Mapping[DependencyAttribute, str] = MappingProxyType(
            dict(attributes or {})
        )

    @property
    def attributes(self) -> Mapping[DependencyAttribute, str]:
        """Explicitly set attributes (read-only)."""
        return self._attributes

    def attribute(self, key: DependencyAttribute) -> Optional[str]:
        """Return the attribute value, falling back to the key's default."""
        return self._attributes.get(key, key.default)

    @property
    def is_snapshot(self) -> bool:
        return self.version.endswith("-SNAPSHOT")

    @property
    def classifier(self) -> str:
        return self.attribute(CLASSIFIER) or ""

    @property
    def type(self) -> str:
        return self.attribute(TYPE) or "jar"

    @property
    def scope(self) -> str:
        return self.attribute(SCOPE) or "compile"

    @property
    def optional(self) -> bool:
        return (self.attribute(OPTIONAL) or "false").lower() == "true"

    @property
    def snapshot_version(self) -> str:
        return self.attribute(SNAPSHOT_VERSION) or ""

    def replace(self, **changes: Any) -> "DependencyId":
        """Return a copy with the given constructor arguments replaced."""
        values = {
            "group": self.group,
            "name": self.name,
            "version": self.version,
            "preferred_repository": self.preferred_repository,
            "attributes": self._attributes,
        }
        values.update(changes)
        return DependencyId(**values)

    def with_attributes(
        self, updates: Mapping[DependencyAttribute, Optional[str]]
    ) -> "DependencyId":
        """Return a copy with attributes set, or removed where the value is None."""
        attributes = dict(self._attributes)
        for key, value in updates.items():
            if value is None:
                attributes.pop(key, None)
            else:
                attributes[key] = value
        return self.replace(attributes=attributes)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, DependencyId):
            return NotImplemented
        if (self.group, self.name, self.version) != (other.group, other.name, other.version):
            return False
        for key, value in self._attributes.items():
            if key.makes_unique and other.attribute(key) != value:
                return False
        for key, value in other._attributes.items():
            if key.makes_unique and self.attribute(key) != value:
                return False
        return True

    def __hash__(self) -> int:
        return hash((self.group, self.name, self.version))

    def __str__(self) -> str:
        text = f"{self.group}:{self.name}:{self.version}"
        if self.preferred_repository is not None:
            text += f"@{self.preferred_repository.name}"
        if self._attributes:
            rendered = ", ".join(
                f"{key.name}={value}"
                for key, value in sorted(self._attributes.items(), key=lambda kv: kv[0].name)
            )
            text += f" ({rendered})"
        return text

    def __repr__(self) -> str:
        return f"DependencyId({self})"


def _matches(pattern: str, value: Optional[str]) -> bool:
    return (pattern == WILDCARD and value is not None) or pattern == value


@dataclass(frozen=True)
class DependencyExclusion:
    """Pattern over coordinates; ``*`` matches any present value.

    Attribute constraints are checked against the attributes a coordinate
    sets explicitly, so ``scope=test`` never matches a coordinate that only
    has the default scope.
    """

    group: str = WILDCARD
    name: str = WILDCARD
    version: str = WILDCARD
    attributes: Mapping[DependencyAttribute, str] = field(default_factory=dict, hash=False)

    def excludes(self, dependency_id: DependencyId) -> bool:
        """Return True when ``dependency_id`` matches this rule."""
        if not (
            _matches(self.group, dependency_id.group)
            and _matches(self.name, dependency_id.name)
            and _matches(self.version, dependency_id.version)
        ):
            return False
        for key, pattern in self.attributes.items():
            if not _matches(pattern, dependency_id.attributes.get(key)):
                return False
        return True

    def __str__(self) -> str:
        text = f"{self.group}:{self.name}:{self.version}"
        if self.attributes:
            text += " (" + ", ".join(f"{k.name}={v}" for k, v in self.attributes.items()) + ")"
        return text


DEFAULT_EXCLUSIONS: Tuple[DependencyExclusion, ...] = (
    DependencyExclusion(attributes={OPTIONAL: "true"}),
    DependencyExclusion(attributes={SCOPE: "provided"}),
    DependencyExclusion(attributes={SCOPE: "test"}),
    DependencyExclusion(attributes={SCOPE: "system"}),
)


@dataclass(frozen=True)
class Dependency:
    """A coordinate together with the exclusions applied below it.

    ``dependency_management`` holds the management entries of whoever
    requested this dependency. They override the versions of its transitive
    dependencies and are not part of its identity.
    """

    dependency_id: DependencyId
    exclusions: Tuple[DependencyExclusion, ...] = DEFAULT_EXCLUSIONS
    dependency_management: Tuple["Dependency", ...] = field(default=(), compare=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.exclusions, tuple):
            object.__setattr__(self, "exclusions", tuple(self.exclusions))
        if not isinstance(self.dependency_management, tuple):
            object.__setattr__(self, "dependency_management", tuple(self.dependency_management))

    def __str__(self) -> str:
        if self.exclusions == DEFAULT_EXCLUSIONS:
            return str(self.dependency_id)
        excluded = ", ".join(str(e) for e in self.exclusions)
        return f"{self.dependency_id} excluding [{excluded}]"


class ResolvedDependency:
    """Outcome of resolving one coordinate.

    ``dependencies`` lists the immediate (not yet resolved) dependencies
    declared by the artifact and ``dependency_management`` the flattened
    management of its POM. On failure ``has_error`` is set and ``log``
    explains what was tried.
    """

    def __init__(
        self,
        id: DependencyId,
        dependencies: Optional[Iterable[Dependency]] = None,
        resolved_from: Optional["Repository"] = None,
        has_error: bool = False,
        log: str = "",
        artifact: Optional[Path] = None,
        artifact_url: Optional[str] = None,
        artifact_data: Optional[bytes] = None,
        dependency_management: Optional[Iterable[Dependency]] = None,
    ) -> None:
        self.id = id
        self.dependencies: List[Dependency] = list(dependencies or ())
        self.dependency_management: List[Dependency] = list(dependency_management or ())
        self.resolved_from = resolved_from
        self.has_error = has_error
        self.log = log
        self.artifact = artifact
        self.artifact_url = artifact_url
        self._artifact_data = artifact_data

    @classmethod
    def failure(
        cls,
        dependency_id: DependencyId,
        log: str,
        resolved_from: Optional["Repository"] = None,
    ) -> "ResolvedDependency":
        return cls(dependency_id, resolved_from=resolved_from, has_error=True, log=log)

    @property
    def artifact_data(self) -> Optional[bytes]:
        """Artifact content, read from ``artifact`` on first access."""
        if self._artifact_data is None and self.artifact is not None:
            try:
                self._artifact_data = self.artifact.read_bytes()
            except IO_ERRORS as exc:
                logger.warning("Failed to load data of %s from %s: %s", self.id, self.artifact, exc)
        return self._artifact_data

    def __repr__(self) -> str:
        status = "error" if self.has_error else "ok"
        source = self.resolved_from.name if self.resolved_from is not None else None
        return (
            f"ResolvedDependency(id={self.id}, status={status}, "
            f"from={source}, artifact={self.artifact})"
        )


__all__ = [
    "WILDCARD",
    "DependencyAttribute",
    "attribute_by_name",
    "CLASSIFIER",
    "TYPE",
    "SCOPE",
    "OPTIONAL",
    "SNAPSHOT_VERSION",
    "DependencyId",
    "DependencyExclusion",
    "DEFAULT_EXCLUSIONS",
    "Dependency",
    "ResolvedDependency",
]
