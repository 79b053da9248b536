"""POM parsing and the POM document model.

``parse_pom`` turns XML into a ``RawPom`` that mirrors the document. After
its parent chain is linked, ``RawPom.resolve`` produces a ``Pom`` whose
values have ``${...}`` placeholders substituted and whose dependencies are
proper ``Dependency`` values.
"""

from __future__ import annotations

import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple

from depresolver.config.schema import get_resolver_config
from depresolver.dependency.model import (
    CLASSIFIER,
    OPTIONAL,
    SCOPE,
    TYPE,
    Dependency,
    DependencyAttribute,
    DependencyExclusion,
    DependencyId,
)
from depresolver.errors import PomParseError

if TYPE_CHECKING:
    from depresolver.dependency.repository import Repository

logger = logging.getLogger("depresolver.dependency.pom")

SUPPORTED_MODEL_VERSION = "4.0.0"
TRANSITIVE_SCOPES = ("compile", "runtime")
NON_TRANSITIVE_SCOPES = ("provided", "test", "system")

_PLACEHOLDER = re.compile(r"\$\{([^}]*)\}")
_MAX_TRANSLATION_DEPTH = 16

_DEPENDENCY_PATHS = {
    ("project", "dependencies", "dependency"): "dependencies",
    ("project", "dependencymanagement", "dependencies", "dependency"): "dependency_management",
}
_DEPENDENCY_FIELDS = {
    "groupid": "group_id",
    "artifactid": "artifact_id",
    "version": "version",
    "type": "type",
    "classifier": "classifier",
    "scope": "scope",
    "optional": "optional",
}
_PROJECT_FIELDS = {
    "groupid": "group_id",
    "artifactid": "artifact_id",
    "version": "version",
    "packaging": "packaging",
}
_PARENT_FIELDS = {
    "groupid": "group_id",
    "artifactid": "artifact_id",
    "version": "version",
    "relativepath": "relative_path",
}


@dataclass(frozen=True)
class RawPomExclusion:
    group_id: Optional[str] = None
    artifact_id: Optional[str] = None


@dataclass(frozen=True)
class RawPomDependency:
    """A ``<dependency>`` element with untranslated values."""

    group_id: Optional[str] = None
    artifact_id: Optional[str] = None
    version: Optional[str] = None
    type: Optional[str] = None
    classifier: Optional[str] = None
    scope: Optional[str] = None
    optional: Optional[str] = None
    exclusions: Tuple[RawPomExclusion, ...] = ()


@dataclass(frozen=True)
class ParentReference:
    group_id: Optional[str] = None
    artifact_id: Optional[str] = None
    version: Optional[str] = None
    relative_path: Optional[str] = None


@dataclass
class RawPom:
    """POM document as written, plus its linked parent.

    Attributes:
        url: Where the document was read from, used in log messages.
        parent_reference: Coordinates from ``<parent>``, if any.
        parent: The parent document once retrieved.
    """

    url: str
    model_version: Optional[str] = None
    group_id: Optional[str] = None
    artifact_id: Optional[str] = None
    version: Optional[str] = None
    packaging: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)
    dependencies: List[RawPomDependency] = field(default_factory=list)
    dependency_management: List[RawPomDependency] = field(default_factory=list)
    parent_reference: Optional[ParentReference] = None
    parent: Optional["RawPom"] = None

    def _inherited(self, getter: Callable[["RawPom"], Optional[str]]) -> Optional[str]:
        pom: Optional[RawPom] = self
        while pom is not None:
            value = getter(pom)
            if value:
                return value
            if pom.parent is None and pom.parent_reference is not None:
                return getter(pom.parent_reference)  # type: ignore[arg-type]
            pom = pom.parent
        return None

    @property
    def effective_group_id(self) -> Optional[str]:
        return self._inherited(lambda pom: pom.group_id)

    @property
    def effective_version(self) -> Optional[str]:
        return self._inherited(lambda pom: pom.version)

    def _lookup_property(self, key: str) -> Optional[str]:
        pom: Optional[RawPom] = self
        while pom is not None:
            if key in pom.properties:
                return pom.properties[key]
            pom = pom.parent

        if key.startswith("env."):
            return os.environ.get(key[len("env."):])

        if key.startswith("project."):
            project_key = key[len("project."):]
            if project_key == "modelVersion":
                return self.model_version or SUPPORTED_MODEL_VERSION
            if project_key == "groupId":
                return self.effective_group_id
            if project_key == "artifactId":
                return self.artifact_id
            if project_key == "version":
                return self.effective_version
            if project_key == "packaging":
                return self.packaging or "jar"
            if project_key.startswith("parent.") and self.parent_reference is not None:
                parent_key = project_key[len("parent."):]
                return {
                    "groupId": self.parent_reference.group_id,
                    "artifactId": self.parent_reference.artifact_id,
                    "version": self.parent_reference.version,
                }.get(parent_key)

        if key.startswith("settings."):
            logger.warning("Settings property '%s' in %s is not supported", key, self.url)
            return None

        return get_resolver_config().system_properties.get(key)

    def translate(self, text: Optional[str]) -> Optional[str]:
        """Substitute ``${key}`` placeholders in ``text``.

        Undefined placeholders are kept literally and logged.
        """
        if text is None:
            return None
        return self._translate(text, 0)

    def _translate(self, text: str, depth: int) -> str:
        if "${" not in text:
            return text

        def substitute(match: "re.Match[str]") -> str:
            key = match.group(1).strip()
            value = self._lookup_property(key)
            if value is None:
                logger.warning(
                    "Unreliable Pom resolution: property '%s' in %s is not defined", key, self.url
                )
                return match.group(0)
            if depth >= _MAX_TRANSLATION_DEPTH:
                logger.warning("Property '%s' in %s is too deeply nested", key, self.url)
                return value
            return self._translate(value, depth + 1)

        return _PLACEHOLDER.sub(substitute, text)

    def _translate_dependency(
        self, raw: RawPomDependency, repository: Optional["Repository"]
    ) -> Dependency:
        attributes: Dict[DependencyAttribute, str] = {}
        for key, value in (
            (TYPE, raw.type),
            (CLASSIFIER, raw.classifier),
            (SCOPE, raw.scope),
            (OPTIONAL, raw.optional),
        ):
            translated = self.translate(value)
            if translated:
                attributes[key] = translated.lower() if key is OPTIONAL else translated

        exclusions = tuple(
            DependencyExclusion(
                group=self.translate(exclusion.group_id) or "*",
                name=self.translate(exclusion.artifact_id) or "*",
            )
            for exclusion in raw.exclusions
        )
        dependency_id = DependencyId(
            group=self.translate(raw.group_id) or "",
            name=self.translate(raw.artifact_id) or "",
            version=self.translate(raw.version) or "",
            preferred_repository=repository,
            attributes=attributes,
        )
        return Dependency(dependency_id, exclusions)

    def resolve(self, repository: Optional["Repository"] = None) -> "Pom":
        """Flatten the parent chain into a ``Pom``.

        Args:
            repository: Repository the document came from; it becomes the
                preferred repository of every declared dependency.
        """
        dependencies: List[Dependency] = []
        management: List[Dependency] = []
        declared = set()

        pom: Optional[RawPom] = self
        while pom is not None:
            if pom is not self and (pom.packaging or "jar") != "pom":
                logger.warning(
                    "Parent %s of %s has packaging '%s' instead of 'pom'",
                    pom.url, self.url, pom.packaging or "jar",
                )
            for raw in pom.dependencies:
                dependency = self._translate_dependency(raw, repository)
                dependency_id = dependency.dependency_id
                key = (dependency_id.group, dependency_id.name, dependency_id.type, dependency_id.classifier)
                if key not in declared:
                    declared.add(key)
                    dependencies.append(dependency)
            management.extend(
                self._translate_dependency(raw, repository) for raw in pom.dependency_management
            )
            pom = pom.parent

        return Pom(
            url=self.url,
            group_id=self.translate(self.effective_group_id) or "",
            artifact_id=self.translate(self.artifact_id) or "",
            version=self.translate(self.effective_version) or "",
            packaging=self.translate(self.packaging) or "jar",
            dependencies=tuple(dependencies),
            dependency_management=tuple(management),
        )


def apply_dependency_management(
    dependency: Dependency, management: Sequence[Dependency], transitive: bool = False
) -> Dependency:
    """Apply the first matching entry of ``management`` to ``dependency``.

    Entries match on group, name, type and classifier. A POM's own entries
    also need an equal version unless the dependency declares none; entries
    handed down by a requester (``transitive``) always override the version.
    Scope and optionality are taken over only when not set explicitly and
    exclusions are merged.
    """
    dependency_id = dependency.dependency_id
    for entry in management:
        managed_id = entry.dependency_id
        if (
            managed_id.group != dependency_id.group
            or managed_id.name != dependency_id.name
            or managed_id.type != dependency_id.type
            or managed_id.classifier != dependency_id.classifier
        ):
            continue
        if not transitive and dependency_id.version and dependency_id.version != managed_id.version:
            continue

        updates: Dict[DependencyAttribute, Optional[str]] = {}
        for key in (SCOPE, OPTIONAL):
            if key not in dependency_id.attributes and key in managed_id.attributes:
                updates[key] = managed_id.attributes[key]
        exclusions = dependency.exclusions + tuple(
            e for e in entry.exclusions if e not in dependency.exclusions
        )
        version = managed_id.version or dependency_id.version
        managed = dependency_id.with_attributes(updates).replace(version=version)
        if transitive and version != dependency_id.version:
            logger.debug("Version of %s managed to %s by its requester", dependency_id, version)
        return replace(dependency, dependency_id=managed, exclusions=exclusions)
    return dependency


@dataclass(frozen=True)
class Pom:
    """Resolved POM: placeholders substituted and parents merged."""

    url: str
    group_id: str
    artifact_id: str
    version: str
    packaging: str
    dependencies: Tuple[Dependency, ...] = ()
    dependency_management: Tuple[Dependency, ...] = ()

    def resolve_effective_dependencies(
        self, management: Sequence[Dependency], transitive_only: bool = True
    ) -> List[Dependency]:
        """Apply dependency management and filter by scope.

        Args:
            management: Flattened dependency management (imports inlined).
            transitive_only: Drop ``provided``, ``test`` and ``system``
                dependencies, which never propagate to dependents.

        Returns:
            Effective dependencies in declaration order.
        """
        result: List[Dependency] = []
        for dependency in self.dependencies:
            managed = apply_dependency_management(dependency, management)
            scope = managed.dependency_id.scope
            if scope in TRANSITIVE_SCOPES:
                result.append(managed)
            elif scope in NON_TRANSITIVE_SCOPES:
                if not transitive_only:
                    result.append(managed)
            else:
                logger.warning(
                    "Dependency %s in %s has illegal scope '%s', ignored",
                    managed.dependency_id, self.url, scope,
                )
        return result


class _DependencyBuilder:
    __slots__ = ("values", "exclusions")

    def __init__(self) -> None:
        self.values: Dict[str, str] = {}
        self.exclusions: List[RawPomExclusion] = []

    def build(self) -> RawPomDependency:
        return RawPomDependency(exclusions=tuple(self.exclusions), **self.values)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_pom(data: bytes, url: str) -> RawPom:
    """Parse POM XML.

    Args:
        data: Document bytes.
        url: Document location, for messages.

    Returns:
        RawPom without a linked parent.

    Raises:
        PomParseError: If the XML is malformed, the root element is not
            ``project`` or the model version is unsupported.
    """
    pom = RawPom(url=url)
    parent_values: Dict[str, str] = {}
    has_parent = False
    path: List[str] = []
    builders: List[_DependencyBuilder] = []
    exclusion: Optional[Dict[str, str]] = None

    parser = ET.XMLPullParser(events=("start", "end"))
    try:
        parser.feed(data)
        parser.close()
        events = list(parser.read_events())
    except ET.ParseError as exc:
        raise PomParseError(f"Malformed POM {url}: {exc}") from exc

    for event, elem in events:
        name = _local_name(elem.tag)
        if event == "start":
            path.append(name.lower())
            if len(path) == 1 and path[0] != "project":
                raise PomParseError(f"{url} is not a POM (root element <{name}>)")
            key = tuple(path)
            if key in _DEPENDENCY_PATHS:
                builders.append(_DependencyBuilder())
            elif builders and key[-2:] == ("exclusions", "exclusion"):
                exclusion = {}
            continue

        key = tuple(path)
        text = (elem.text or "").strip()

        if key == ("project", "modelversion"):
            if text != SUPPORTED_MODEL_VERSION:
                raise PomParseError(f"Unsupported modelVersion '{text}' in {url}")
            pom.model_version = text
        elif len(key) == 2 and key[0] == "project" and key[1] in _PROJECT_FIELDS:
            setattr(pom, _PROJECT_FIELDS[key[1]], text)
        elif key == ("project", "parent"):
            has_parent = True
        elif key[:2] == ("project", "parent") and len(key) == 3 and key[2] in _PARENT_FIELDS:
            parent_values[_PARENT_FIELDS[key[2]]] = text
        elif key[:2] == ("project", "properties") and len(key) == 3:
            pom.properties[name] = text
        elif key == ("project", "repositories", "repository"):
            logger.debug("%s declares custom repositories, which are not supported", url)
        elif key in _DEPENDENCY_PATHS:
            target = getattr(pom, _DEPENDENCY_PATHS[key])
            target.append(builders.pop().build())
        elif exclusion is not None and key[-2:] == ("exclusions", "exclusion"):
            builders[-1].exclusions.append(
                RawPomExclusion(exclusion.get("groupid"), exclusion.get("artifactid"))
            )
            exclusion = None
        elif exclusion is not None and key[-3:-1] == ("exclusions", "exclusion"):
            exclusion[key[-1]] = text
        elif builders and key[:-1] in _DEPENDENCY_PATHS and key[-1] in _DEPENDENCY_FIELDS:
            builders[-1].values[_DEPENDENCY_FIELDS[key[-1]]] = text

        path.pop()
        elem.clear()

    if has_parent:
        pom.parent_reference = ParentReference(**parent_values)
    return pom


__all__ = [
    "SUPPORTED_MODEL_VERSION",
    "RawPomExclusion",
    "RawPomDependency",
    "ParentReference",
    "RawPom",
    "Pom",
    "apply_dependency_management",
    "parse_pom",
]
