"""Coordinate identity and exclusion matching."""

from __future__ import annotations

from pathlib import Path

import pytest

from depresolver.dependency.model import (
    CLASSIFIER,
    DEFAULT_EXCLUSIONS,
    OPTIONAL,
    SCOPE,
    TYPE,
    Dependency,
    DependencyExclusion,
    DependencyId,
    ResolvedDependency,
    attribute_by_name,
)
from depresolver.dependency.repository import MavenRepository
from depresolver.errors import ConfigurationError


def test_scope_does_not_make_coordinates_distinct() -> None:
    """Attributes without makes_unique are ignored by equality and hashing."""
    plain = DependencyId("org.example", "lib", "1.0")
    scoped = DependencyId("org.example", "lib", "1.0", attributes={SCOPE: "test", OPTIONAL: "true"})
    assert plain == scoped
    assert hash(plain) == hash(scoped)
    assert {plain: 1}[scoped] == 1


def test_classifier_makes_coordinates_distinct() -> None:
    """A different classifier or type is a different artifact."""
    plain = DependencyId("org.example", "lib", "1.0")
    sources = DependencyId("org.example", "lib", "1.0", attributes={CLASSIFIER: "sources"})
    pom = DependencyId("org.example", "lib", "1.0", attributes={TYPE: "pom"})
    assert plain != sources
    assert sources != plain
    assert plain != pom


def test_explicit_default_equals_absent_attribute() -> None:
    """Setting an attribute to its default is the same as not setting it."""
    plain = DependencyId("org.example", "lib", "1.0")
    explicit = DependencyId("org.example", "lib", "1.0", attributes={CLASSIFIER: "", TYPE: "jar"})
    assert plain == explicit


def test_preferred_repository_is_not_part_of_identity(tmp_path: Path) -> None:
    """Coordinates found through different repositories are the same coordinate."""
    repository = MavenRepository("somewhere", tmp_path)
    assert DependencyId("g", "a", "1", preferred_repository=repository) == DependencyId("g", "a", "1")


def test_snapshot_detection() -> None:
    assert DependencyId("g", "a", "1.0-SNAPSHOT").is_snapshot
    assert not DependencyId("g", "a", "1.0").is_snapshot
    assert not DependencyId("g", "a", "SNAPSHOT-1.0").is_snapshot


def test_attribute_defaults() -> None:
    dependency_id = DependencyId("g", "a", "1")
    assert dependency_id.type == "jar"
    assert dependency_id.scope == "compile"
    assert dependency_id.classifier == ""
    assert dependency_id.optional is False
    assert dependency_id.attributes == {}


def test_with_attributes_sets_and_removes() -> None:
    dependency_id = DependencyId("g", "a", "1", attributes={SCOPE: "test"})
    updated = dependency_id.with_attributes({SCOPE: None, CLASSIFIER: "tests"})
    assert SCOPE not in updated.attributes
    assert updated.classifier == "tests"
    assert dependency_id.scope == "test"


def test_exclusion_wildcards() -> None:
    """'*' matches any value, other patterns must be equal."""
    rule = DependencyExclusion(group="org.unwanted")
    assert rule.excludes(DependencyId("org.unwanted", "anything", "9"))
    assert not rule.excludes(DependencyId("org.wanted", "anything", "9"))
    assert DependencyExclusion().excludes(DependencyId("g", "a", "1"))


def test_exclusion_attributes_use_explicit_values() -> None:
    """Attribute constraints never match a default that was not set explicitly."""
    rule = DependencyExclusion(attributes={SCOPE: "compile"})
    assert not rule.excludes(DependencyId("g", "a", "1"))
    assert rule.excludes(DependencyId("g", "a", "1", attributes={SCOPE: "compile"}))

    present = DependencyExclusion(attributes={CLASSIFIER: "*"})
    assert present.excludes(DependencyId("g", "a", "1", attributes={CLASSIFIER: "sources"}))
    assert not present.excludes(DependencyId("g", "a", "1"))


@pytest.mark.parametrize(
    "attributes, excluded",
    [
        ({SCOPE: "test"}, True),
        ({SCOPE: "provided"}, True),
        ({SCOPE: "system"}, True),
        ({OPTIONAL: "true"}, True),
        ({SCOPE: "runtime"}, False),
        ({OPTIONAL: "false"}, False),
        ({}, False),
    ],
)
def test_default_exclusions(attributes, excluded) -> None:
    """Default exclusions filter test, provided, system and optional dependencies."""
    dependency_id = DependencyId("g", "a", "1", attributes=attributes)
    assert any(rule.excludes(dependency_id) for rule in DEFAULT_EXCLUSIONS) is excluded


def test_dependency_uses_default_exclusions() -> None:
    dependency = Dependency(DependencyId("g", "a", "1"))
    assert dependency.exclusions == DEFAULT_EXCLUSIONS
    custom = Dependency(DependencyId("g", "a", "1"), [DependencyExclusion(group="x")])
    assert custom.exclusions == (DependencyExclusion(group="x"),)


def test_artifact_data_is_loaded_lazily(tmp_path: Path) -> None:
    """Artifact content is read from disk on first access only."""
    artifact = tmp_path / "lib.jar"
    artifact.write_bytes(b"first")
    resolved = ResolvedDependency(DependencyId("g", "a", "1"), artifact=artifact)
    artifact.write_bytes(b"second")
    assert resolved.artifact_data == b"second"
    artifact.write_bytes(b"third")
    assert resolved.artifact_data == b"second"


def test_artifact_data_missing_file(tmp_path: Path) -> None:
    resolved = ResolvedDependency(DependencyId("g", "a", "1"), artifact=tmp_path / "missing.jar")
    assert resolved.artifact_data is None


def test_attribute_registry() -> None:
    assert attribute_by_name("m2-scope") is SCOPE
    with pytest.raises(ConfigurationError):
        attribute_by_name("no-such-attribute")
