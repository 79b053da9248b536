"""Repository invariants, chain ordering and interchange encoding."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from depresolver.config.schema import ResolverConfig
from depresolver.dependency.checksum import Checksum
from depresolver.dependency.codec import (
    decode_dependency,
    decode_dependency_id,
    decode_repository,
    encode_dependency,
    encode_dependency_id,
    encode_repository,
)
from depresolver.dependency.model import CLASSIFIER, SCOPE, Dependency, DependencyExclusion, DependencyId
from depresolver.dependency.repository import (
    MavenRepository,
    cache_directory_name,
    directory_to_lock,
    sort_for_resolution,
)
from depresolver.errors import ConfigurationError


def test_local_repository_drops_cache(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """A local repository never keeps a cache and warns about it."""
    cache = MavenRepository("cache", tmp_path / "cache-dir")
    with caplog.at_level(logging.WARNING):
        local = MavenRepository("local", tmp_path / "repo", cache=cache)
    assert local.local
    assert local.cache is None
    assert "does not need a cache" in caplog.text


def test_remote_repository_gets_default_cache(resolver_config: ResolverConfig) -> None:
    """Remote repositories cache below the configured root, under an escaped name."""
    remote = MavenRepository("my/repo:1", "https://example.com/m2")
    assert not remote.local
    assert remote.url == "https://example.com/m2/"
    assert remote.cache is not None
    assert remote.cache.local
    assert remote.cache.directory_path() == Path(resolver_config.cache_root) / "my%002frepo%003a1"


def test_cache_directory_name_escapes_control_characters() -> None:
    assert cache_directory_name('a\tb*c"') == "a%0009b%002ac%0022"
    assert cache_directory_name("central") == "central"


def test_remote_cache_must_be_local() -> None:
    other_remote = MavenRepository("other", "https://other.example.com/")
    with pytest.raises(ConfigurationError):
        MavenRepository("remote", "https://example.com/", cache=other_remote)


def test_invalid_url_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        MavenRepository("bad", "ftp://example.com/repo")
    with pytest.raises(ConfigurationError):
        MavenRepository("bad", "https:///no-host")


def test_sort_puts_local_repositories_first(tmp_path: Path) -> None:
    """Caches are inlined and local repositories precede remote ones, ties by name."""
    zeta = MavenRepository("zeta", "https://zeta.example.com/")
    alpha = MavenRepository("alpha", "https://alpha.example.com/")
    local = MavenRepository("local", tmp_path / "local")

    chain = sort_for_resolution([zeta, alpha, local, zeta])

    assert [r.name for r in chain] == ["alpha-cache", "local", "zeta-cache", "alpha", "zeta"]


def test_directory_to_lock(tmp_path: Path) -> None:
    local = MavenRepository("local", tmp_path / "local")
    remote = MavenRepository("remote", "https://example.com/")
    assert directory_to_lock(local) is None
    assert directory_to_lock(remote) == remote.cache.directory_path()


def test_repository_round_trip() -> None:
    """Repositories decode to an equal repository with the same settings."""
    remote = MavenRepository(
        "remote",
        "https://example.com/m2/",
        snapshots=False,
        checksum=Checksum.MD5,
        tolerate_checksum_mismatch=True,
        snapshot_update_delay_seconds=60,
    )
    data = encode_repository(remote)
    assert data["type"] == "maven2"

    decoded = decode_repository(data)
    assert decoded == remote
    assert decoded.cache == remote.cache
    assert decoded.checksum is Checksum.MD5
    assert decoded.tolerate_checksum_mismatch
    assert decoded.snapshots is False
    assert decoded.snapshot_update_delay_seconds == 60


def test_unknown_repository_type() -> None:
    with pytest.raises(ConfigurationError):
        decode_repository({"type": "ivy", "name": "x", "url": "https://example.com/"})


def test_dependency_round_trip(tmp_path: Path) -> None:
    repository = MavenRepository("local", tmp_path)
    dependency_id = DependencyId(
        "g", "a", "1", preferred_repository=repository,
        attributes={CLASSIFIER: "sources", SCOPE: "runtime"},
    )
    decoded_id = decode_dependency_id(encode_dependency_id(dependency_id))
    assert decoded_id == dependency_id
    assert decoded_id.attributes == dependency_id.attributes
    assert decoded_id.preferred_repository == repository

    plain = Dependency(dependency_id)
    assert "exclusions" not in encode_dependency(plain)
    assert decode_dependency(encode_dependency(plain)) == plain

    custom = Dependency(dependency_id, (DependencyExclusion(group="x", attributes={SCOPE: "test"}),))
    assert decode_dependency(encode_dependency(custom)) == custom
