"""File retrieval: checksum verification, caching and snapshot freshness."""

from __future__ import annotations

import hashlib
import os
import time
from pathlib import Path

import requests

from depresolver.dependency.checksum import Checksum, create_hash_sum, parse_hash_sum
from depresolver.dependency.http import http_get
from depresolver.dependency.repository import MavenRepository
from depresolver.dependency.retrieval import retrieve_file

SHA1_OF_ABC = hashlib.sha1(b"abc").digest()


def test_parse_hash_sum_formats() -> None:
    """Plain, sha1sum-style and BSD-style checksum files are understood."""
    hex_digest = SHA1_OF_ABC.hex()
    assert parse_hash_sum(hex_digest) == SHA1_OF_ABC
    assert parse_hash_sum(f"  {hex_digest.upper()}\n") == SHA1_OF_ABC
    assert parse_hash_sum(f"{hex_digest}  lib-1.0.jar\n") == SHA1_OF_ABC
    assert parse_hash_sum(f"{hex_digest} *lib-1.0.jar") == SHA1_OF_ABC
    assert parse_hash_sum(f"SHA1 (lib-1.0.jar) = {hex_digest}\n") == SHA1_OF_ABC
    assert parse_hash_sum(create_hash_sum(SHA1_OF_ABC, "x.jar"), 20) == SHA1_OF_ABC


def test_parse_hash_sum_rejects_malformed() -> None:
    assert parse_hash_sum("") is None
    assert parse_hash_sum("not a checksum") is None
    assert parse_hash_sum("abc") is None
    assert parse_hash_sum(hashlib.md5(b"abc").hexdigest(), expected_length=20) is None


def test_local_retrieval(local_tree, local_repo) -> None:
    """Local repositories are read from disk and verified against their checksum file."""
    target = local_tree.write("g/a/1/a-1.jar", b"content")
    data, path = retrieve_file("g/a/1/a-1.jar", local_repo)
    assert data == b"content"
    assert path == target

    assert retrieve_file("g/a/1/missing.jar", local_repo) == (None, None)
    assert retrieve_file("g/a/1", local_repo) == (None, None)


def test_repository_retrieve_goes_through_retrieval(local_tree, local_repo) -> None:
    target = local_tree.write("g/a/1/a-1.pom", b"<project/>")
    assert local_repo.retrieve("g/a/1/a-1.pom") == (b"<project/>", target)
    assert local_repo.retrieve("g/a/1/a-1.jar") == (None, None)


def test_local_checksum_mismatch(local_tree, tmp_path: Path) -> None:
    """A wrong checksum rejects the file unless mismatches are tolerated."""
    local_tree.write("g/a/1/a-1.jar", b"content", checksum=False)
    (local_tree.root / "g/a/1/a-1.jar.sha1").write_text("0" * 40, encoding="utf-8")

    strict = MavenRepository("strict", local_tree.root)
    tolerant = MavenRepository("tolerant", local_tree.root, tolerate_checksum_mismatch=True)
    unchecked = MavenRepository("unchecked", local_tree.root, checksum=Checksum.NONE)

    assert retrieve_file("g/a/1/a-1.jar", strict) == (None, None)
    assert retrieve_file("g/a/1/a-1.jar", tolerant)[0] == b"content"
    assert retrieve_file("g/a/1/a-1.jar", unchecked)[0] == b"content"


def test_missing_checksum_file_is_accepted(local_tree, local_repo) -> None:
    local_tree.write("g/a/1/a-1.jar", b"content", checksum=False)
    assert retrieve_file("g/a/1/a-1.jar", local_repo)[0] == b"content"


def test_remote_download_is_cached(remote, remote_repo) -> None:
    """Downloads land in the cache together with a checksum file."""
    remote.write("g/a/1/a-1.jar", b"remote content")

    data, path = retrieve_file("g/a/1/a-1.jar", remote_repo)

    cache_root = remote_repo.cache.directory_path()
    assert data == b"remote content"
    assert path == cache_root / "g/a/1/a-1.jar"
    assert path.read_bytes() == b"remote content"
    checksum_file = cache_root / "g/a/1/a-1.jar.sha1"
    assert parse_hash_sum(checksum_file.read_text(encoding="utf-8")) == hashlib.sha1(b"remote content").digest()
    assert remote.requested("a-1.jar") == [remote.base_url + "g/a/1/a-1.jar"]
    assert remote.headers[0]["Cache-Control"] == "no-cache"
    assert "User-Agent" in remote.headers[0]


def test_remote_corrupted_file_is_rejected(remote, remote_repo) -> None:
    """A checksum mismatch fails the retrieval and nothing is cached."""
    remote.write("g/a/1/a-1.jar", b"original")
    (remote.root / "g/a/1/a-1.jar").write_bytes(b"tampered")

    assert retrieve_file("g/a/1/a-1.jar", remote_repo) == (None, None)
    assert not (remote_repo.cache.directory_path() / "g/a/1/a-1.jar").exists()
    assert len(remote.requested("a-1.jar")) == 2


def test_release_cache_with_different_size_is_not_overwritten(remote, remote_repo) -> None:
    remote.write("g/a/1/a-1.jar", b"new and longer content")
    cached = remote_repo.cache.directory_path() / "g/a/1/a-1.jar"
    cached.parent.mkdir(parents=True)
    cached.write_bytes(b"old")

    data, path = retrieve_file("g/a/1/a-1.jar", remote_repo)

    assert data == b"new and longer content"
    assert path is None
    assert cached.read_bytes() == b"old"


def test_fresh_snapshot_is_served_from_cache(remote, remote_repo) -> None:
    """A cached snapshot younger than the update delay needs no request."""
    cached = remote_repo.cache.directory_path() / "g/a/1-SNAPSHOT/a-1-SNAPSHOT.jar"
    cached.parent.mkdir(parents=True)
    cached.write_bytes(b"cached snapshot")

    data, path = retrieve_file("g/a/1-SNAPSHOT/a-1-SNAPSHOT.jar", remote_repo, snapshot=True)

    assert data == b"cached snapshot"
    assert path == cached
    assert remote.requests == []


def test_stale_snapshot_not_modified(remote, remote_repo) -> None:
    """A stale snapshot is revalidated with If-Modified-Since; 304 keeps the cache."""
    path = "g/a/1-SNAPSHOT/a-1-SNAPSHOT.jar"
    cached = remote_repo.cache.directory_path() / path
    cached.parent.mkdir(parents=True)
    cached.write_bytes(b"cached snapshot")
    old = time.time() - 2 * remote_repo.snapshot_update_delay_seconds
    os.utime(cached, (old, old))
    remote.status_overrides[remote.base_url + path] = [304]

    data, result_path = retrieve_file(path, remote_repo, snapshot=True)

    assert data == b"cached snapshot"
    assert result_path == cached
    assert "If-Modified-Since" in remote.headers[0]
    assert cached.stat().st_mtime > old


def test_stale_snapshot_is_replaced(remote, remote_repo) -> None:
    path = "g/a/1-SNAPSHOT/a-1-SNAPSHOT.jar"
    remote.write(path, b"a newer snapshot build")
    cached = remote_repo.cache.directory_path() / path
    cached.parent.mkdir(parents=True)
    cached.write_bytes(b"old build")
    old = time.time() - 2 * remote_repo.snapshot_update_delay_seconds
    os.utime(cached, (old, old))

    data, result_path = retrieve_file(path, remote_repo, snapshot=True)

    assert data == b"a newer snapshot build"
    assert cached.read_bytes() == b"a newer snapshot build"


def test_http_get_retries_server_errors(remote) -> None:
    """5xx responses are retried up to the configured number of times."""
    url = remote.base_url + "g/a/1/a-1.pom"
    remote.write("g/a/1/a-1.pom", b"<project/>")
    remote.status_overrides[url] = [503, 502]

    response = http_get(url)

    assert response is not None
    assert response.status_code == 200
    assert len(remote.requests) == 3


def test_http_get_gives_up_on_connection_errors(monkeypatch) -> None:
    calls = []

    def failing_get(url, timeout=None, headers=None):
        calls.append(url)
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "get", failing_get)
    assert http_get("https://unreachable.example.com/x") is None
    assert len(calls) == 3


def test_remote_not_found(remote, remote_repo) -> None:
    assert retrieve_file("g/a/1/a-1.jar", remote_repo) == (None, None)


def test_corrupted_download_is_fetched_again(remote, remote_repo) -> None:
    """A download failing verification is retried once before giving up."""
    remote.write("g/a/1/a-1.jar", b"original")
    url = remote.base_url + "g/a/1/a-1.jar"
    remote.content_overrides[url] = [b"truncated"]

    data, path = retrieve_file("g/a/1/a-1.jar", remote_repo)

    assert data == b"original"
    assert path.read_bytes() == b"original"
    assert remote.requested("a-1.jar") == [url, url]


def test_remote_checksum_mismatch_tolerated(remote) -> None:
    remote.write("g/a/1/a-1.jar", b"original")
    (remote.root / "g/a/1/a-1.jar").write_bytes(b"tampered")
    tolerant = MavenRepository("tolerant", remote.base_url, tolerate_checksum_mismatch=True)

    data, path = retrieve_file("g/a/1/a-1.jar", tolerant)

    assert data == b"tampered"
    assert path == tolerant.cache.directory_path() / "g/a/1/a-1.jar"
    assert len(remote.requested("a-1.jar")) == 1
