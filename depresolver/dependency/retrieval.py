"""Fetching files from repositories, checksum verification and caching."""

from __future__ import annotations

import logging
import os
import time
from email.utils import formatdate
from pathlib import Path
from typing import Optional, Tuple

from depresolver.dependency.checksum import Checksum, create_hash_sum, hash_matches, parse_hash_sum
from depresolver.dependency.http import http_get
from depresolver.dependency.repository import Repository
from depresolver.errors import IO_ERRORS

logger = logging.getLogger("depresolver.dependency.retrieval")

RetrievedFile = Tuple[Optional[bytes], Optional[Path]]


def _read_local(path: Path) -> Optional[bytes]:
    if path.is_dir():
        logger.warning("Expected file, found directory: %s", path)
        return None
    try:
        return path.read_bytes()
    except FileNotFoundError:
        logger.debug("File not found: %s", path)
        return None
    except IO_ERRORS as exc:
        logger.warning("Failed to read %s: %s", path, exc)
        return None


def _is_fresh(path: Path, max_age_seconds: int) -> bool:
    try:
        return time.time() - path.stat().st_mtime < max_age_seconds
    except FileNotFoundError:
        return False


def _download(url: str, cached: Optional[Path] = None) -> Tuple[Optional[bytes], bool]:
    """Download ``url``; the flag is True when ``cached`` is still current."""
    headers = {}
    if cached is not None and cached.is_file():
        headers["If-Modified-Since"] = formatdate(cached.stat().st_mtime, usegmt=True)

    response = http_get(url, headers=headers)
    if response is None:
        return None, False
    if response.status_code == 304 and headers:
        logger.debug("%s not modified since last download", url)
        return None, True
    if not 200 <= response.status_code < 300:
        logger.debug("GET %s returned %d", url, response.status_code)
        return None, False
    logger.info("Downloaded %s", url)
    return response.content, False


def _fetch_checksum_file(repository: Repository, path: str) -> Optional[bytes]:
    checksum_path = path + repository.checksum.suffix
    if repository.local:
        checksum_file = repository.directory_path() / checksum_path
        if not checksum_file.is_file():
            return None
        return _read_local(checksum_file)
    data, _ = _download(repository.file_url(checksum_path))
    return data


def verify_checksum(repository: Repository, path: str, data: bytes) -> bool:
    """Check ``data`` against the checksum file published next to ``path``.

    A missing checksum file is accepted with a warning. A malformed or
    mismatching one is rejected unless the repository tolerates mismatches.
    """
    checksum = repository.checksum
    if checksum is Checksum.NONE:
        return True

    published = _fetch_checksum_file(repository, path)
    if published is None:
        log = logger.debug if repository.local else logger.warning
        log("No %s checksum for %s in %s, skipping verification", checksum.name, path, repository)
        return True

    expected = parse_hash_sum(published.decode("utf-8", errors="replace"), checksum.digest_length())
    if expected is None:
        problem = "malformed checksum file"
    elif hash_matches(expected, checksum.checksum(data)):
        return True
    else:
        problem = f"{checksum.name} checksum mismatch"

    if repository.tolerate_checksum_mismatch:
        logger.warning("%s for %s in %s, continuing anyway", problem, path, repository)
        return True
    logger.warning("%s for %s in %s, file rejected", problem, path, repository)
    return False


def _store_in_cache(cache: Repository, cache_file: Path, data: bytes, snapshot: bool) -> Optional[Path]:
    try:
        if cache_file.is_file():
            existing_size = cache_file.stat().st_size
            if existing_size == len(data):
                logger.debug("Reusing cached %s", cache_file)
                return cache_file
            if not snapshot:
                logger.warning(
                    "Cached %s has %d bytes but the download has %d, not overwriting",
                    cache_file, existing_size, len(data),
                )
                return None

        cache_file.parent.mkdir(parents=True, exist_ok=True)
        partial = cache_file.with_name(cache_file.name + ".part")
        partial.write_bytes(data)
        os.replace(partial, cache_file)

        if cache.checksum is not Checksum.NONE:
            checksum_file = cache_file.with_name(cache_file.name + cache.checksum.suffix)
            checksum_file.write_text(
                create_hash_sum(cache.checksum.checksum(data), cache_file.name), encoding="utf-8"
            )
        logger.debug("Cached %s", cache_file)
        return cache_file
    except IO_ERRORS as exc:
        logger.warning("Failed to write %s to cache: %s", cache_file, exc)
        return None


def retrieve_file(
    path: str,
    repository: Repository,
    snapshot: bool = False,
    cache_path: Optional[str] = None,
) -> RetrievedFile:
    """Retrieve ``path`` from ``repository``.

    Local repositories are read directly. Remote files are downloaded,
    verified and stored in the repository's cache; cached snapshots younger
    than ``snapshot_update_delay_seconds`` are used without a request.

    Args:
        path: Path relative to the repository root.
        repository: Repository to read from.
        snapshot: Whether the file belongs to a snapshot (mutable) version.
        cache_path: Path inside the cache, ``path`` when None.

    Returns:
        ``(data, local_path)``; ``(None, None)`` when the file is missing or
        invalid. ``local_path`` is None when the file could not be cached.
    """
    if repository.local:
        local_file = repository.directory_path() / path
        data = _read_local(local_file)
        if data is None or not verify_checksum(repository, path, data):
            return None, None
        return data, local_file

    cache = repository.cache
    cache_file = cache.directory_path() / (cache_path or path) if cache is not None else None

    if snapshot and cache_file is not None and cache_file.is_file():
        if _is_fresh(cache_file, repository.snapshot_update_delay_seconds):
            logger.debug("Using cached snapshot %s", cache_file)
            data = _read_local(cache_file)
            if data is not None:
                return data, cache_file

    url = repository.file_url(path)
    data, not_modified = _download(url, cache_file if snapshot else None)
    if not_modified and cache_file is not None:
        data = _read_local(cache_file)
        if data is not None:
            cache_file.touch()
            return data, cache_file
        data, _ = _download(url)
    if data is None:
        return None, None

    if not verify_checksum(repository, path, data):
        logger.info("Downloading %s again after failed verification", url)
        data, _ = _download(url)
        if data is None or not verify_checksum(repository, path, data):
            return None, None

    if cache is None or cache_file is None:
        return data, None
    return data, _store_in_cache(cache, cache_file, data, snapshot)


__all__ = ["RetrievedFile", "retrieve_file", "verify_checksum"]
