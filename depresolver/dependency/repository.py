"""Repository descriptors and resolution-chain ordering.

A repository is either local (``file:`` URL, read directly from disk) or
remote (HTTP). Every remote repository owns a local cache repository that
downloaded files are written to. Local repositories never have a cache.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlparse
from urllib.request import url2pathname

from depresolver.config.schema import get_resolver_config
from depresolver.dependency.checksum import Checksum
from depresolver.errors import ConfigurationError
from depresolver.utils.validation import validate_repository_url

if TYPE_CHECKING:
    from depresolver.dependency.model import DependencyId, ResolvedDependency

logger = logging.getLogger("depresolver.dependency.repository")

_UNSAFE_NAME_CHARACTERS = set('\\/:*?"<>|')

MAVEN_CENTRAL_URL = "https://repo.maven.apache.org/maven2/"


def cache_directory_name(name: str) -> str:
    """Escape a repository name so it can be used as a directory name."""
    escaped = []
    for ch in name:
        if ch in _UNSAFE_NAME_CHARACTERS or ord(ch) < 0x20 or ord(ch) == 0x7F:
            escaped.append(f"%{ord(ch):04x}")
        else:
            escaped.append(ch)
    return "".join(escaped)


def _normalize_url(url: Union[str, Path]) -> str:
    if isinstance(url, Path):
        url = url.expanduser().absolute().as_uri()
    if not url.endswith("/"):
        url += "/"
    return url


class Repository(ABC):
    """Base class for artifact repositories.

    Each repository kind implements ``resolve_in_repository`` for its own
    layout. Retrieval of raw files is shared and goes through
    ``depresolver.dependency.retrieval``.
    """

    TYPE: str = "base"

    def __init__(
        self,
        name: str,
        url: Union[str, Path],
        cache: Optional["Repository"] = None,
        releases: bool = True,
        snapshots: bool = True,
        checksum: Optional[Checksum] = None,
        tolerate_checksum_mismatch: bool = False,
        snapshot_update_delay_seconds: Optional[int] = None,
    ) -> None:
        """Initialize repository.

        Args:
            name: Unique repository name.
            url: Base URL, or a filesystem path for a local repository.
            cache: Local repository to store downloads in. Remote
                repositories get a default cache when None; local
                repositories ignore it.
            releases: Whether release versions are looked up here.
            snapshots: Whether snapshot versions are looked up here.
            checksum: Checksum policy, the configured default when None.
            tolerate_checksum_mismatch: Accept files whose checksum is wrong.
            snapshot_update_delay_seconds: How long cached snapshots are
                trusted, the configured default when None.

        Raises:
            ConfigurationError: On an invalid URL or a non-local cache.
        """
        config = get_resolver_config()
        self.name = name
        self.url = _normalize_url(url)
        if not validate_repository_url(self.url):
            raise ConfigurationError(f"Invalid URL for repository '{name}': {self.url}")
        self.releases = releases
        self.snapshots = snapshots
        self.checksum = checksum if checksum is not None else Checksum.from_name(config.default_checksum)
        self.tolerate_checksum_mismatch = tolerate_checksum_mismatch
        self.snapshot_update_delay_seconds = (
            snapshot_update_delay_seconds
            if snapshot_update_delay_seconds is not None
            else config.snapshot_update_delay_seconds
        )

        if self.local:
            if cache is not None:
                logger.warning(
                    "Local repository %s does not need a cache, ignoring %s", name, cache.name
                )
            self.cache: Optional[Repository] = None
        else:
            if cache is None:
                cache = self._default_cache(config.resolved_cache_root())
            elif not cache.local:
                raise ConfigurationError(
                    f"Cache of repository '{name}' must be local, got {cache.url}"
                )
            self.cache = cache

    def _default_cache(self, cache_root: Path) -> "Repository":
        return type(self)(
            name=f"{self.name}-cache",
            url=cache_root / cache_directory_name(self.name),
            releases=self.releases,
            snapshots=False,
            checksum=self.checksum,
        )

    @property
    def local(self) -> bool:
        return urlparse(self.url).scheme == "file"

    def directory_path(self) -> Optional[Path]:
        """Filesystem root of a local repository, None for remote ones."""
        if not self.local:
            return None
        return Path(url2pathname(urlparse(self.url).path))

    def file_url(self, path: str) -> str:
        """Absolute URL of ``path`` inside this repository."""
        return self.url + path.lstrip("/")

    def retrieve(
        self, path: str, snapshot: bool = False, cache_path: Optional[str] = None
    ) -> Tuple[Optional[bytes], Optional[Path]]:
        """Retrieve ``path`` from this repository.

        Args:
            path: Path relative to the repository root.
            snapshot: Whether the file belongs to a snapshot version.
            cache_path: Path inside the cache, ``path`` when None.

        Returns:
            ``(data, local_path)``, see ``retrieval.retrieve_file``.
        """
        from depresolver.dependency.retrieval import retrieve_file

        return retrieve_file(path, self, snapshot=snapshot, cache_path=cache_path)

    @abstractmethod
    def resolve_in_repository(
        self, dependency_id: "DependencyId", repositories: Iterable["Repository"]
    ) -> "ResolvedDependency":
        """Resolve a single coordinate in this repository only.

        Args:
            dependency_id: Coordinate to resolve.
            repositories: All repositories, used for parent POM lookup.

        Returns:
            ResolvedDependency describing success or failure.
        """

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Repository):
            return NotImplemented
        return (self.TYPE, self.name, self.url) == (other.TYPE, other.name, other.url)

    def __hash__(self) -> int:
        return hash((self.TYPE, self.name, self.url))

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, url={self.url!r})"


class MavenRepository(Repository):
    """Repository using the Maven 2 directory layout."""

    TYPE = "maven2"

    def resolve_in_repository(
        self, dependency_id: "DependencyId", repositories: Iterable[Repository]
    ) -> "ResolvedDependency":
        from depresolver.dependency.maven2 import resolve_in_m2_repository

        return resolve_in_m2_repository(dependency_id, self, repositories)


def sort_for_resolution(repositories: Iterable[Repository]) -> List[Repository]:
    """Return the lookup order for ``repositories``.

    Caches are inlined next to their owners, duplicates are dropped, local
    repositories come before remote ones and ties are broken by name.
    """
    chain: List[Repository] = []
    seen = set()
    for repository in repositories:
        for candidate in (repository.cache, repository):
            if candidate is not None and candidate not in seen:
                seen.add(candidate)
                chain.append(candidate)
    return sorted(chain, key=lambda r: (not r.local, r.name))


def directory_to_lock(repository: Repository) -> Optional[Path]:
    """Directory that resolution writes into for ``repository``.

    Remote repositories lock the directory of their cache. Local
    repositories are only read, so they are never locked.
    """
    if repository.cache is not None:
        return repository.cache.directory_path()
    return None


def local_m2_repository() -> MavenRepository:
    """The user's ``~/.m2/repository``."""
    return MavenRepository("local", Path.home() / ".m2" / "repository")


def maven_central() -> MavenRepository:
    return MavenRepository("central", MAVEN_CENTRAL_URL, snapshots=False)


def sonatype_oss(channel: str) -> MavenRepository:
    """Sonatype OSS repository for ``channel`` (``releases``, ``snapshots``...)."""
    return MavenRepository(
        f"sonatype-oss-{channel}",
        f"https://oss.sonatype.org/content/repositories/{channel}/",
        releases=channel != "snapshots",
        snapshots=channel != "releases",
    )


def default_repositories() -> List[Repository]:
    return [local_m2_repository(), maven_central()]


__all__ = [
    "MAVEN_CENTRAL_URL",
    "cache_directory_name",
    "Repository",
    "MavenRepository",
    "sort_for_resolution",
    "directory_to_lock",
    "local_m2_repository",
    "maven_central",
    "sonatype_oss",
    "default_repositories",
]
