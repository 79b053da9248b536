"""Shared fixtures: isolated configuration, on-disk Maven repositories and a fake HTTP remote."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import pytest
import requests

from depresolver.config.schema import HttpConfig, ResolverConfig, set_resolver_config
from depresolver.dependency.repository import MavenRepository


def _dependency_xml(declared: Dict[str, object]) -> str:
    parts = [f"<groupId>{declared['group']}</groupId>", f"<artifactId>{declared['name']}</artifactId>"]
    for key, tag in (
        ("version", "version"),
        ("type", "type"),
        ("classifier", "classifier"),
        ("scope", "scope"),
        ("optional", "optional"),
    ):
        if declared.get(key) is not None:
            parts.append(f"<{tag}>{declared[key]}</{tag}>")
    exclusions = declared.get("exclusions") or ()
    if exclusions:
        rendered = "".join(
            f"<exclusion><groupId>{g}</groupId><artifactId>{a}</artifactId></exclusion>"
            for g, a in exclusions
        )
        parts.append(f"<exclusions>{rendered}</exclusions>")
    return "<dependency>" + "".join(parts) + "</dependency>"


def build_pom(
    group: Optional[str],
    name: str,
    version: Optional[str],
    dependencies: Sequence[Dict[str, object]] = (),
    packaging: Optional[str] = None,
    parent: Optional[Dict[str, str]] = None,
    properties: Optional[Dict[str, str]] = None,
    management: Sequence[Dict[str, object]] = (),
) -> str:
    """Render a namespaced POM document."""
    body: List[str] = ["<modelVersion>4.0.0</modelVersion>"]
    if parent is not None:
        rendered = "".join(f"<{k}>{v}</{k}>" for k, v in parent.items())
        body.append(f"<parent>{rendered}</parent>")
    if group is not None:
        body.append(f"<groupId>{group}</groupId>")
    body.append(f"<artifactId>{name}</artifactId>")
    if version is not None:
        body.append(f"<version>{version}</version>")
    if packaging is not None:
        body.append(f"<packaging>{packaging}</packaging>")
    if properties:
        rendered = "".join(f"<{k}>{v}</{k}>" for k, v in properties.items())
        body.append(f"<properties>{rendered}</properties>")
    if management:
        rendered = "".join(_dependency_xml(d) for d in management)
        body.append(f"<dependencyManagement><dependencies>{rendered}</dependencies></dependencyManagement>")
    if dependencies:
        body.append("<dependencies>" + "".join(_dependency_xml(d) for d in dependencies) + "</dependencies>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<project xmlns="http://maven.apache.org/POM/4.0.0">'
        + "".join(body)
        + "</project>\n"
    )


def dep(group: str, name: str, version: Optional[str] = "1.0", **extra: object) -> Dict[str, object]:
    """Dependency entry for ``build_pom``."""
    declared: Dict[str, object] = {"group": group, "name": name, "version": version}
    declared.update(extra)
    return declared


class MavenTree:
    """Writes Maven 2 layout files (with .sha1 checksums) below ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def write(self, path: str, data: bytes, checksum: bool = True) -> Path:
        target = self.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        if checksum:
            digest = hashlib.sha1(data).hexdigest()
            (self.root / (path + ".sha1")).write_text(digest + "\n", encoding="utf-8")
        return target

    def publish(
        self,
        group: str,
        name: str,
        version: str,
        dependencies: Sequence[Dict[str, object]] = (),
        jar: Optional[bytes] = None,
        file_version: Optional[str] = None,
        **pom_args: object,
    ) -> str:
        """Publish a POM and (unless packaging is pom) a jar. Returns the directory path."""
        directory = f"{group.replace('.', '/')}/{name}/{version}"
        base = f"{directory}/{name}-{file_version or version}"
        pom = build_pom(group, name, version, dependencies, **pom_args)
        self.write(base + ".pom", pom.encode("utf-8"))
        if pom_args.get("packaging") != "pom":
            self.write(base + ".jar", jar if jar is not None else f"jar of {group}:{name}".encode())
        return directory


class FakeRemote(MavenTree):
    """Serves ``root`` at ``base_url`` through a patched ``requests.get``."""

    def __init__(self, root: Path, base_url: str) -> None:
        super().__init__(root)
        self.base_url = base_url
        self.requests: List[str] = []
        self.headers: List[Dict[str, str]] = []
        self.status_overrides: Dict[str, List[int]] = {}
        self.content_overrides: Dict[str, List[bytes]] = {}

    def response(self, status: int, content: bytes = b"") -> requests.Response:
        response = requests.Response()
        response.status_code = status
        response._content = content
        return response

    def get(self, url: str, timeout: Optional[float] = None, headers: Optional[Dict[str, str]] = None, **kwargs: object) -> requests.Response:
        self.requests.append(url)
        self.headers.append(dict(headers or {}))
        overrides = self.status_overrides.get(url)
        if overrides:
            return self.response(overrides.pop(0))
        contents = self.content_overrides.get(url)
        if contents:
            return self.response(200, contents.pop(0))
        if not url.startswith(self.base_url):
            return self.response(404)
        target = self.root / url[len(self.base_url):]
        if target.is_file():
            return self.response(200, target.read_bytes())
        return self.response(404)

    def requested(self, suffix: str) -> List[str]:
        return [url for url in self.requests if url.endswith(suffix)]


@pytest.fixture(autouse=True)
def resolver_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ResolverConfig]:
    """Every test gets its own cache root and no retry sleeps."""
    config = ResolverConfig(cache_root=str(tmp_path / "cache"), http=HttpConfig(retries=2))
    set_resolver_config(config)
    monkeypatch.setattr("depresolver.dependency.http.time.sleep", lambda seconds: None)
    yield config
    set_resolver_config(None)


@pytest.fixture
def pom() -> Callable[..., str]:
    return build_pom


@pytest.fixture
def make_dep() -> Callable[..., Dict[str, object]]:
    return dep


@pytest.fixture
def local_tree(tmp_path: Path) -> MavenTree:
    return MavenTree(tmp_path / "local-repo")


@pytest.fixture
def local_repo(local_tree: MavenTree) -> MavenRepository:
    return MavenRepository("local", local_tree.root)


@pytest.fixture
def remote(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeRemote:
    fake = FakeRemote(tmp_path / "remote-files", "https://repo.example.com/maven2/")
    monkeypatch.setattr(requests, "get", fake.get)
    return fake


@pytest.fixture
def remote_repo(remote: FakeRemote) -> MavenRepository:
    return MavenRepository("remote", remote.base_url)
