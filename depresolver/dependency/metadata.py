"""``maven-metadata.xml`` handling for unique snapshot versions.

Repositories that deploy snapshots with unique versions store files as
``name-1.0-20240102.030405-7.jar`` instead of ``name-1.0-SNAPSHOT.jar``. The
version-level metadata names the latest timestamp and build number.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Optional

from depresolver.errors import PomParseError

logger = logging.getLogger("depresolver.dependency.metadata")

METADATA_FILE = "maven-metadata.xml"


@dataclass(frozen=True)
class SnapshotMetadata:
    timestamp: Optional[str] = None
    build_number: Optional[str] = None

    @property
    def snapshot_version(self) -> Optional[str]:
        """``timestamp-buildNumber``, or None when the metadata has neither."""
        if not self.timestamp or not self.build_number:
            return None
        return f"{self.timestamp}-{self.build_number}"


def metadata_cache_name(repository_name: str) -> str:
    """Name under which a repository's metadata is cached.

    Each remote repository keeps its own copy, as in ``~/.m2``.
    """
    return f"maven-metadata-{repository_name}.xml"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_snapshot_metadata(data: bytes, url: str) -> SnapshotMetadata:
    """Read ``metadata/versioning/snapshot`` from metadata XML.

    Raises:
        PomParseError: If the XML is malformed.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise PomParseError(f"Malformed metadata {url}: {exc}") from exc

    values = {}
    for element in root.iter():
        if _local_name(element.tag) != "snapshot":
            continue
        for child in element:
            values[_local_name(child.tag)] = (child.text or "").strip()

    metadata = SnapshotMetadata(
        timestamp=values.get("timestamp") or None,
        build_number=values.get("buildNumber") or None,
    )
    logger.debug("Snapshot metadata %s: %s", url, metadata)
    return metadata


__all__ = [
    "METADATA_FILE",
    "SnapshotMetadata",
    "metadata_cache_name",
    "parse_snapshot_metadata",
]
