"""Checksum policies and checksum file handling."""

from __future__ import annotations

import enum
import hashlib
import re
from typing import Optional

_HEX_TOKEN = re.compile(r"^[0-9a-fA-F]+$")
# BSD style: "SHA1 (name.jar) = 0123abcd..."
_BSD_LINE = re.compile(r"^\s*[A-Za-z0-9-]+\s*\(.*\)\s*=\s*([0-9a-fA-F]+)\s*$")


class Checksum(enum.Enum):
    """Checksum algorithm a repository publishes next to each file."""

    NONE = (".no-checksum", None)
    MD5 = (".md5", "md5")
    SHA1 = (".sha1", "sha1")

    def __init__(self, suffix: str, algorithm: Optional[str]) -> None:
        self.suffix = suffix
        self.algorithm = algorithm

    @classmethod
    def from_name(cls, name: str) -> "Checksum":
        """Return the policy for a case-insensitive name (``none``, ``md5``, ``sha1``)."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown checksum '{name}'") from None

    def digest_length(self) -> int:
        if self.algorithm is None:
            return 0
        return hashlib.new(self.algorithm).digest_size

    def checksum(self, data: bytes) -> bytes:
        """Compute the digest of ``data``.

        Raises:
            ValueError: For ``NONE``.
        """
        if self.algorithm is None:
            raise ValueError("Checksum.NONE has no digest")
        return hashlib.new(self.algorithm, data).digest()


def parse_hash_sum(text: str, expected_length: int = 0) -> Optional[bytes]:
    """Parse the content of a checksum file.

    Accepts a hex digest optionally followed by a file name (``sha1sum``
    output), or the BSD ``ALGO (file) = hex`` form. Surrounding whitespace
    and line breaks are ignored.

    Args:
        text: Checksum file content.
        expected_length: Digest size in bytes, 0 to accept any size.

    Returns:
        The digest bytes, or None when the content is malformed.
    """
    stripped = text.strip()
    if not stripped:
        return None

    bsd = _BSD_LINE.match(stripped.splitlines()[0])
    if bsd is not None:
        token = bsd.group(1)
    else:
        token = stripped.split()[0]
        if token.startswith("*"):
            token = token[1:]

    if not _HEX_TOKEN.match(token) or len(token) % 2 != 0:
        return None
    digest = bytes.fromhex(token)
    if expected_length and len(digest) != expected_length:
        return None
    return digest


def create_hash_sum(digest: bytes, file_name: str) -> str:
    """Render checksum file content for ``file_name``."""
    return f"{digest.hex()}  {file_name}\n"


def hash_matches(expected: bytes, computed: bytes) -> bool:
    return len(expected) == len(computed) and expected == computed


__all__ = ["Checksum", "parse_hash_sum", "create_hash_sum", "hash_matches"]
