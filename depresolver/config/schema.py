"""Configuration schema definitions using Pydantic for validation.

The resolver reads a single process-wide ``ResolverConfig``. It controls
where remote repositories cache their files, how the HTTP client behaves and
how long downloaded snapshots are trusted.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator

CACHE_DIR_ENV = "DEPRESOLVER_CACHE_DIR"

_VALID_CHECKSUMS = {"none", "md5", "sha1"}


class HttpConfig(BaseModel):
    """Configuration for the HTTP client used against remote repositories.

    Attributes:
        timeout: Timeout for a single request (seconds).
        retries: Additional attempts after a transient failure.
        user_agent: Value of the ``User-Agent`` header.
    """

    timeout: float = Field(default=30.0, ge=1.0, le=600.0)
    retries: int = Field(default=2, ge=0, le=10)
    user_agent: str = "depresolver/0.1 (Maven dependency resolver)"

    model_config = {"extra": "allow"}


class ResolverConfig(BaseModel):
    """Top-level resolver configuration.

    Attributes:
        cache_root: Directory holding automatically created repository
            caches. ``None`` means ``$DEPRESOLVER_CACHE_DIR`` or
            ``~/.depresolver/maven-cache``.
        http: HTTP client settings.
        snapshot_update_delay_seconds: How long a cached snapshot is used
            before the remote repository is asked again.
        default_checksum: Checksum policy of repositories that do not name one.
        system_properties: Values used for ``${key}`` POM placeholders that no
            other source defines.
        lock_timeout: Maximum wait for a cache lock on platforms without
            ``fcntl`` (seconds).
    """

    cache_root: Optional[str] = None
    http: HttpConfig = Field(default_factory=HttpConfig)
    snapshot_update_delay_seconds: int = Field(default=24 * 60 * 60, ge=0)
    default_checksum: str = "sha1"
    system_properties: Dict[str, str] = Field(default_factory=dict)
    lock_timeout: float = Field(default=300.0, gt=0)

    model_config = {"extra": "allow"}

    @field_validator("default_checksum")
    @classmethod
    def validate_checksum(cls, v: str) -> str:
        """Validate that the checksum policy is a known algorithm."""
        normalized = v.strip().lower()
        if normalized not in _VALID_CHECKSUMS:
            raise ValueError(
                f"Invalid checksum '{v}'. Valid checksums: {sorted(_VALID_CHECKSUMS)}"
            )
        return normalized

    def resolved_cache_root(self) -> Path:
        """Return the directory under which repository caches are created."""
        if self.cache_root:
            return Path(self.cache_root).expanduser()
        env_value = os.environ.get(CACHE_DIR_ENV)
        if env_value:
            return Path(env_value).expanduser()
        return Path.home() / ".depresolver" / "maven-cache"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolverConfig":
        """Create configuration from dictionary.

        Args:
            data: Configuration dictionary.

        Returns:
            ResolverConfig: Validated configuration instance.
        """
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump()


_current_config: Optional[ResolverConfig] = None


def get_resolver_config() -> ResolverConfig:
    """Return the process-wide resolver configuration, creating the default."""
    global _current_config
    if _current_config is None:
        _current_config = ResolverConfig()
    return _current_config


def set_resolver_config(config: Optional[ResolverConfig]) -> None:
    """Replace the process-wide configuration (``None`` restores defaults)."""
    global _current_config
    _current_config = config
