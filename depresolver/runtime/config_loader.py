"""Helpers for loading resolver configuration from TOML/JSON sources.

``load_resolver_config`` accepts:

* None -> default ResolverConfig
* dict -> ResolverConfig.from_dict
* Path / path-like string -> load .toml/.json from filesystem
* Inline JSON/TOML strings

A ``[resolver]`` table (or ``"resolver"`` key) is unwrapped when present so
the settings can live inside a larger build configuration file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging
import tomllib

from pydantic import ValidationError

from depresolver.config.schema import ResolverConfig
from depresolver.errors import ConfigurationError

logger = logging.getLogger("depresolver.runtime.config_loader")

ConfigSource = Union[str, Path, Dict[str, Any], None]


def _detect_format(text: str) -> str:
    stripped = text.lstrip()
    return "json" if stripped.startswith(("{", "[")) else "toml"


def _from_mapping(data: Dict[str, Any]) -> ResolverConfig:
    section = data.get("resolver", data)
    if not isinstance(section, dict):
        raise ConfigurationError("'resolver' section must be a mapping")
    try:
        return ResolverConfig.from_dict(section)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid resolver configuration: {exc}") from exc


def load_resolver_config(source: ConfigSource) -> ResolverConfig:
    """Load ResolverConfig from various configuration sources.

    Args:
        source: One of:
            * None: returns the default ResolverConfig
            * dict: treated as already-parsed configuration mapping
            * str/Path: either a filesystem path to a .toml/.json file,
              or an inline TOML/JSON string (auto-detected)

    Returns:
        ResolverConfig instance.

    Raises:
        ConfigurationError: If the source cannot be parsed or validated.
    """
    if source is None:
        logger.debug("No config source provided; using default ResolverConfig")
        return ResolverConfig()

    if isinstance(source, dict):
        logger.debug("Loading ResolverConfig from provided dict")
        return _from_mapping(source)

    if isinstance(source, (str, Path)):
        path = Path(source)
        text: Optional[str] = None
        fmt: Optional[str] = None

        if isinstance(source, Path) or (len(str(source)) < 4096 and path.is_file()):
            text = path.read_text(encoding="utf-8")
            suffix = path.suffix.lower()
            if suffix in {".toml", ".tml"}:
                fmt = "toml"
            elif suffix == ".json":
                fmt = "json"
            else:
                fmt = _detect_format(text)
            logger.info("Loading configuration from file: %s (fmt=%s)", path, fmt)
        else:
            text = str(source)
            fmt = _detect_format(text)
            logger.info("Loading configuration from inline %s string", fmt)

        try:
            if fmt == "json":
                data = json.loads(text)
            else:
                data = tomllib.loads(text)
        except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
            raise ConfigurationError(f"Malformed {fmt} configuration: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError("Top-level configuration must be a mapping/dict")

        return _from_mapping(data)

    raise TypeError(f"Unsupported config source type: {type(source)!r}")


__all__ = ["load_resolver_config"]
