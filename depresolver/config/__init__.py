"""Resolver configuration."""

from depresolver.config.schema import (
    CACHE_DIR_ENV,
    HttpConfig,
    ResolverConfig,
    get_resolver_config,
    set_resolver_config,
)

__all__ = [
    "CACHE_DIR_ENV",
    "HttpConfig",
    "ResolverConfig",
    "get_resolver_config",
    "set_resolver_config",
]
