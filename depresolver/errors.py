"""Error taxonomy shared by the resolver packages.

Resolution failures are reported as data on ``ResolvedDependency`` values.
The exceptions below are raised only at the seams where input cannot be
interpreted at all and are converted back into data by their callers.
"""

import requests

# =============================================================================
# Custom Exception Hierarchy
# =============================================================================


class RecoverableError(Exception):
    """Base class for recoverable resolution errors.

    These errors indicate that a single coordinate, file or configuration
    source is unusable. Callers skip the item and keep resolving.
    """
    pass


class ConfigurationError(RecoverableError):
    """Invalid repository definition, attribute name or configuration file."""
    pass


class PomParseError(RecoverableError):
    """POM or maven-metadata document is malformed or unsupported.

    Raised for broken XML and for a ``modelVersion`` other than 4.0.0.
    """
    pass


# =============================================================================
# Exception Categories for Graceful Handling
# =============================================================================

# Filesystem errors while reading repositories or writing caches
IO_ERRORS = (
    OSError,
    IOError,
)

# Network errors raised by the HTTP client
TRANSPORT_ERRORS = (
    requests.ConnectionError,
    requests.Timeout,
)


__all__ = [
    "RecoverableError",
    "ConfigurationError",
    "PomParseError",
    "IO_ERRORS",
    "TRANSPORT_ERRORS",
]
