"""Maven dependency resolution for the build tool.

See ``depresolver.dependency`` for the public API.
"""

__version__ = "0.1.0"
