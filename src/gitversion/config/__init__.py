"""
Configuration loading for gitversion.

Provides a loader for the optional ``.gitversion.json`` file located in
the repository root. See :mod:`gitversion.config.loader` for
implementation details.
"""

from .loader import (  # noqa: F401
    EMPTY_CONFIG,
    ConfigError,
    GitVersionConfig,
    ProjectConfig,
    load_config,
    parse_config,
)
