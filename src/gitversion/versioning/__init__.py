"""
Version resolution for gitversion.

This package turns tags and history into version information. See
:mod:`gitversion.versioning.resolver` for the describe and offset logic,
:mod:`gitversion.versioning.tags` for tag handling and
:mod:`gitversion.versioning.paths` for subproject path scoping.
"""

from .info import DEFAULT_ALLOWED_BRANCHES, EMPTY_INFO, Info  # noqa: F401
from .lazy import Lazy  # noqa: F401
from .resolver import calculate_info  # noqa: F401
