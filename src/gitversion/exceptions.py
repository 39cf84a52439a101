"""
Exception hierarchy for gitversion.

Every error raised by the engine derives from :class:`GitVersionError` so
that callers can handle failures uniformly. Errors that originate in the
Git access layer live in :mod:`gitversion.vcs.git_client`, and
configuration errors in :mod:`gitversion.config.loader`; both subclass the
base defined here.
"""

from __future__ import annotations


class GitVersionError(Exception):
    """Base class for all gitversion errors."""

    pass


class ConstructionError(GitVersionError):
    """Raised when a session cannot be built.

    Typical causes are a project directory outside of the root, a missing
    repository, or a project path that has no entry in the configuration.
    """

    pass


class NoMatchingTagError(GitVersionError):
    """Raised when no tag matches the tag prefix and filters."""

    pass


class CommitCountError(GitVersionError):
    """Raised when the path-scoped commit count cannot be computed."""

    pass


class ChangelogGenerationError(GitVersionError):
    """Raised when the changelog cannot be generated."""

    pass
