"""
Version control system (VCS) integration.

This package contains the Git access layer used by the version resolver
and the changelog generator. The client exposes read-only queries for
resolving HEAD, listing tags and remote branches, walking commit ranges,
and computing merge bases.
"""

from .git_client import (  # noqa: F401
    ClosedSessionError,
    Commit,
    GitClient,
    GitError,
    RemoteBranch,
    RepositoryOpenError,
    TagRef,
    UnresolvableRefError,
)
