"""
Top-level package for gitversion.

gitversion derives version strings and changelogs from the history of a
Git repository. The programmatic entry point is
:func:`gitversion.session.build_git_version`; the ``gitversion`` command is
defined in ``gitversion.cli``.
"""

__all__ = ["__version__", "__base_version__"]

# Major version - controlled manually by the programmer
__base_version__ = "0"

# Full version - the engine versions itself from the tags of its own repository
try:
    from gitversion._version import generate_version
    __version__ = generate_version(__base_version__)
except Exception:
    # Fallback if version generation fails (e.g., not in a git repo)
    __version__ = f"{__base_version__}.0.dev0"
