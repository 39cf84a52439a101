"""
Dynamic version generation for gitversion.

The package versions itself with its own engine: a non-strict session over
the working directory yields ``<tag>.<offset>`` (e.g. ``0.3.12`` for twelve
commits after tag ``v0.3``). Outside a repository, or when no tag matches,
the result is the development fallback ``<base>.0.dev0``.
"""

from pathlib import Path
from typing import Optional

from gitversion.session import build_git_version
from gitversion.versioning.info import EMPTY_INFO


def generate_version(base_version: str, repo_path: Optional[Path] = None) -> str:
    """
    Generate the version string of the package.

    Args:
        base_version: The base/major version used for the fallback (e.g., "0")
        repo_path: Directory inside the repository. If None, uses current directory.

    Returns:
        ``<tag>.<offset>`` or ``<base_version>.0.dev0``.
    """
    project = Path(repo_path) if repo_path is not None else Path.cwd()
    with build_git_version(project=project, strict=False) as version:
        info = version.get_info()

    if info == EMPTY_INFO:
        return f"{base_version}.0.dev0"
    return info.tag_offset()
