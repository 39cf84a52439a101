"""
Path helpers for projects living inside a repository.

Relative paths are always reported with forward slashes so that they can
be used as Git pathspecs and compared across platforms.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List


def relative_path(root: Path, path: Path) -> str:
    """Return ``path`` relative to ``root``; ``""`` if they are the same."""
    root = Path(root).resolve()
    path = Path(path).resolve()
    if root == path:
        return ""
    return os.path.relpath(path, root).replace(os.sep, "/")


def is_outside(relative: str) -> bool:
    """Whether a relative path string leaves its base directory."""
    return relative == ".." or relative.startswith("../")


def resolve_subprojects(project: Path, declared: Iterable[Path]) -> List[Path]:
    """Keep the declared subproject directories nested strictly below ``project``.

    A project never excludes itself or any directory that is not below it,
    which also drops its ancestors. Duplicates are removed, order is kept.
    """
    result: List[Path] = []
    for directory in declared:
        directory = Path(directory).resolve()
        relative = relative_path(project, directory)
        if not relative or is_outside(relative):
            continue
        if directory not in result:
            result.append(directory)
    return result


def subproject_paths(base: Path, subprojects: Iterable[Path]) -> List[str]:
    """Relative path strings of ``subprojects`` from ``base``, deduplicated."""
    paths: List[str] = []
    for directory in subprojects:
        relative = relative_path(base, directory)
        if relative and relative not in paths:
            paths.append(relative)
    return paths
