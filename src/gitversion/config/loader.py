"""
Configuration loader for gitversion.

The engine reads an optional JSON configuration file named
``.gitversion.json`` from the repository root. It describes the root
project and every subproject of a multi-project repository::

    {
        "root": {"tag": "", "filters": ["!*-beta*"]},
        "libs/core": {"tag": "core"},
        "tools": {"path": "tools/cli", "include": ["shared"]}
    }

The ``root`` key (or its absence) describes the root project. Every other
key must map to an object and declares a subproject whose path is ``path``
when given, otherwise the key itself. No subproject may share the root
project's path or the path of another subproject. A subproject's tag prefix defaults to its path
with ``/`` replaced by ``-``.

If the file is missing, the empty configuration is used: a single root
project without tag prefix or filters. If the file is malformed or has
fields of the wrong type, a :class:`ConfigError` is raised.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from gitversion.exceptions import GitVersionError


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings or logging errors in
# environments where the root logger may be closed. Propagation is disabled
# until the CLI configures logging.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


CONFIG_FILE_NAME = ".gitversion.json"
ROOT_KEY = "root"


class ConfigError(GitVersionError):
    """Raised when the configuration file is malformed or invalid."""

    pass


@dataclass(frozen=True)
class ProjectConfig:
    """Per-project configuration.

    Attributes
    ----------
    path : str
        Root-relative path of the project, ``""`` for the root project.
    tag_prefix : str
        Prefix that tags of this project carry.
    filters : Tuple[str, ...]
        Tag globs; a leading ``!`` marks an exclusion.
    include_paths : Tuple[str, ...]
        Extra root-relative paths whose commits count towards this project.
    exclude_paths : Tuple[str, ...]
        Extra root-relative paths whose commits never count.
    """

    path: str = ""
    tag_prefix: str = ""
    filters: Tuple[str, ...] = ()
    include_paths: Tuple[str, ...] = ()
    exclude_paths: Tuple[str, ...] = ()


DEFAULT_ROOT = ProjectConfig()


@dataclass(frozen=True)
class GitVersionConfig:
    """All configured projects, keyed by their root-relative path."""

    projects: Dict[str, ProjectConfig] = field(default_factory=lambda: {"": DEFAULT_ROOT})

    def get_project(self, path: Optional[str]) -> Optional[ProjectConfig]:
        """Return the project configured at ``path``, or None."""
        if path is None:
            return None
        return self.projects.get(path)

    def all_projects(self) -> List[ProjectConfig]:
        return list(self.projects.values())

    def validate(self, root: Path) -> None:
        """Check that every subproject path exists under ``root``.

        Raises
        ------
        ConfigError
            If a configured subproject directory does not exist.
        """
        for path in self.projects:
            if path and not (root / path).exists():
                raise ConfigError(
                    f"Subproject path '{path}' does not exist. "
                    "Specify it explicitly in the config if necessary."
                )


EMPTY_CONFIG = GitVersionConfig()


def _string_list(data: Dict[str, Any], key: str, owner: str) -> Tuple[str, ...]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"'{key}' of '{owner}' must be a list of strings")
    return tuple(item for item in value if item.strip())


def _parse_project(key: str, data: Any) -> ProjectConfig:
    if not isinstance(data, dict):
        raise ConfigError(f"Project '{key}' must be an object")

    if key == ROOT_KEY:
        path = ""
        default_prefix = ""
    else:
        path = data.get("path", key)
        if not isinstance(path, str):
            raise ConfigError(f"'path' of '{key}' must be a string")
        path = path.strip("/")
        if not path:
            raise ConfigError(f"Subproject '{key}' cannot use the repository root as its path")
        default_prefix = path.replace("/", "-")

    tag_prefix = data.get("tag", default_prefix)
    if not isinstance(tag_prefix, str):
        raise ConfigError(f"'tag' of '{key}' must be a string")

    return ProjectConfig(
        path=path,
        tag_prefix=tag_prefix,
        filters=_string_list(data, "filters", key),
        include_paths=_string_list(data, "include", key),
        exclude_paths=_string_list(data, "exclude", key),
    )


def parse_config(data: Any) -> GitVersionConfig:
    """Build a :class:`GitVersionConfig` from already-decoded JSON data."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a JSON object")
    if "" in data:
        raise ConfigError("Configuration cannot have a project with an empty key, use 'root' instead")

    projects: Dict[str, ProjectConfig] = {"": _parse_project(ROOT_KEY, data.get(ROOT_KEY, {}))}
    for key, value in data.items():
        if key == ROOT_KEY:
            continue
        project = _parse_project(key, value)
        if project.path in projects:
            raise ConfigError(f"Subproject '{key}' uses the path '{project.path}' of another project")
        projects[project.path] = project

    return GitVersionConfig(projects=projects)


def load_config(config_path: Optional[Path] = None, root: Optional[Path] = None) -> GitVersionConfig:
    """Load the configuration file and return it.

    Args:
        config_path: Explicit path to the configuration file. Takes
                     precedence over ``root``.
        root: Repository root; ``<root>/.gitversion.json`` is read when no
              explicit path is given.

    Returns:
        The parsed configuration, or :data:`EMPTY_CONFIG` when the file
        does not exist.

    Raises:
        ConfigError: If the file cannot be read or is invalid.
    """
    if config_path is None:
        if root is None:
            return EMPTY_CONFIG
        config_path = root / CONFIG_FILE_NAME

    if not config_path.exists():
        logger.debug("No configuration file at '%s', using defaults", config_path)
        return EMPTY_CONFIG

    try:
        content = config_path.read_text(encoding="utf-8")
        data = json.loads(content)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse configuration file: %s", exc)
        raise ConfigError(f"Invalid JSON in {config_path.name}: {exc}") from exc

    config = parse_config(data)
    logger.debug("Loaded configuration from: %s", config_path)
    logger.debug("Configured projects: %s", sorted(config.projects))
    return config
