"""
Repository session: the public entry point of the version engine.

A session binds a Git repository (``git_dir`` and the ``root`` containing
it) to one project directory inside it, together with that project's
configuration. It computes the version :class:`Info` lazily, keeps it until
the configuration changes, and generates changelogs on demand.

Use :func:`build_git_version` to create a session. In non-strict mode a
failed construction yields an :class:`EmptyGitVersion` whose answers are
clearly recognisable placeholders.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from gitversion.changelog.generator import generate_changelog
from gitversion.config.loader import GitVersionConfig, ProjectConfig, load_config
from gitversion.exceptions import ChangelogGenerationError, ConstructionError, GitVersionError
from gitversion.vcs.git_client import GitClient, GitError
from gitversion.versioning.info import EMPTY_INFO, Info
from gitversion.versioning.lazy import Lazy
from gitversion.versioning.paths import (
    is_outside,
    relative_path,
    resolve_subprojects,
    subproject_paths,
)
from gitversion.versioning.resolver import calculate_info
from gitversion.versioning.tags import normalize_filters, normalize_tag_prefix, tag_to_commit


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


@dataclass
class Output:
    """Flat, serialisable snapshot of a session.

    Directory fields are ``None`` and lists are empty for an
    :class:`EmptyGitVersion`.
    """

    info: Dict[str, str]
    url: Optional[str] = None
    git_dir: Optional[str] = None
    root: Optional[str] = None
    project: Optional[str] = None
    project_path: Optional[str] = None
    tag_prefix: Optional[str] = None
    filters: List[str] = field(default_factory=list)
    include_paths: List[str] = field(default_factory=list)
    exclude_paths: List[str] = field(default_factory=list)
    subprojects: List[str] = field(default_factory=list)
    subproject_paths: List[str] = field(default_factory=list)

    def to_json(self) -> str:
        """Single-line JSON, suitable for line-delimited hand-off."""
        return json.dumps(asdict(self), separators=(",", ":"))


class BaseGitVersion:
    """Operations shared by real and empty sessions.

    Everything here is derived from :meth:`get_info` and performs no I/O
    of its own.
    """

    def get_info(self) -> Info:
        raise NotImplementedError

    @property
    def info(self) -> Info:
        return self.get_info()

    def get_url(self) -> Optional[str]:
        raise NotImplementedError

    def tag_offset(self) -> str:
        return self.get_info().tag_offset()

    def tag_offset_branch(self, allowed_branches: Optional[Iterable[str]] = None) -> str:
        return self.get_info().tag_offset_branch(allowed_branches)

    def mc_tag_offset_branch(self, mc_version: Optional[str], allowed_branches: Optional[Iterable[str]] = None) -> str:
        return self.get_info().mc_tag_offset_branch(mc_version, allowed_branches)

    def to_output(self) -> Output:
        raise NotImplementedError

    def to_json(self) -> str:
        return self.to_output().to_json()

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class GitVersion(BaseGitVersion):
    """Version session over one project of a repository.

    Parameters
    ----------
    git_dir : Path
        The ``.git`` directory.
    root : Path
        The repository root containing ``git_dir``.
    project : Path
        The project directory; ``root`` or one of its descendants.
    config : ProjectConfig
        Configuration of the project.
    subprojects : Iterable[Path]
        Directories of other projects nested below ``project``. Their
        commits do not count towards this project's offset.
    strict : bool
        Raise on failures instead of degrading to placeholder values.

    Raises
    ------
    ConstructionError
        If ``project`` is not inside ``root``.
    """

    def __init__(
        self,
        git_dir: Path,
        root: Path,
        project: Path,
        config: ProjectConfig,
        subprojects: Iterable[Path] = (),
        strict: bool = True,
    ) -> None:
        self._git_dir = Path(git_dir).resolve()
        self._root = Path(root).resolve()
        self._project = Path(project).resolve()
        self._project_path = relative_path(self._root, self._project)
        if is_outside(self._project_path):
            raise ConstructionError(f"Project '{self._project}' is not located inside root '{self._root}'")

        self.strict = strict
        self._config = config
        self._tag_prefix = normalize_tag_prefix(config.tag_prefix)
        self._filters = normalize_filters(config.filters)
        self._subprojects = resolve_subprojects(self._project, subprojects)

        self._client = GitClient(self._git_dir, self._root)
        self._info: Lazy[Info] = Lazy(self._compute_info)
        self._url: Lazy[Optional[str]] = Lazy(self._compute_url)

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------
    @property
    def git_dir(self) -> Path:
        return self._git_dir

    @property
    def root(self) -> Path:
        return self._root

    @property
    def project(self) -> Path:
        return self._project

    @property
    def project_path(self) -> str:
        """Path of the project relative to the root, ``""`` for the root project."""
        return self._project_path

    @property
    def client(self) -> GitClient:
        return self._client

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    @property
    def tag_prefix(self) -> str:
        return self._tag_prefix

    @tag_prefix.setter
    def tag_prefix(self, value: Optional[str]) -> None:
        self._tag_prefix = normalize_tag_prefix(value)
        self._info.reset()

    @property
    def filters(self) -> Tuple[str, ...]:
        return self._filters

    @filters.setter
    def filters(self, value: Iterable[str]) -> None:
        self._filters = normalize_filters(value)
        self._info.reset()

    @property
    def include_paths(self) -> List[str]:
        """Root-relative paths whose commits count towards the offset."""
        paths = [self._project_path] if self._project_path else []
        return paths + [p for p in self._config.include_paths if p not in paths]

    @property
    def exclude_paths(self) -> List[str]:
        """Root-relative paths whose commits never count towards the offset."""
        paths = self.get_subproject_paths(from_root=True)
        return paths + [p for p in self._config.exclude_paths if p not in paths]

    def get_subprojects(self) -> List[Path]:
        return list(self._subprojects)

    def set_subprojects(self, subprojects: Iterable[Path]) -> None:
        self._subprojects = resolve_subprojects(self._project, subprojects)
        self._info.reset()

    def get_subproject_paths(self, from_root: bool = False) -> List[str]:
        """Subproject paths relative to the project, or to the root."""
        return subproject_paths(self._root if from_root else self._project, self._subprojects)

    def get_relative_path(self, path: Path, from_root: bool = False) -> str:
        return relative_path(self._root if from_root else self._project, path)

    # ------------------------------------------------------------------
    # Repository derived values
    # ------------------------------------------------------------------
    def _compute_info(self) -> Info:
        return calculate_info(
            self._client,
            self._tag_prefix,
            self._filters,
            self.include_paths,
            self.exclude_paths,
            strict=self.strict,
        )

    def _compute_url(self) -> Optional[str]:
        try:
            return self._client.remote_project_url()
        except GitError:
            if self.strict:
                raise
            logger.warning("Failed to read the remote URL", exc_info=True)
            return None

    def get_info(self) -> Info:
        """Return the cached version info, computing it on first use."""
        return self._info.get()

    def get_url(self) -> Optional[str]:
        """Browsable URL of the repository's preferred remote, if any."""
        return self._url.get()

    def generate_changelog(self, start: Optional[str] = None, url: Optional[str] = None, plain_text: bool = False) -> str:
        """Generate the changelog of this project from ``start`` to HEAD.

        ``start`` may be a tag name or any revision. Without it, the
        changelog starts at the youngest merge base with a remote branch,
        or at the first commit.

        Raises
        ------
        ChangelogGenerationError
            If generation fails in strict mode. In non-strict mode an empty
            string is returned instead.
        """
        try:
            if start:
                start = tag_to_commit(self._client).get(start, start)
            return generate_changelog(
                self._client,
                start=start,
                tag_prefix=self._tag_prefix,
                include_paths=self.include_paths,
                exclude_paths=self.exclude_paths,
                project_url=url or self.get_url(),
                plain_text=plain_text,
            )
        except GitVersionError as exc:
            if self.strict:
                if isinstance(exc, ChangelogGenerationError):
                    raise
                raise ChangelogGenerationError(f"Failed to generate the changelog: {exc}") from exc
            logger.warning("Failed to generate the changelog: %s", exc)
            return ""

    def to_output(self) -> Output:
        return Output(
            info=self.get_info().to_dict(),
            url=self.get_url(),
            git_dir=str(self._git_dir),
            root=str(self._root),
            project=str(self._project),
            project_path=self._project_path,
            tag_prefix=self._tag_prefix,
            filters=list(self._filters),
            include_paths=self.include_paths,
            exclude_paths=self.exclude_paths,
            subprojects=self.get_subproject_paths(from_root=True),
            subproject_paths=self.get_subproject_paths(),
        )

    def close(self) -> None:
        """Release the repository handle. Safe to call more than once."""
        self._client.close()


class EmptyGitVersion(BaseGitVersion):
    """Placeholder session returned when a non-strict construction fails.

    Version queries answer with :data:`EMPTY_INFO`; anything that needs a
    repository or a configuration raises :class:`GitVersionError`.
    """

    def get_info(self) -> Info:
        return EMPTY_INFO

    def get_url(self) -> Optional[str]:
        return None

    def _unavailable(self, what: str) -> GitVersionError:
        return GitVersionError(f"{what} is not available for an empty GitVersion")

    @property
    def git_dir(self) -> Path:
        raise self._unavailable("The git directory")

    @property
    def root(self) -> Path:
        raise self._unavailable("The root directory")

    @property
    def project(self) -> Path:
        raise self._unavailable("The project directory")

    @property
    def project_path(self) -> str:
        raise self._unavailable("The project path")

    @property
    def tag_prefix(self) -> str:
        raise self._unavailable("The tag prefix")

    @property
    def filters(self) -> Tuple[str, ...]:
        raise self._unavailable("The filters")

    @property
    def include_paths(self) -> List[str]:
        raise self._unavailable("The include paths")

    @property
    def exclude_paths(self) -> List[str]:
        raise self._unavailable("The exclude paths")

    def get_subprojects(self) -> List[Path]:
        raise self._unavailable("The subprojects")

    def get_subproject_paths(self, from_root: bool = False) -> List[str]:
        raise self._unavailable("The subproject paths")

    def get_relative_path(self, path: Path, from_root: bool = False) -> str:
        raise self._unavailable("The relative path")

    def generate_changelog(self, start: Optional[str] = None, url: Optional[str] = None, plain_text: bool = False) -> str:
        raise ChangelogGenerationError("Cannot generate a changelog for an empty GitVersion")

    def to_output(self) -> Output:
        return Output(info=EMPTY_INFO.to_dict())


def _resolve_project(config: GitVersionConfig, project_path: str) -> ProjectConfig:
    """Return the project configured at exactly ``project_path``."""
    project_config = config.get_project(project_path)
    if project_config is None:
        raise ConstructionError(
            f"Subproject '{project_path}' is not configured. "
            "Add it to the configuration file or version its parent project instead."
        )
    return project_config


def _build(
    git_dir: Optional[Path],
    root: Optional[Path],
    project: Optional[Path],
    config: Optional[GitVersionConfig],
    config_file: Optional[Path],
    strict: bool,
) -> GitVersion:
    if root is None and project is None and git_dir is None:
        raise ConstructionError("Either the root or the project directory must be given")

    if root is not None:
        root = Path(root).resolve()
    elif git_dir is not None and project is None:
        root = Path(git_dir).resolve().parent
    else:
        found = GitClient.find_repo_root(Path(project))
        if found is None:
            raise ConstructionError(f"No Git repository found above '{project}'")
        root = found

    project = Path(project).resolve() if project is not None else root
    git_dir = Path(git_dir).resolve() if git_dir is not None else root / ".git"
    if not git_dir.exists():
        raise ConstructionError(f"Git directory '{git_dir}' does not exist")

    local_path = relative_path(root, project)
    if is_outside(local_path):
        raise ConstructionError(f"Project '{project}' is not located inside root '{root}'")

    try:
        if config is None:
            config = load_config(config_file, root)
        config.validate(root)
    except GitVersionError as exc:
        raise ConstructionError(f"Invalid configuration: {exc}") from exc

    project_config = _resolve_project(config, local_path)

    subprojects = [root / p.path for p in config.all_projects() if p.path]
    return GitVersion(git_dir, root, project, project_config, subprojects, strict=strict)


def build_git_version(
    git_dir: Optional[Path] = None,
    root: Optional[Path] = None,
    project: Optional[Path] = None,
    config: Optional[GitVersionConfig] = None,
    config_file: Optional[Path] = None,
    strict: bool = True,
) -> BaseGitVersion:
    """Create a version session.

    Args:
        git_dir: The ``.git`` directory; defaults to ``<root>/.git``.
        root: Repository root; discovered upwards from ``project`` if omitted.
        project: Project directory; defaults to the root.
        config: Already parsed configuration. When omitted it is loaded
                from ``config_file`` or ``<root>/.gitversion.json``.
        config_file: Explicit configuration file.
        strict: Raise on failures instead of degrading.

    Returns:
        A :class:`GitVersion`, or an :class:`EmptyGitVersion` if the
        construction failed in non-strict mode.

    Raises:
        ConstructionError: If the session cannot be built in strict mode.
    """
    try:
        return _build(git_dir, root, project, config, config_file, strict)
    except GitVersionError as exc:
        if strict:
            raise
        logger.warning("Failed to create GitVersion, falling back to empty version: %s", exc)
        return EmptyGitVersion()
