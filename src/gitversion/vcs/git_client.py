"""
Git client implementation for gitversion.

This module wraps the Git queries required by the version and changelog
engine. It is a pure query layer: nothing here writes to the repository or
touches the working tree. All subprocess calls go through
:meth:`GitClient._run` so that unit tests can mock them easily.

The repository handle is opened lazily on the first query and can be
closed explicitly; any query issued after :meth:`GitClient.close` raises
:class:`ClosedSessionError`. A client is not safe for concurrent use from
multiple threads.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from gitversion.exceptions import GitVersionError


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


R_TAGS = "refs/tags/"

# Fields are separated by the ASCII unit separator; ``git log -z`` terminates
# every record with a NUL byte, which cannot occur inside a commit message.
_FIELD_SEP = "\x1f"
_LOG_FORMAT = "%H%x1f%P%x1f%ct%x1f%B"


@dataclass(frozen=True)
class Commit:
    """A single commit as returned by a log traversal."""

    hash: str
    parents: Tuple[str, ...] = ()
    commit_time: int = 0
    message: str = ""

    @property
    def subject(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0]


@dataclass(frozen=True)
class TagRef:
    """A tag, peeled to the commit it ultimately points at."""

    name: str
    commit: str


@dataclass(frozen=True)
class RemoteBranch:
    """A remote-tracking branch (``refs/remotes/...``)."""

    name: str
    commit: str


class GitError(GitVersionError):
    """Raised when a Git command fails."""

    pass


class RepositoryOpenError(GitError):
    """Raised when the git directory is not a valid repository."""

    pass


class ClosedSessionError(GitError):
    """Raised when the client is used after it has been closed."""

    pass


class UnresolvableRefError(GitError):
    """Raised when a reference (such as ``HEAD``) cannot be resolved."""

    pass


def escape_glob(name: str) -> str:
    """Escape wildmatch metacharacters so ``name`` matches only itself."""
    return "".join("\\" + ch if ch in "*?[]\\" else ch for ch in name)


def pathspec(include_paths: Iterable[str], exclude_paths: Iterable[str]) -> List[str]:
    """Build the ``-- <pathspec>...`` argument tail for path-scoped queries.

    Returns an empty list when neither includes nor excludes are given so
    that the query is not path-limited at all.
    """
    includes = [p for p in include_paths if p]
    excludes = [f":(exclude){p}" for p in exclude_paths if p]
    if not includes and not excludes:
        return []
    if not includes:
        # Exclusions need something to subtract from.
        includes = ["."]
    return ["--"] + includes + excludes


def normalize_remote_url(url: str) -> str:
    """Turn a remote URL into a browsable ``https://`` project URL.

    The ``.git`` suffix is always stripped. SSH URLs, both the
    ``ssh://user@host/path`` form and the scp-like ``user@host:path`` form,
    lose their credentials and are rewritten to ``https://host/path``.
    HTTP(S) URLs keep their scheme but lose any embedded credentials.
    Anything else (e.g. a local path) is returned unchanged apart from the
    suffix.
    """
    url = url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]

    if url.startswith(("http://", "https://")):
        parts = urlsplit(url)
        netloc = parts.hostname or ""
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, "", ""))

    if "://" in url:
        parts = urlsplit(url)
        if parts.scheme in {"ssh", "git", "git+ssh", "ssh+git"}:
            return f"https://{parts.hostname}{parts.path}"
        return url

    host_part, sep, path = url.partition(":")
    # A single letter before the colon is a Windows drive, not a host.
    if sep and len(host_part) > 1 and "/" not in host_part:
        host = host_part.rpartition("@")[2]
        return f"https://{host}/{path.lstrip('/')}"

    return url


class GitClient:
    """Client for querying a Git repository.

    Parameters
    ----------
    git_dir : Path
        The ``.git`` directory of the repository.
    repo_root : Path, optional
        The working tree root. Pathspecs passed to path-scoped queries are
        relative to this directory. Defaults to the parent of ``git_dir``.
    """

    def __init__(self, git_dir: Path, repo_root: Optional[Path] = None) -> None:
        self.git_dir = Path(git_dir)
        self.repo_root = Path(repo_root) if repo_root is not None else self.git_dir.parent
        self._opened = False
        self._closed = False

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Find the root of the Git repository starting from ``start``.

        Walk upwards until a ``.git`` entry is found or the filesystem
        root is reached.
        """
        current = start.resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                # reached filesystem root
                return None
            current = current.parent

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> None:
        """Open the repository. Calling this more than once is a no-op.

        Raises
        ------
        ClosedSessionError
            If the client has already been closed.
        RepositoryOpenError
            If ``git_dir`` is not a valid Git repository.
        """
        if self._closed:
            raise ClosedSessionError("The Git repository has already been closed")
        if self._opened:
            return

        if not self.git_dir.exists():
            self.close()
            raise RepositoryOpenError(f"Git directory does not exist: {self.git_dir}")
        try:
            self._run(["rev-parse", "--git-dir"], check=True)
        except GitError as exc:
            self.close()
            raise RepositoryOpenError(f"Not a valid Git repository: {self.git_dir}") from exc

        logger.debug("Opened Git repository at %s", self.git_dir)
        self._opened = True

    def close(self) -> None:
        """Close the repository. Safe to call multiple times."""
        if self._opened:
            logger.debug("Closed Git repository at %s", self.git_dir)
        self._opened = False
        self._closed = True

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command against the repository.

        Raises
        ------
        GitError
            If Git cannot be executed, or if the command exits with a
            non-zero status when ``check`` is True.
        """
        full_cmd = ["git", f"--git-dir={self.git_dir}"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",  # Replace invalid characters instead of failing
            )
        except OSError as e:
            logger.error("Failed to execute Git: %s", e)
            raise GitError(f"Failed to execute Git: {e}") from e

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError(result.stderr.strip() or result.stdout.strip())
        return result

    def _query(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Open the repository if needed, then run ``args``."""
        self.open()
        return self._run(args, check=check)

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------
    def resolve_commit(self, rev: str) -> str:
        """Resolve ``rev`` (hash, tag, branch...) to a full commit id.

        Raises
        ------
        UnresolvableRefError
            If the revision does not name a commit.
        """
        result = self._query(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"], check=False)
        commit = result.stdout.strip()
        if result.returncode != 0 or not commit:
            raise UnresolvableRefError(f"Cannot resolve '{rev}' to a commit")
        return commit

    def head(self) -> str:
        """Return the full commit id of ``HEAD``.

        Raises
        ------
        UnresolvableRefError
            If HEAD cannot be resolved, e.g. in a repository without commits.
        """
        try:
            return self.resolve_commit("HEAD")
        except UnresolvableRefError as exc:
            raise UnresolvableRefError("HEAD cannot be resolved; the repository may have no commits") from exc

    def head_branch(self) -> Optional[str]:
        """Return the short branch name HEAD points at, or None if detached."""
        result = self._query(["symbolic-ref", "--quiet", "--short", "HEAD"], check=False)
        branch = result.stdout.strip()
        return branch if result.returncode == 0 and branch else None

    def tags(self) -> List[TagRef]:
        """List every tag, peeled to its target commit.

        Annotated and lightweight tags are handled alike: for annotated tags
        the peeled object id is used, for lightweight tags the ref's own id.
        """
        result = self._query(
            ["for-each-ref", "--format=%(refname)%09%(objectname)%09%(*objectname)", R_TAGS],
            check=True,
        )
        tags = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            name, object_id, peeled = (line.split("\t") + ["", ""])[:3]
            tags.append(TagRef(name=name[len(R_TAGS):] if name.startswith(R_TAGS) else name, commit=peeled or object_id))
        return tags

    def remote_branches(self) -> List[RemoteBranch]:
        """List remote-tracking branches, skipping symbolic ones like ``origin/HEAD``."""
        result = self._query(
            ["for-each-ref", "--format=%(refname:short)%09%(objectname)%09%(symref)", "refs/remotes"],
            check=True,
        )
        branches = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            name, object_id, symref = (line.split("\t") + ["", ""])[:3]
            if symref:
                continue
            branches.append(RemoteBranch(name=name, commit=object_id))
        return branches

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def parents(self, rev: str) -> Tuple[str, ...]:
        """Return the parent commit ids of ``rev`` (empty for a root commit)."""
        result = self._query(["log", "-1", "--format=%P", rev], check=True)
        return tuple(result.stdout.split())

    def commit_range(
        self,
        start: str,
        end: str,
        include_paths: Iterable[str] = (),
        exclude_paths: Iterable[str] = (),
    ) -> Iterator[Commit]:
        """Walk commits reachable from ``end`` but not from any parent of ``start``.

        ``start`` itself is part of the range. A root commit has no parents,
        so nothing is excluded and the walk runs to the beginning of history.
        Commits are yielded newest first; the returned iterator represents a
        single traversal and cannot be restarted.
        """
        args = ["log", "-z", f"--format={_LOG_FORMAT}", end]
        args += [f"^{parent}" for parent in self.parents(start)]
        args += pathspec(include_paths, exclude_paths)
        result = self._query(args, check=True)
        return self._parse_log(result.stdout)

    @staticmethod
    def _parse_log(output: str) -> Iterator[Commit]:
        for record in output.split("\0"):
            record = record.lstrip("\n")
            if not record:
                continue
            commit_hash, parents, commit_time, message = (record.split(_FIELD_SEP, 3) + ["", "", ""])[:4]
            yield Commit(
                hash=commit_hash.strip(),
                parents=tuple(parents.split()),
                commit_time=int(commit_time) if commit_time.strip().isdigit() else 0,
                message=message.rstrip("\n"),
            )

    def rev_list(
        self,
        start: str,
        end: str = "HEAD",
        include_paths: Iterable[str] = (),
        exclude_paths: Iterable[str] = (),
    ) -> List[str]:
        """List commits reachable from ``end`` but not from ``start``, path-scoped.

        ``start`` itself is not part of the result. Commits are listed newest
        first.
        """
        args = ["rev-list", end, f"^{start}"] + pathspec(include_paths, exclude_paths)
        result = self._query(args, check=True)
        return result.stdout.split()

    def merge_base(self, a: str, b: str) -> Optional[str]:
        """Return the youngest common ancestor of two commits, or None if unrelated."""
        result = self._query(["merge-base", a, b], check=False)
        if result.returncode == 1:
            return None
        if result.returncode != 0:
            raise GitError(result.stderr.strip() or f"merge-base failed for {a} and {b}")
        return result.stdout.strip() or None

    def first_commit(self) -> Optional[str]:
        """Return the oldest commit reachable from HEAD, or None if there is none."""
        self.head()
        result = self._query(["rev-list", "--max-parents=0", "HEAD"], check=True)
        roots = result.stdout.split()
        # rev-list lists newest first, so the oldest root comes last.
        return roots[-1] if roots else None

    def commit_time(self, rev: str) -> int:
        """Return the committer timestamp of ``rev`` in seconds since the epoch."""
        result = self._query(["log", "-1", "--format=%ct", rev], check=True)
        return int(result.stdout.strip() or 0)

    def describe(self, match: Iterable[str], exclude: Iterable[str] = (), rev: str = "HEAD") -> Optional[str]:
        """Describe ``rev`` in ``git describe --long`` form.

        ``match`` and ``exclude`` are wildmatch patterns handed to git as is:
        a tag is a candidate if it matches any ``match`` pattern and no
        ``exclude`` pattern. Returns the raw describe string
        (``<tag>-<offset>-g<hash>``) or None if no candidate is reachable.
        """
        args = ["describe", "--tags", "--long", "--abbrev=8"]
        for pattern in match:
            args += ["--match", pattern]
        for pattern in exclude:
            args += ["--exclude", pattern]
        args.append(rev)
        result = self._query(args, check=False)
        if result.returncode != 0:
            logger.debug("git describe found no tag: %s", result.stderr.strip())
            return None
        return result.stdout.strip() or None

    # ------------------------------------------------------------------
    # Remotes
    # ------------------------------------------------------------------
    def remote_urls(self) -> Dict[str, str]:
        """Return the configured remotes as a name to URL mapping."""
        result = self._query(["remote"], check=True)
        urls: Dict[str, str] = {}
        for name in result.stdout.split():
            url = self._query(["remote", "get-url", name], check=False)
            if url.returncode == 0 and url.stdout.strip():
                urls[name] = url.stdout.strip()
        return urls

    def remote_project_url(self) -> Optional[str]:
        """Return the browsable project URL of the preferred remote.

        ``origin`` is preferred; otherwise the first configured remote is
        used. Returns None if no remotes exist.
        """
        remotes = self.remote_urls()
        if not remotes:
            return None
        url = remotes.get("origin") or next(iter(remotes.values()))
        return normalize_remote_url(url)
