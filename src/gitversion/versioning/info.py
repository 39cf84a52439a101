"""
Data model for resolved version information.

The :class:`Info` record is the result of describing ``HEAD`` against the
project's tags. It is a plain immutable value: two records with the same
fields are interchangeable. The helpers defined on it turn the raw fields
into version strings without touching the repository.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional


DEFAULT_ALLOWED_BRANCHES = ("master", "main", "HEAD")


@dataclass(frozen=True)
class Info:
    """Information about the current state of the repository.

    Attributes
    ----------
    tag : str
        The bare tag, without tag prefix and leading marker characters.
    offset : str
        Number of commits between the tag and HEAD, as a string.
    hash : str
        Abbreviated commit hash reported by the describe match.
    branch : str
        Short name of the checked out branch, empty on a detached HEAD.
    commit : str
        Full object id of HEAD.
    abbreviated_id : str
        The first eight characters of ``commit``.
    """

    tag: str
    offset: str
    hash: str
    branch: str
    commit: str
    abbreviated_id: str

    def get_branch(self, version_friendly: bool = False) -> str:
        """Return the branch, optionally made safe for version strings.

        In version-friendly form, pull request branches (``pulls/<n>``)
        become ``pr<n>`` and every path separator becomes a hyphen.
        """
        branch = self.branch
        if not version_friendly or not branch.strip():
            return branch

        if branch.startswith("pulls/"):
            branch = "pr" + branch[branch.rfind("/") + 1:]
        return branch.replace("\\", "-").replace("/", "-")

    def tag_offset(self) -> str:
        """``<tag>.<offset>``, e.g. ``1.0.5`` for five commits after ``1.0``."""
        return f"{self.tag}.{self.offset}"

    def tag_offset_branch(self, allowed_branches: Optional[Iterable[str]] = None) -> str:
        """:meth:`tag_offset` with the branch appended unless it is allowed.

        An explicit empty collection of allowed branches disables the
        suffix entirely.
        """
        allowed = list(DEFAULT_ALLOWED_BRANCHES if allowed_branches is None else allowed_branches)
        version = self.tag_offset()
        if not allowed:
            return version

        branch = self.get_branch(version_friendly=True)
        if not branch or branch in allowed:
            return version
        return f"{version}-{branch}"

    def mc_tag_offset_branch(self, mc_version: Optional[str], allowed_branches: Optional[Iterable[str]] = None) -> str:
        """:meth:`tag_offset_branch` prefixed with a game/platform version.

        Without explicit allowed branches, branches named after the
        platform version (``1.21``, ``1.21.0``, ``1.21.x`` and ``1.x``) are
        allowed in addition to the defaults.
        """
        if not mc_version:
            return self.tag_offset_branch()

        if allowed_branches is None:
            allowed_branches = default_mc_branches(mc_version)
        return f"{mc_version}-{self.tag_offset_branch(allowed_branches)}"

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def default_mc_branches(mc_version: str) -> List[str]:
    branches = list(DEFAULT_ALLOWED_BRANCHES)
    branches += [mc_version, f"{mc_version}.0", f"{mc_version}.x"]
    head, dot, _ = mc_version.rpartition(".")
    if dot:
        branches.append(f"{head}.x")
    return branches


EMPTY_INFO = Info(
    tag="0.0",
    offset="0",
    hash="00000000",
    branch="master",
    commit="0" * 40,
    abbreviated_id="00000000",
)
