"""
Changelog generation from Git history.

Every commit in the requested range gets a release label derived from the
nearest older tag (``<tag>.<offset>``); history before the oldest tag in the
range is labelled ``<oldest tag>-pre-<offset>``. Commits are grouped into
sections named after the tag that opens them ("primary versions"), and the
label column is padded per section so that commit subjects line up.

Two output flavours exist: plain text, with underlined section headers,
and Markdown, with compare, tag and pull request links.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Set

from gitversion.exceptions import ChangelogGenerationError
from gitversion.vcs.git_client import Commit, GitClient, GitError
from gitversion.versioning.tags import commit_to_tag


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


DEFAULT_VERSION = "0.0"
PULL_REQUEST_PATTERN = re.compile(r"\(#(?P<pull>[0-9]+)\)")


def first_released_version(commits: Sequence[Commit], commit_tags: Dict[str, str]) -> str:
    """Return the oldest tag found in ``commits`` (newest first), or ``0.0``."""
    version = DEFAULT_VERSION
    for commit in commits:
        version = commit_tags.get(commit.hash, version)
    return version


def build_version_map(commits: Sequence[Commit], commit_tags: Dict[str, str]) -> Dict[str, str]:
    """Label every commit with its release version.

    ``commits`` are ordered newest first. A tagged commit is ``<tag>.0``
    and every following commit increments the offset. Commits older than
    the first tag in the range are pre-releases of it:
    ``<first tag>-pre-<offset>``.
    """
    pre_release_target = first_released_version(commits, commit_tags)

    current_version = ""
    offset = 0
    versions: Dict[str, str] = {}
    for commit in reversed(commits):
        tag = commit_tags.get(commit.hash)
        if tag is not None:
            offset = 0
            current_version = tag
        else:
            offset += 1

        if current_version:
            versions[commit.hash] = f"{current_version}.{offset}"
        else:
            versions[commit.hash] = f"{pre_release_target}-pre-{offset}"
    return versions


def build_primary_version_map(commits: Sequence[Commit], commit_tags: Dict[str, str]) -> Dict[str, str]:
    """Map every commit to the release window (primary version) it belongs to.

    Walking newest to oldest, commits are collected until a tagged commit
    closes the window; the whole window takes that tag's name. Whatever is
    left after the walk predates every tag in the range and becomes
    ``<oldest tag>-pre`` (``0.0-pre`` when the range holds no tag at all).
    """
    last_version: Optional[str] = None
    pending: List[str] = []
    primary: Dict[str, str] = {}

    for commit in commits:
        pending.append(commit.hash)
        tag = commit_tags.get(commit.hash)
        if tag is not None:
            for commit_hash in pending:
                primary[commit_hash] = tag
            last_version = tag
            pending.clear()

    leftover = f"{last_version or DEFAULT_VERSION}-pre"
    for commit_hash in pending:
        primary[commit_hash] = leftover
    return primary


def label_widths(versions: Iterable[str], primary_versions: Set[str]) -> Dict[str, int]:
    """Longest release label per primary version.

    Each label is attributed to the longest primary version it starts
    with, so ``1.0-pre-3`` counts for ``1.0-pre`` rather than ``1.0``.
    """
    ordered = sorted(primary_versions, key=lambda v: (len(v), v), reverse=True)
    widths: Dict[str, int] = {}
    for version in versions:
        for primary in ordered:
            if not version.startswith(primary):
                continue
            length = len(version.strip())
            if widths.get(primary, 0) < length:
                widths[primary] = length
            break
    return widths


def process_commit_body(body: str) -> str:
    """Drop ``Signed-off-by:`` trailers and blank lines from a message."""
    lines = [
        line
        for line in body.split("\n")
        if not line.startswith("Signed-off-by: ") and line.strip()
    ]
    return "\n".join(lines).strip()


def link_pull_request(subject: str, project_url: str) -> str:
    """Turn the first ``(#<n>)`` reference into a Markdown pull request link."""
    return PULL_REQUEST_PATTERN.sub(
        lambda m: f"([#{m.group('pull')}]({project_url}/pull/{m.group('pull')}))",
        subject,
        count=1,
    )


def youngest_merge_base(client: GitClient) -> Optional[str]:
    """Youngest merge base between HEAD and any remote branch.

    Remote branches pointing at HEAD, and merge bases equal to HEAD, are
    ignored. Returns None when nothing usable remains.
    """
    head = client.head()
    candidates: List[str] = []
    for branch in client.remote_branches():
        if branch.commit == head:
            continue
        base = client.merge_base(head, branch.commit)
        if base is None or base == head or base in candidates:
            continue
        candidates.append(base)

    if not candidates:
        return None
    return max(candidates, key=client.commit_time)


def find_start_commit(client: GitClient) -> str:
    """Default changelog start: the youngest merge base, else the first commit."""
    start = youngest_merge_base(client)
    if start is None:
        start = client.first_commit()
    if start is None:
        raise ChangelogGenerationError("Opened repository has no commits")
    return start


def render_changelog(
    commits: Sequence[Commit],
    commit_tags: Dict[str, str],
    name: str,
    start: str,
    end: str,
    project_url: Optional[str] = None,
    plain_text: bool = False,
) -> str:
    """Render ``commits`` (newest first) as changelog text."""
    versions = build_version_map(commits, commit_tags)
    primary_versions = build_primary_version_map(commits, commit_tags)
    widths = label_widths(versions.values(), set(primary_versions.values()))
    markdown_links = not plain_text and bool(project_url)

    if plain_text:
        out = [f"{name} Changelog\n"]
    elif markdown_links:
        out = [f"### [{name} Changelog]({project_url}/compare/{start}...{end})\n"]
    else:
        out = [f"### {name} Changelog\n"]

    current_primary = ""
    for commit in commits:
        primary = primary_versions.get(commit.hash)
        if primary is not None and primary != current_primary:
            current_primary = primary
            if plain_text:
                out.append(f"{current_primary}\n{'=' * len(current_primary)}\n")

        header = " - "
        version = versions.get(commit.hash)
        tag = commit_tags.get(commit.hash)
        if version is not None:
            padded = version.ljust(widths.get(current_primary, 0))
            if tag is not None and markdown_links:
                header += f"[{padded}]({project_url}/tree/{tag})"
            else:
                header += padded
        indent = " " * (len(header) + 1)

        subject = process_commit_body(commit.message.strip())
        if markdown_links:
            subject = link_pull_request(subject, project_url)
        subject = subject.replace("\n", "\n" + indent)

        out.append(f"{header} {subject}\n")
        if tag is not None and plain_text:
            out.append("\n")

    return "".join(out)


def generate_changelog(
    client: GitClient,
    start: Optional[str] = None,
    end: Optional[str] = None,
    tag_prefix: Optional[str] = None,
    include_paths: Iterable[str] = (),
    exclude_paths: Iterable[str] = (),
    project_url: Optional[str] = None,
    plain_text: bool = False,
) -> str:
    """Generate a changelog for the commits between ``start`` and ``end``.

    Args:
        client: Git client of the repository
        start: Oldest commit to include; defaults to :func:`find_start_commit`
        end: Newest commit to include; defaults to HEAD
        tag_prefix: Restricts the tags used for labelling (see
                    :func:`gitversion.versioning.tags.commit_to_tag`)
        include_paths: Root-relative paths the commits must touch
        exclude_paths: Root-relative paths whose commits are ignored
        project_url: Browsable repository URL used for Markdown links
        plain_text: Plain text instead of Markdown

    Returns:
        The changelog text

    Raises:
        ChangelogGenerationError: If the history cannot be read
    """
    try:
        end_commit = client.resolve_commit(end) if end else client.head()
        start_commit = client.resolve_commit(start) if start else find_start_commit(client)

        commits = list(client.commit_range(start_commit, end_commit, include_paths, exclude_paths))
        commit_tags = commit_to_tag(client, tag_prefix)
        name = client.head_branch() or client.head()
    except GitError as exc:
        raise ChangelogGenerationError(f"Failed to generate the changelog: {exc}") from exc

    logger.debug("Generating changelog for %d commit(s) from %s to %s", len(commits), start_commit, end_commit)
    return render_changelog(commits, commit_tags, name, start_commit, end_commit, project_url, plain_text)
