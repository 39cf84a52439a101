"""
Version resolution: turns the repository state into an :class:`Info` record.

The resolver describes ``HEAD`` against the tags eligible for the project,
then refines the commit offset by counting only the commits that touch the
project's own paths. Strict mode decides whether failures propagate or
degrade to placeholder values.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from gitversion.exceptions import CommitCountError, GitVersionError, NoMatchingTagError
from gitversion.vcs.git_client import GitClient, GitError, escape_glob
from gitversion.versioning.info import EMPTY_INFO, Info
from gitversion.versioning.tags import bare_tag, describe_patterns, split_describe, tag_matches


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


def describe_head(client: GitClient, tag_prefix: str, filters: Sequence[str]) -> str:
    """Describe HEAD against the nearest eligible tag.

    git narrows the candidates with a fixed set of patterns; a described tag
    that fails :func:`tag_matches` is excluded by name and HEAD is described
    again.

    Raises
    ------
    NoMatchingTagError
        If no eligible tag is reachable from HEAD.
    """
    match, exclude = describe_patterns(tag_prefix, filters)
    while True:
        described = client.describe(match, exclude)
        if described is None:
            raise NoMatchingTagError(
                "Tag not found! A valid tag must include a digit! "
                f"Tag prefix: {tag_prefix or 'NONE!'}, Filters: {', '.join(filters)}"
            )
        try:
            tag = split_describe(described)[0]
        except ValueError as exc:
            raise GitVersionError(str(exc)) from exc
        if tag_matches(tag, tag_prefix, filters):
            return described
        rejected = escape_glob(tag)
        if rejected in exclude:
            raise GitVersionError(f"git describe returned the excluded tag '{tag}'")
        logger.debug("Tag '%s' is rejected by the filters, describing again without it", tag)
        exclude.append(rejected)


def count_offset(
    client: GitClient,
    tag: str,
    fallback: str,
    include_paths: Iterable[str] = (),
    exclude_paths: Iterable[str] = (),
    strict: bool = True,
    tag_prefix: str = "",
) -> str:
    """Count the commits since ``tag`` that touch the project's paths.

    Commits carrying one of the project's own tags (``tag_prefix``) are
    counted even when they touch none of its paths. Without any include or
    exclude path the count would equal the describe offset, so ``fallback``
    is returned directly. The fallback is also used when the tag cannot be
    resolved to a commit, and when no counted commit is left.

    Raises
    ------
    CommitCountError
        If counting fails in strict mode.
    """
    includes = [p for p in include_paths if p]
    excludes = [p for p in exclude_paths if p]
    if not includes and not excludes:
        return fallback

    try:
        tags = client.tags()
        commit = next((t.commit for t in tags if t.name == tag), None)
        if commit is None:
            logger.debug("Tag '%s' not found, using describe offset %s", tag, fallback)
            return fallback
        counted = set(client.rev_list(commit, "HEAD", includes, excludes))
        if tag_prefix:
            tagged = {t.commit for t in tags if t.name.startswith(tag_prefix)} - counted
            if tagged:
                counted |= tagged.intersection(client.rev_list(commit, "HEAD"))
    except GitError as exc:
        error = CommitCountError(
            f"Failed to count commits with the following parameters: Tag {tag}, "
            f"Include Paths [{', '.join(includes)}], Exclude Paths [{', '.join(excludes)}]"
        )
        if strict:
            raise error from exc
        logger.warning("%s; using describe offset %s", error, fallback)
        return fallback

    if not counted:
        logger.debug("No commits since '%s' touch the project, using describe offset %s", tag, fallback)
        return fallback
    return str(len(counted))


def calculate_info(
    client: GitClient,
    tag_prefix: str,
    filters: Sequence[str] = (),
    include_paths: Iterable[str] = (),
    exclude_paths: Iterable[str] = (),
    strict: bool = True,
) -> Info:
    """Compute the version :class:`Info` for HEAD.

    In non-strict mode any failure yields :data:`EMPTY_INFO`.
    """
    try:
        described = describe_head(client, tag_prefix, filters)
        try:
            tag, raw_offset, commit_hash = split_describe(described)
        except ValueError as exc:
            raise GitVersionError(str(exc)) from exc

        offset = count_offset(client, tag, raw_offset, include_paths, exclude_paths, strict, tag_prefix)
        head = client.head()
        return Info(
            tag=bare_tag(tag, tag_prefix),
            offset=offset,
            hash=commit_hash,
            branch=client.head_branch() or "",
            commit=head,
            abbreviated_id=head[:8],
        )
    except GitVersionError as exc:
        if strict:
            raise
        logger.warning("Failed to calculate version info, using defaults: %s", exc)
        return EMPTY_INFO
