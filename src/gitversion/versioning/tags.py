"""
Tag handling: commit/tag maps, tag eligibility and bare-tag extraction.

The maps are rebuilt for every operation because tags may change between
calls; nothing here is cached.
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Dict, Iterable, List, Optional, Tuple

from gitversion.vcs.git_client import GitClient, escape_glob


DIGITS = "0123456789"
MARKERS = ("v", "-")


def normalize_tag_prefix(tag_prefix: Optional[str]) -> str:
    """Return ``tag_prefix`` ending with ``-``, or ``""`` if it is blank."""
    if not tag_prefix or not tag_prefix.strip():
        return ""
    return tag_prefix if tag_prefix.endswith("-") else tag_prefix + "-"


def normalize_filters(filters: Iterable[str]) -> Tuple[str, ...]:
    """Drop empty filters, including a lone ``!``."""
    return tuple(f for f in filters if len(f) > (1 if f.startswith("!") else 0))


def commit_to_tag(client: GitClient, prefix: Optional[str] = None) -> Dict[str, str]:
    """Map commit hashes to tag names.

    When ``prefix`` is given, only tags whose target commit hash starts
    with it are kept; the filter applies to the commit id, not the tag name.
    """
    return {tag.commit: tag.name for tag in client.tags() if not prefix or tag.commit.startswith(prefix)}


def tag_to_commit(client: GitClient, prefix: Optional[str] = None) -> Dict[str, str]:
    """Map tag names to commit hashes, filtered like :func:`commit_to_tag`."""
    return {tag.name: tag.commit for tag in client.tags() if not prefix or tag.commit.startswith(prefix)}


def tag_matches(name: str, tag_prefix: str, filters: Iterable[str] = ()) -> bool:
    """Whether ``name`` may represent a version of the project.

    The name must be the tag prefix followed by a digit, optionally with a
    single ``v`` or ``-`` marker in between. Every inclusion glob in
    ``filters`` must match as well, and no exclusion glob (``!`` prefixed)
    may match.
    """
    if not name.startswith(tag_prefix):
        return False
    rest = name[len(tag_prefix):]
    if rest[:1] in MARKERS:
        rest = rest[1:]
    if not rest or rest[0] not in DIGITS:
        return False

    for pattern in filters:
        if pattern.startswith("!"):
            if fnmatchcase(name, pattern[1:]):
                return False
        elif not fnmatchcase(name, pattern):
            return False
    return True


def describe_patterns(tag_prefix: str, filters: Iterable[str] = ()) -> Tuple[List[str], List[str]]:
    """Wildmatch patterns that narrow ``git describe`` to likely version tags.

    Returns the ``--match`` patterns (prefix, optional marker, digit) and the
    ``--exclude`` patterns taken from the exclusion filters. Their number
    does not depend on how many tags exist. Inclusion filters cannot be
    ANDed by git, so the described tag still has to pass :func:`tag_matches`.
    """
    prefix = escape_glob(tag_prefix)
    match = [f"{prefix}{marker}[0-9]*" for marker in ("",) + MARKERS]
    exclude = [pattern[1:] for pattern in filters if pattern.startswith("!") and len(pattern) > 1]
    return match, exclude


def split_describe(describe: str) -> Tuple[str, str, str]:
    """Split ``<tag>-<offset>-g<hash>`` into its three parts.

    The split is anchored at the last two hyphens, so tags containing
    hyphens survive intact. The ``g`` marker is removed from the hash.
    """
    parts = describe.rsplit("-", 2)
    if len(parts) != 3:
        raise ValueError(f"Unexpected describe output: '{describe}'")
    tag, offset, commit_hash = parts
    if commit_hash.startswith("g"):
        commit_hash = commit_hash[1:]
    return tag, offset, commit_hash


def bare_tag(tag: str, tag_prefix: str = "") -> str:
    """Strip the tag prefix, then every character before the first digit.

    ``v1.2`` and ``-v1.2`` both become ``1.2``. A tag without digits is
    returned with only the prefix removed.
    """
    if tag_prefix and tag.startswith(tag_prefix):
        tag = tag[len(tag_prefix):]
    for index, char in enumerate(tag):
        if char in DIGITS:
            return tag[index:]
    return tag
