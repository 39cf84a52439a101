"""
Changelog generation for gitversion.

See :mod:`gitversion.changelog.generator` for the labelling, grouping and
rendering rules.
"""

from .generator import generate_changelog, render_changelog  # noqa: F401
