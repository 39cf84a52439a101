"""
Command line interface for gitversion.

This module defines the ``main`` function which is used as the entry point
of the ``gitversion`` command. It builds a version session for the given
directories and prints the version, the session as JSON, or a changelog.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import click

from gitversion import __version__
from gitversion.exceptions import GitVersionError
from gitversion.session import build_git_version

# Create a module-level logger. Attach a null handler and disable
# propagation to avoid logging errors when the root logger's stream is
# closed (such as during unit tests). When logging is configured by
# the CLI, root handlers will be added and messages will propagate.
logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_USAGE = 2


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    click.echo(f"✗ {message}", err=True)


def enable_propagation() -> None:
    """Let the package loggers reach the handlers configured on the root."""
    for name in list(logging.root.manager.loggerDict):
        if name == "gitversion" or name.startswith("gitversion."):
            logging.getLogger(name).propagate = True


@click.command()
@click.option("--disable-strict", is_flag=True, help="Degrade to placeholder values instead of failing.")
@click.option(
    "--config-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file to use instead of <root>/.gitversion.json.",
)
@click.option("--git-dir", type=click.Path(file_okay=False, path_type=Path), help="The .git directory.")
@click.option("--root-dir", type=click.Path(file_okay=False, path_type=Path), help="The repository root.")
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="The project directory to version.",
)
@click.option("--changelog", is_flag=True, help="Print the changelog instead of the version.")
@click.option("--start", help="Tag or revision the changelog starts at.")
@click.option("--url", help="Project URL used for links in the changelog.")
@click.option("--plain-text", is_flag=True, help="Render the changelog as plain text instead of Markdown.")
@click.option("--json", "as_json", is_flag=True, help="Print the full version information as JSON.")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="gitversion")
def main(
    disable_strict: bool,
    config_file: Optional[Path],
    git_dir: Optional[Path],
    root_dir: Optional[Path],
    project_dir: Path,
    changelog: bool,
    start: Optional[str],
    url: Optional[str],
    plain_text: bool,
    as_json: bool,
    verbose: bool,
) -> None:
    """Compute the version of a project from its Git history.

    By default the version (``<tag>.<offset>``) is printed without a
    trailing newline, ready for use in build scripts.
    """
    # Configure logging. Use force=True to ensure handlers are reconfigured
    # on subsequent invocations (important for tests).
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        force=True,
    )
    enable_propagation()

    if changelog and as_json:
        print_error("--changelog and --json cannot be used together.")
        raise click.exceptions.Exit(EXIT_INVALID_USAGE)

    try:
        version = build_git_version(
            git_dir=git_dir,
            root=root_dir,
            project=project_dir,
            config_file=config_file,
            strict=not disable_strict,
        )
        with version:
            if changelog:
                click.echo(version.generate_changelog(start=start, url=url, plain_text=plain_text), nl=False)
            elif as_json:
                click.echo(version.to_json())
            else:
                click.echo(version.tag_offset(), nl=False)
    except GitVersionError as exc:
        logger.debug("gitversion failed", exc_info=True)
        print_error(str(exc))
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
