#!/usr/bin/env python
"""
Thin wrapper script to invoke the gitversion CLI.

Running ``python gitversion_cli.py`` is equivalent to running the
``gitversion`` console script installed via ``pyproject.toml``.
"""

from gitversion.cli import main


if __name__ == "__main__":
    main(prog_name="gitversion")
