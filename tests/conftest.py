import os
import shutil
import tempfile
from pathlib import Path

import pytest


GIT_ENVIRONMENT = {
    "GIT_CONFIG_NOSYSTEM": "1",
    "GIT_AUTHOR_NAME": "Test Author",
    "GIT_AUTHOR_EMAIL": "author@example.com",
    "GIT_COMMITTER_NAME": "Test Author",
    "GIT_COMMITTER_EMAIL": "author@example.com",
    "GIT_TERMINAL_PROMPT": "0",
}


@pytest.fixture(scope="session", autouse=True)
def isolate_git_config():
    """Run every git command against an empty global configuration.

    User or system settings (default branch name, signing, aliases) would
    otherwise leak into the throwaway repositories built by the tests. The
    environment is restored afterwards.
    """
    config_dir = Path(tempfile.mkdtemp(prefix="gitversion_gitconfig_"))
    global_config = config_dir / "gitconfig"
    global_config.write_text("")

    overrides = dict(GIT_ENVIRONMENT, GIT_CONFIG_GLOBAL=str(global_config))
    saved = {key: os.environ.get(key) for key in overrides}
    os.environ.update(overrides)
    try:
        yield
    finally:
        for key, value in saved.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        shutil.rmtree(str(config_dir), ignore_errors=True)
