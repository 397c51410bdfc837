"""
Path utilities for agentloop.

Provides consistent path resolution for configuration files.
"""

import os
from pathlib import Path

PROJECT_DIR_NAME = ".agentloop"
CONFIG_FILE_NAME = "config.yaml"


def get_agentloop_home() -> Path:
    """
    Get the agentloop home directory.

    Resolution order:
    1. AGENTLOOP_HOME environment variable
    2. Default: ~/.agentloop

    Returns:
        Path to the agentloop home directory.
    """
    env_home = os.environ.get("AGENTLOOP_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path.home() / PROJECT_DIR_NAME


def get_global_config_path() -> Path:
    """
    Get the path to the global configuration file.

    Returns:
        Path to ~/.agentloop/config.yaml
    """
    return get_agentloop_home() / CONFIG_FILE_NAME


def find_project_config(start_path: Path | None = None) -> Path | None:
    """
    Find the project configuration file by traversing up the directory tree.

    Looks for .agentloop/config.yaml starting from the given path
    (or current directory) and moving up to the root. The global config
    under the home directory is never reported as a project config.

    Args:
        start_path: Starting directory to search from. Defaults to cwd.

    Returns:
        Path to the project config if found, None otherwise.
    """
    current = Path.cwd() if start_path is None else Path(start_path).resolve()
    global_path = get_global_config_path().resolve()

    while True:
        project_config = current / PROJECT_DIR_NAME / CONFIG_FILE_NAME
        if project_config.exists() and project_config.resolve() != global_path:
            return project_config
        if current == current.parent:
            return None
        current = current.parent
