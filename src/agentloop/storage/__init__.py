"""Storage utilities for agentloop."""

from agentloop.storage.paths import (
    find_project_config,
    get_agentloop_home,
    get_global_config_path,
)

__all__ = [
    "find_project_config",
    "get_agentloop_home",
    "get_global_config_path",
]
