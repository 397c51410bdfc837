"""
Configuration loader for agentloop.

Loads and merges configuration from multiple sources:
1. Default values
2. Global config (~/.agentloop/config.yaml)
3. Project config (./.agentloop/config.yaml)
4. Explicit config file, if one is passed
5. Environment variables (AGENTLOOP_*)
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from agentloop.config.merger import deep_merge, set_nested_value
from agentloop.config.schema import Config
from agentloop.storage.paths import find_project_config, get_global_config_path

logger = logging.getLogger(__name__)

ENV_PREFIX = "AGENTLOOP_"
# Variables under the prefix that are not configuration keys
_RESERVED_ENV = {"AGENTLOOP_HOME"}


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration dictionary, empty if the file does not exist.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")
    return content


def save_yaml_file(path: Path, config: dict[str, Any]) -> None:
    """
    Save a configuration dictionary to a YAML file.

    Raises:
        ConfigurationError: If the file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
    except OSError as e:
        raise ConfigurationError(f"Cannot write {path}: {e}") from e


def env_key_to_path(key: str) -> str:
    """
    Convert an environment variable name to a dotted config path.

    The first underscore separates the section from the field, so field
    names keep their underscores. A double underscore descends one level.

    Examples:
        AGENTLOOP_AGENT_MAX_ITERATIONS -> agent.max_iterations
        AGENTLOOP_RESILIENCE__RETRY__MAX_ATTEMPTS -> resilience.retry.max_attempts
    """
    rest = key[len(ENV_PREFIX) :].lower()
    if "__" in rest:
        return ".".join(part for part in rest.split("__") if part)
    section, _, field = rest.partition("_")
    return f"{section}.{field}" if field else section


def apply_env_overrides(
    config: dict[str, Any], environ: dict[str, str] | None = None
) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Args:
        config: Configuration dictionary to modify.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Configuration with environment overrides applied.
    """
    environ = os.environ if environ is None else environ

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
            continue

        config_key = env_key_to_path(key)
        logger.debug(f"Config override from {key}: {config_key}")
        config = set_nested_value(config, config_key, _parse_env_value(value))

    return config


def _parse_env_value(value: str) -> Any:
    """Parse an environment variable value to bool, int, float, list or string."""
    lowered = value.lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False

    if re.match(r"^-?\d+$", value):
        return int(value)

    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)

    if "," in value:
        return [item.strip() for item in value.split(",") if item.strip()]

    return value


def _merge_layer(config: dict[str, Any], path: Path) -> dict[str, Any]:
    logger.debug(f"Merging config layer {path}")
    try:
        return deep_merge(config, load_yaml_file(path))
    except ValueError as e:
        raise ConfigurationError(f"Invalid setting in {path}: {e}") from e


def load_config(
    config_path: Path | None = None,
    project_path: Path | None = None,
    skip_project: bool = False,
    skip_env: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Args:
        config_path: Explicit config file layered after the project config.
        project_path: Starting path to search for project config. Defaults to cwd.
        skip_project: Skip loading project configuration.
        skip_env: Skip environment variable overrides.

    Returns:
        Merged and validated Config object.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    config_dict = Config().model_dump()

    global_path = get_global_config_path()
    if global_path.exists():
        config_dict = _merge_layer(config_dict, global_path)

    if not skip_project:
        project_config_path = find_project_config(project_path)
        if project_config_path:
            config_dict = _merge_layer(config_dict, project_config_path)

    if config_path is not None:
        if not Path(config_path).exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        config_dict = _merge_layer(config_dict, Path(config_path))

    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    try:
        return Config.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def get_config_sources(project_path: Path | None = None) -> dict[str, Path | None]:
    """
    Get paths to all configuration file sources.

    Returns:
        Dictionary mapping source names to paths (None if not found).
    """
    global_path = get_global_config_path()
    return {
        "global": global_path if global_path.exists() else None,
        "project": find_project_config(project_path),
    }


# Singleton for cached config
_cached_config: Config | None = None


def get_config(reload: bool = False) -> Config:
    """
    Get the global configuration instance.

    Uses a cached instance. Use reload=True to force a refresh from disk.
    """
    global _cached_config

    if _cached_config is None or reload:
        _cached_config = load_config()

    return _cached_config


def clear_config_cache() -> None:
    """Clear the cached configuration."""
    global _cached_config
    _cached_config = None
