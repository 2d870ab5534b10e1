"""
Configuration loader for chatbridge.

Loads and merges configuration from:
1. Default values
2. Config file (~/.chatbridge/config.yaml, or an explicit path)
3. Environment variables (CHATBRIDGE_<SECTION>__<KEY>)

String values of the form ``${NAME}`` are replaced by the environment
variable ``NAME`` so tokens can stay out of the file.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from chatbridge.config.merger import deep_merge, set_nested_value
from chatbridge.config.schema import Config
from chatbridge.storage.paths import get_global_config_path

ENV_PREFIX = "CHATBRIDGE_"
_ENV_REFERENCE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


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


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    ``CHATBRIDGE_SLACK__BOT_TOKEN=xoxb-1`` sets ``slack.bot_token``; double
    underscores separate nesting levels so keys may contain single ones.
    CHATBRIDGE_HOME is handled by the path helpers and skipped here.
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == "CHATBRIDGE_HOME":
            continue

        config_key = key[len(ENV_PREFIX) :].lower().replace("__", ".")
        if "." not in config_key:
            continue

        config = set_nested_value(config, config_key, _parse_env_value(value))

    return config


def _parse_env_value(value: str) -> Any:
    """Parse an environment value to bool, int, float or string."""
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False
    if re.match(r"^-?\d+$", value):
        return int(value)
    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)
    return value


def resolve_env_references(value: Any) -> Any:
    """Replace ``${NAME}`` strings, recursively, with the environment value."""
    if isinstance(value, dict):
        return {k: resolve_env_references(v) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_env_references(v) for v in value]
    if isinstance(value, str):
        match = _ENV_REFERENCE.match(value)
        if match:
            return os.environ.get(match.group(1), "")
    return value


def load_config(config_path: Path | None = None, skip_env: bool = False) -> Config:
    """
    Load and merge configuration from all sources.

    Args:
        config_path: Explicit config file. Defaults to ~/.chatbridge/config.yaml.
        skip_env: Skip environment variable overrides.

    Returns:
        Merged and validated Config object.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    config_dict = Config().model_dump()

    path = config_path or get_global_config_path()
    if config_path is not None and not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    config_dict = deep_merge(config_dict, load_yaml_file(path))

    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    config_dict = resolve_env_references(config_dict)

    try:
        return Config.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


# Singleton for cached config
_cached_config: Config | None = None


def get_config(reload: bool = False) -> Config:
    """
    Get the global configuration instance.

    Args:
        reload: Force reload configuration from disk.

    Returns:
        Config instance.
    """
    global _cached_config

    if _cached_config is None or reload:
        _cached_config = load_config()

    return _cached_config


def clear_config_cache() -> None:
    """Clear the cached configuration."""
    global _cached_config
    _cached_config = None
