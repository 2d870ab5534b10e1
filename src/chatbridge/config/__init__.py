"""Configuration loading and validation for chatbridge."""

from chatbridge.config.loader import (
    ConfigurationError,
    clear_config_cache,
    get_config,
    load_config,
    load_yaml_file,
)
from chatbridge.config.merger import deep_merge, get_nested_value, set_nested_value
from chatbridge.config.schema import (
    BridgeSettings,
    ChatConfig,
    Config,
    LoggingConfig,
    SlackConfig,
    StorageConfig,
)

__all__ = [
    "BridgeSettings",
    "ChatConfig",
    "Config",
    "ConfigurationError",
    "LoggingConfig",
    "SlackConfig",
    "StorageConfig",
    "clear_config_cache",
    "deep_merge",
    "get_config",
    "get_nested_value",
    "load_config",
    "load_yaml_file",
    "set_nested_value",
]
