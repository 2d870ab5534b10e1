"""
Path utilities for chatbridge.

Provides consistent path resolution for configuration, state and temporary
media files.
"""

import os
from pathlib import Path


def get_chatbridge_home() -> Path:
    """
    Get the chatbridge home directory.

    Resolution order:
    1. CHATBRIDGE_HOME environment variable
    2. Default: ~/.chatbridge

    Returns:
        Path to the chatbridge home directory.
    """
    env_home = os.environ.get("CHATBRIDGE_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".chatbridge"


def get_global_config_path() -> Path:
    """
    Get the path to the configuration file.

    Returns:
        Path to ~/.chatbridge/config.yaml
    """
    return get_chatbridge_home() / "config.yaml"


def get_state_path() -> Path:
    """
    Get the default path of the persisted bridge document.

    Returns:
        Path to ~/.chatbridge/db.json
    """
    return get_chatbridge_home() / "db.json"


def get_temp_media_dir() -> Path:
    """
    Get the directory used to buffer media while it is being relayed.

    Returns:
        Path to ~/.chatbridge/temp_media/
    """
    return get_chatbridge_home() / "temp_media"


def expand_path(path: str | Path) -> Path:
    """
    Expand ~ and environment variables in a path.

    Args:
        path: Path string or Path object.

    Returns:
        Expanded absolute Path.
    """
    expanded = os.path.expandvars(str(path))
    return Path(expanded).expanduser().resolve()


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path.

    Returns:
        The same path, for chaining.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path
