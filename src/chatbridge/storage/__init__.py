"""Storage utilities for chatbridge."""

from chatbridge.storage.paths import (
    ensure_directory,
    expand_path,
    get_chatbridge_home,
    get_global_config_path,
    get_state_path,
    get_temp_media_dir,
)

__all__ = [
    "ensure_directory",
    "expand_path",
    "get_chatbridge_home",
    "get_global_config_path",
    "get_state_path",
    "get_temp_media_dir",
]
