"""
carddav_sync.utils - Utility module

Common utilities including logging configuration and path resolution.
"""

from carddav_sync.utils.paths import (
    DEFAULT_CONFIG_DIR,
    resolve_config_dir,
    resolve_database_path,
)

__all__ = ["DEFAULT_CONFIG_DIR", "resolve_config_dir", "resolve_database_path"]
