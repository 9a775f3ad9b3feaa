"""CLI package for carddav_sync."""

from carddav_sync.cli.formatters import show_store_status, show_sync_results
from carddav_sync.cli.main import (
    cli,
    get_config_dir,
    get_config_file,
    select_sources,
)
from carddav_sync.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "cli",
    "get_config_dir",
    "get_config_file",
    "select_sources",
    "show_store_status",
    "show_sync_results",
]
