"""
carddav_sync.config - Configuration management module

Contains configuration loading, validation and source definitions.
"""

from carddav_sync.config.loader import (
    DEFAULT_ACCOUNT_ID,
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
)
from carddav_sync.config.sources import SourceConfig, SourceConfigError, load_sources

__all__ = [
    "DEFAULT_ACCOUNT_ID",
    "DEFAULT_CONFIG_FILE",
    "ConfigError",
    "ConfigLoader",
    "SourceConfig",
    "SourceConfigError",
    "load_sources",
]
