"""
Path utilities for configuration directory resolution.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".carddav-sync"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "CARDDAV_SYNC_CONFIG_DIR"

# Database file name inside the configuration directory
DEFAULT_DATABASE_FILE = "contacts.db"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. CARDDAV_SYNC_CONFIG_DIR environment variable
        3. Default directory (~/.carddav-sync)

    Args:
        config_dir: Optional explicit configuration directory path.

    Returns:
        Resolved Path to the configuration directory
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def resolve_database_path(
    config_dir: Path, database: str | None = None
) -> Path:
    """
    Resolve the contact database path.

    A relative ``database`` value is taken relative to the configuration
    directory; an absent value selects ``contacts.db`` inside it.
    """
    if not database:
        return config_dir / DEFAULT_DATABASE_FILE

    path = Path(database).expanduser()
    if not path.is_absolute():
        path = config_dir / path
    return path
