"""
Configuration file generator for CardDAV synchronization.

Writes a documented config.yaml template that users edit to add their
address book sources.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate the default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return """# CardDAV Sync Configuration
# ==========================
#
# Save as ~/.carddav-sync/config.yaml (or pass --config-file).
# CLI arguments override these values.

# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: true

# Directory for daily log files (no file logging when unset)
# log_dir: ~/.carddav-sync/logs

# Number of daily log files to keep (0 keeps all)
# Default: 10
# log_retention_count: 10


# Local Store
# -----------

# SQLite database file; relative paths are inside the config directory
# Default: contacts.db
# database: contacts.db

# Account that owns the synced contacts
# Default: local
# account_id: local


# Network
# -------

# Seconds allowed for connecting to a CardDAV server
# Default: 40
# request_timeout: 40

# Number of sources synced at the same time
# Default: 1
# max_workers: 1


# Sources
# -------
#
# One entry per external address book. Use password_env to read the
# password from an environment variable instead of storing it here.

sources: []
#  - id: work
#    name: Work Directory
#    url: https://dav.example.com/addressbooks/alice/contacts/
#    username: alice
#    password_env: WORK_CARDDAV_PASSWORD
#
#  - id: family
#    url: cloud.example.org/remote.php/dav/addressbooks/users/bob/family/
#    username: bob
#    password: change-me
#    enabled: false
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save the default configuration file.

    Creates parent directories if they don't exist and restricts the file
    to its owner, since it may hold passwords.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite an existing file

    Returns:
        (True, None) on success, (False, error_message) on failure
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
