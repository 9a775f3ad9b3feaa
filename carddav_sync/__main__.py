"""
Entry point for running carddav_sync as a module.

Usage:
    python -m carddav_sync --help
    python -m carddav_sync sync
    python -m carddav_sync sync --source work
"""

from carddav_sync.cli import cli

if __name__ == "__main__":
    cli()
