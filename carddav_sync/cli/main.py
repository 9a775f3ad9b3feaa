"""
Command-line interface for carddav_sync.

Provides CLI commands for pulling external CardDAV address books into the
local contact store and inspecting what has been synced.

Usage:
    # Show help
    carddav-sync --help

    # Create a configuration template
    carddav-sync init-config

    # Sync every enabled source, or only some
    carddav-sync sync
    carddav-sync sync --source work --source family

    # Show sources and local books
    carddav-sync status
"""

import sys
from pathlib import Path
from typing import Any

import click

from carddav_sync import __version__
from carddav_sync.cli.formatters import show_store_status, show_sync_results
from carddav_sync.config.generator import save_config_file
from carddav_sync.config.loader import (
    DEFAULT_ACCOUNT_ID,
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
)
from carddav_sync.config.sources import SourceConfig, load_sources
from carddav_sync.storage.db import ContactStore
from carddav_sync.sync.book import book_id_for_source
from carddav_sync.utils import resolve_config_dir, resolve_database_path
from carddav_sync.utils.logging import cleanup_old_logs, get_logger, setup_logging


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_dir: Path, config_file: str | None) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file).expanduser()
    return config_dir / DEFAULT_CONFIG_FILE


def get_database_path(ctx: click.Context) -> Path:
    """Database path from the loaded configuration."""
    return resolve_database_path(
        ctx.obj["config_dir"], ctx.obj["config"].get("database")
    )


def open_store(db_path: Path) -> ContactStore:
    """Create the database directory if needed and open an initialized store."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    store = ContactStore(str(db_path))
    store.initialize()
    return store


def select_sources(
    sources: list[SourceConfig], requested: tuple[str, ...]
) -> list[SourceConfig]:
    """
    Pick the sources to sync.

    With no explicit ids every enabled source is selected. Explicit ids
    select those sources even when disabled.

    Raises:
        click.BadParameter: If a requested id is not configured
    """
    if not requested:
        return [source for source in sources if source.enabled]

    by_id = {source.id: source for source in sources}
    unknown = [source_id for source_id in requested if source_id not in by_id]
    if unknown:
        raise click.BadParameter(
            f"Unknown source(s): {', '.join(unknown)}. "
            f"Configured: {', '.join(by_id) or 'none'}",
            param_hint="--source",
        )
    return [by_id[source_id] for source_id in dict.fromkeys(requested)]


def _load_sources_or_exit(config: dict[str, Any]) -> list[SourceConfig]:
    try:
        return load_sources(config)
    except ConfigError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="carddav-sync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="CARDDAV_SYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.carddav-sync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="CARDDAV_SYNC_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    One-way CardDAV Contacts Sync.

    Pulls contacts from external CardDAV address books into a local
    contact database. Remote changes and deletions are mirrored locally;
    nothing is ever written back to the servers.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(resolved_config_dir, config_file)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config: dict[str, Any] = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Keep the CLI usable (init-config, --help) with a broken file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    ctx.obj["config"] = config

    # CLI flag wins over the config file
    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = Path(config["log_dir"]).expanduser() if config.get("log_dir") else None
    setup_logging(verbose=effective_verbose, log_dir=log_dir)
    cleanup_old_logs(log_dir, keep_count=config.get("log_retention_count", 10))


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Examples:

        # Create config file (fails if already exists)
        carddav-sync init-config

        # Overwrite existing config file
        carddav-sync init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Add your address books under 'sources'")
        click.echo("2. Run 'carddav-sync sync'")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--source",
    "-s",
    "source_ids",
    multiple=True,
    help="Source id to sync (repeatable; default: all enabled sources).",
)
@click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Number of sources to sync concurrently (default: max_workers or 1).",
)
@click.pass_context
def sync_command(
    ctx: click.Context, source_ids: tuple[str, ...], jobs: int | None
) -> None:
    """
    Pull contacts from the configured CardDAV sources.

    Each source is reconciled independently. A failing source does not stop
    the others; the command exits with status 1 if any source failed.

    Examples:

        # Sync every enabled source
        carddav-sync sync

        # Sync one source, even if disabled
        carddav-sync sync --source work

        # Sync up to four sources at a time
        carddav-sync sync --jobs 4
    """
    from carddav_sync.sync.engine import run_sources

    logger = get_logger(__name__)
    config = ctx.obj["config"]

    sources = select_sources(_load_sources_or_exit(config), source_ids)
    if not sources:
        click.echo("No enabled sources to sync.")
        return

    db_path = get_database_path(ctx)
    try:
        open_store(db_path)
    except Exception as e:
        logger.exception(f"Cannot open contact database {db_path}: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    def store_factory() -> ContactStore:
        return open_store(db_path)

    max_workers = jobs or config.get("max_workers", 1)
    click.echo(f"Syncing {len(sources)} source(s) into {db_path}\n")

    results = run_sources(
        sources,
        store_factory,
        account_id=config.get("account_id", DEFAULT_ACCOUNT_ID),
        max_workers=max_workers,
        connect_timeout=config.get("request_timeout", 40),
    )

    show_sync_results(results, verbose=ctx.obj["verbose"])

    if not all(result.success for result in results):
        sys.exit(1)


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """
    Show configured sources and what has been synced locally.

    Example:

        carddav-sync status
    """
    logger = get_logger(__name__)

    sources = _load_sources_or_exit(ctx.obj["config"])
    db_path = get_database_path(ctx)

    click.echo("=== CardDAV Sync Status ===\n")
    click.echo(f"Configuration file: {ctx.obj['config_file']}")
    click.echo(f"Contact database: {db_path}\n")

    try:
        store = open_store(db_path) if db_path.exists() else None
        show_store_status(sources, store)
    except Exception as e:
        logger.exception(f"Error getting status: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Reset Command
# =============================================================================


@cli.command("reset")
@click.option(
    "--source",
    "-s",
    "source_id",
    default=None,
    help="Only reset this source (default: all books in the database).",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def reset_command(ctx: click.Context, source_id: str | None, yes: bool) -> None:
    """
    Delete locally synced contacts (forces a full re-import on next sync).

    This does NOT delete anything on the CardDAV servers.

    Examples:

        carddav-sync reset --source work
        carddav-sync reset --yes
    """
    logger = get_logger(__name__)
    db_path = get_database_path(ctx)

    if not db_path.exists():
        click.echo("No contact database found. Nothing to reset.")
        return

    target = f"source '{source_id}'" if source_id else "all sources"
    if not yes:
        click.confirm(
            f"This will delete the local contacts of {target}.\nContinue?",
            abort=True,
        )

    try:
        store = open_store(db_path)
        if source_id:
            book_ids = [book_id_for_source(source_id)]
        else:
            book_ids = [book.id for book in store.list_books()]

        removed = 0
        for book_id in book_ids:
            removed += store.delete_book(book_id)
        store.vacuum()

        click.echo(
            click.style(f"Removed {removed} contact(s) for {target}.", fg="green")
        )
        logger.info(f"Reset {target}: {removed} contact(s) removed")

    except Exception as e:
        logger.exception(f"Reset failed: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
