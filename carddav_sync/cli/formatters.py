"""CLI output formatting functions.

This module contains functions for displaying sync results and store
status on the command line.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from carddav_sync.config.sources import SourceConfig
    from carddav_sync.storage.db import ContactStore
    from carddav_sync.sync.engine import SyncResult


def show_sync_results(results: Sequence["SyncResult"], verbose: bool = False) -> None:
    """
    Print one line per source result, followed by details in verbose mode.

    Args:
        results: Results returned by the sync engine
        verbose: Also show reconciliation counters
    """
    for result in results:
        if result.success:
            click.echo(click.style("OK    ", fg="green") + result.summary())
        else:
            click.echo(click.style("FAIL  ", fg="red") + result.summary())

        if verbose and result.success:
            stats = result.stats
            click.echo(
                f"      local etags: {stats.local_etags}, needed: {stats.needed}, "
                f"stale: {stats.stale}, batches: {stats.batches}"
            )
            if stats.items_skipped:
                click.echo(
                    f"      skipped: {stats.skipped_empty} empty, "
                    f"{stats.skipped_invalid} invalid, "
                    f"{stats.skipped_no_email} without email"
                )
            if stats.group_cards:
                click.echo(f"      group cards (hidden): {stats.group_cards}")

    failed = sum(1 for r in results if not r.success)
    if failed:
        click.echo(
            click.style(f"\n{failed} of {len(results)} source(s) failed.", fg="red")
        )


def show_store_status(
    sources: Sequence["SourceConfig"], store: "ContactStore | None"
) -> None:
    """
    Print configured sources and, when a store is given, their local books.

    Args:
        sources: Configured sources
        store: Initialized contact store, or None if no database exists yet
    """
    from carddav_sync.sync.book import book_id_for_source

    click.echo("=== Sources ===\n")
    if not sources:
        click.echo("No sources configured. Run 'carddav-sync init-config'.")

    for source in sources:
        state = "" if source.enabled else click.style(" (disabled)", fg="yellow")
        click.echo(f"{source.id}: {source.name}{state}")
        click.echo(f"  URL: {source.url}")

        if store is None:
            continue

        book = store.find_book(book_id_for_source(source.id))
        if book is None:
            click.echo("  Never synced")
            continue

        click.echo(f"  Contacts: {store.count_contacts(book.id)}")
        click.echo(f"  Ctag: {book.ctag or 'unknown'}")
        click.echo(f"  Last sync: {book.updated_at or 'Never'}")

    if store is None:
        click.echo("\nContact database: Not initialized (no syncs performed yet)")
