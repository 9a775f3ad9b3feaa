"""
Sync engine for one-way CardDAV address book reconciliation.

Pulls one external address book into the local contact store:

1. Resolve (find or create) the local ContactBook and refresh its ctag
2. Diff the remote etag listing against the etags stored locally
3. Fetch changed items with addressbook-multiget in batches of 90
4. Turn each vCard into one contact per email address
5. Apply stale deletions and upserts, one transaction per batch

A run never raises: failures end the run and are reported in SyncResult.
Batches committed before a failure stay applied.
"""

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from carddav_sync.api.carddav_client import (
    DEFAULT_CONNECT_TIMEOUT,
    MULTIGET_BATCH_SIZE,
    CardDAVClient,
    CardDAVError,
)
from carddav_sync.api.dav_xml import DavDocument
from carddav_sync.config.loader import DEFAULT_ACCOUNT_ID
from carddav_sync.config.sources import SourceConfig
from carddav_sync.storage.db import ContactStore
from carddav_sync.sync.book import ContactBook, book_id_for_source
from carddav_sync.sync.contact import EXTERNAL_CARDDAV_SOURCE
from carddav_sync.sync.ingest import ContactIngester, IngestResult, SkipReason
from carddav_sync.sync.reconcile import ChangeSet, chunked, compute_changes

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Phases of a sync run."""

    IDLE = "idle"
    RESOLVING_COLLECTION = "resolving_collection"
    RECONCILING = "reconciling"
    FETCHING = "fetching"
    INGESTING = "ingesting"
    APPLYING = "applying"
    FINAL_SWEEP = "final_sweep"
    DONE = "done"


@dataclass
class SyncStats:
    """
    Statistics from a sync run.

    Tracks counts of all operations performed during the run.
    """

    remote_items: int = 0
    local_etags: int = 0
    needed: int = 0
    stale: int = 0
    batches: int = 0
    contacts_created: int = 0
    contacts_updated: int = 0
    contacts_deleted: int = 0
    group_cards: int = 0
    skipped_empty: int = 0
    skipped_invalid: int = 0
    skipped_no_email: int = 0

    @property
    def contacts_saved(self) -> int:
        return self.contacts_created + self.contacts_updated

    @property
    def items_skipped(self) -> int:
        return self.skipped_empty + self.skipped_invalid + self.skipped_no_email

    def record(self, result: IngestResult) -> None:
        """Add one ingested item to the counters."""
        if result.skip_reason is SkipReason.EMPTY:
            self.skipped_empty += 1
        elif result.skip_reason is SkipReason.INVALID:
            self.skipped_invalid += 1
        elif result.skip_reason is SkipReason.NO_EMAIL:
            self.skipped_no_email += 1
        else:
            if result.is_group:
                self.group_cards += 1
            self.contacts_created += result.created
            self.contacts_updated += len(result.contacts) - result.created


@dataclass
class SyncResult:
    """
    Result of syncing one source.

    Attributes:
        source_id: Id of the synced source
        source_name: Display name of the synced source
        contact_count: Number of items in the remote listing
        success: True if the run completed
        error: Error message when the run failed
        stats: Operation counters
    """

    source_id: str
    source_name: str
    contact_count: int = 0
    success: bool = False
    error: Optional[str] = None
    stats: SyncStats = field(default_factory=SyncStats)

    def summary(self) -> str:
        """One-line human-readable summary."""
        if not self.success:
            return f"{self.source_name}: failed - {self.error}"

        stats = self.stats
        line = (
            f"{self.source_name}: {self.contact_count} remote items, "
            f"{stats.contacts_created} added, {stats.contacts_updated} updated, "
            f"{stats.contacts_deleted} removed"
        )
        if stats.items_skipped:
            line += f", {stats.items_skipped} skipped"
        return line


class SyncEngine:
    """
    One-way sync engine for a single external CardDAV source.

    Each engine owns its client and store handle; engines for different
    sources share nothing but the database file.

    Usage:
        engine = SyncEngine(
            source=SourceConfig(...),
            store=ContactStore('/path/to/contacts.db'),
            account_id='local',
        )
        result = engine.run()
        print(result.summary())
    """

    def __init__(
        self,
        source: SourceConfig,
        store: ContactStore,
        account_id: str = DEFAULT_ACCOUNT_ID,
        client: Optional[CardDAVClient] = None,
        batch_size: int = MULTIGET_BATCH_SIZE,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ):
        """
        Initialize the sync engine.

        Args:
            source: Source to pull from
            store: Local contact store
            account_id: Account that owns the synced contacts
            client: CardDAV client (built from the source credentials if None)
            batch_size: Hrefs per multiget request (1 to 90)
            connect_timeout: Connect timeout for the default client

        Raises:
            ValueError: If batch_size is outside 1..90
        """
        if not 1 <= batch_size <= MULTIGET_BATCH_SIZE:
            raise ValueError(
                f"batch_size must be between 1 and {MULTIGET_BATCH_SIZE}, "
                f"got {batch_size}"
            )

        self.source = source
        self.store = store
        self.account_id = account_id
        self.batch_size = batch_size
        self.client = client or CardDAVClient(
            source.username, source.password, connect_timeout=connect_timeout
        )
        self.state = SyncState.IDLE

    def run(self) -> SyncResult:
        """
        Sync the source into the local store.

        Returns:
            SyncResult; ``success`` is False and ``error`` is set when the
            run was aborted
        """
        result = SyncResult(source_id=self.source.id, source_name=self.source.name)
        logger.info(
            f"Starting external CardDAV sync for: {self.source.name} "
            f"({self.source.url})"
        )

        try:
            self.state = SyncState.RESOLVING_COLLECTION
            book = self.resolve_address_book()

            result.contact_count = self.run_for_address_book(book, result.stats)
            result.success = True
            logger.info(
                f"External CardDAV sync completed for: {self.source.name} "
                f"({result.contact_count} contacts)"
            )
        except Exception as e:
            logger.error(f"External CardDAV sync failed for {self.source.name}: {e}")
            logger.debug("Sync failure details", exc_info=True)
            result.error = str(e) or type(e).__name__
        finally:
            self.state = SyncState.DONE

        return result

    def resolve_address_book(self) -> ContactBook:
        """
        Find or create the local ContactBook for the source.

        The source tag and URL are refreshed on every run. The ctag is
        refreshed when the server provides one; failing to fetch it is
        logged and otherwise ignored.

        Returns:
            The saved ContactBook

        Raises:
            StoreError: If the book cannot be read or saved
        """
        book_id = book_id_for_source(self.source.id)
        book = self.store.find_book(book_id)
        if book is None:
            logger.debug(f"Creating contact book {book_id}")
            book = ContactBook(id=book_id, account_id=self.account_id)

        book.source = EXTERNAL_CARDDAV_SOURCE
        book.url = self.source.url

        try:
            doc = self.client.propfind_ctag(self.source.url)
            for item in doc.responses():
                if item.display_name:
                    logger.debug(
                        f"External source {self.source.name} book: {item.display_name}"
                    )
                if item.ctag:
                    book.ctag = item.ctag
                    break
        except CardDAVError as e:
            logger.warning(
                f"Could not fetch ctag for external source {self.source.name}: {e}"
            )

        self.store.save_book(book)
        return book

    def fetch_remote_etags(self, book: ContactBook) -> dict[str, str]:
        """
        List every remote item as an etag -> href mapping.

        Responses without an etag (such as the collection itself) are ignored.

        Raises:
            CardDAVError: If the listing request fails
        """
        doc = self.client.list_etags(book.url)
        remote: dict[str, str] = {}
        for item in doc.responses():
            etag = item.etag
            if not etag:
                continue
            remote[etag] = item.href
        return remote

    def reconcile(self, book: ContactBook) -> tuple[ChangeSet, int]:
        """
        Compare the remote listing with local etags.

        Returns:
            (ChangeSet, number of remote items)
        """
        self.state = SyncState.RECONCILING
        remote = self.fetch_remote_etags(book)
        local = self.store.get_etags(book.id)
        changes = compute_changes(remote, local)

        logger.info(
            f"External CardDAV {self.source.name} - remote: {changes.remote_count}, "
            f"local: {changes.local_count}, needed: {len(changes.needed)}, "
            f"deleted: {len(changes.deleted)}"
        )
        return changes, len(remote)

    def run_for_address_book(self, book: ContactBook, stats: SyncStats) -> int:
        """
        Reconcile one address book and apply the changes.

        Stale etags are deleted in the first batch's transaction, or in a
        final sweep when no batch runs, so they are deleted once per run.

        Args:
            book: The resolved ContactBook
            stats: Counters updated in place

        Returns:
            Number of items in the remote listing
        """
        changes, remote_count = self.reconcile(book)
        stats.remote_items = remote_count
        stats.local_etags = changes.local_count
        stats.needed = len(changes.needed)
        stats.stale = len(changes.deleted)

        if not changes.has_changes():
            logger.info(f"External CardDAV {self.source.name} is up to date")
            return remote_count

        pending_deletes = list(changes.deleted)
        ingester = ContactIngester(
            self.source.id, self.account_id, book.id, self.store.find_contact
        )

        total_batches = changes.batch_count(self.batch_size)
        for number, hrefs in enumerate(chunked(changes.needed, self.batch_size), 1):
            self.state = SyncState.FETCHING
            logger.debug(
                f"Fetching batch {number}/{total_batches} ({len(hrefs)} items)"
            )
            doc = self.client.multiget(book.url, hrefs)
            logger.debug(f"Batch {number} returned {len(doc)} of {len(hrefs)} items")

            self._apply_batch(
                book, doc, ingester, pending_deletes, stats, f"batch {number}"
            )
            pending_deletes = []
            stats.batches += 1

        if pending_deletes:
            self.state = SyncState.FINAL_SWEEP
            with self.store.transaction(f"{self.source.id} final sweep"):
                stats.contacts_deleted += self.store.delete_contacts_by_etag(
                    book.id, pending_deletes
                )

        return remote_count

    def _apply_batch(
        self,
        book: ContactBook,
        doc: DavDocument,
        ingester: ContactIngester,
        deletes: Sequence[str],
        stats: SyncStats,
        label: str,
    ) -> None:
        """Delete stale rows and upsert one batch's contacts atomically."""
        batch_stats = SyncStats()
        deleted = 0

        with self.store.transaction(f"{self.source.id} {label}"):
            if deletes:
                self.state = SyncState.APPLYING
                deleted = self.store.delete_contacts_by_etag(book.id, deletes)

            for item in doc.responses():
                self.state = SyncState.INGESTING
                result = ingester.ingest(item)
                batch_stats.record(result)

                self.state = SyncState.APPLYING
                for contact in result.contacts:
                    self.store.save_contact(contact)

        # Only count what was committed
        stats.contacts_deleted += deleted
        stats.contacts_created += batch_stats.contacts_created
        stats.contacts_updated += batch_stats.contacts_updated
        stats.group_cards += batch_stats.group_cards
        stats.skipped_empty += batch_stats.skipped_empty
        stats.skipped_invalid += batch_stats.skipped_invalid
        stats.skipped_no_email += batch_stats.skipped_no_email

    def __repr__(self) -> str:
        return f"SyncEngine(source={self.source.id!r}, store={self.store!r})"


def run_sources(
    sources: Sequence[SourceConfig],
    store_factory: Callable[[], ContactStore],
    account_id: str = DEFAULT_ACCOUNT_ID,
    max_workers: int = 1,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
) -> list[SyncResult]:
    """
    Sync several sources, each with its own engine and store handle.

    Args:
        sources: Sources to sync
        store_factory: Returns a fresh, initialized ContactStore per engine
        account_id: Account that owns the synced contacts
        max_workers: Number of sources synced concurrently
        connect_timeout: Connect timeout for each CardDAV client

    Returns:
        One SyncResult per source, in the order of ``sources``
    """

    def sync_one(source: SourceConfig) -> SyncResult:
        try:
            engine = SyncEngine(
                source,
                store_factory(),
                account_id=account_id,
                connect_timeout=connect_timeout,
            )
        except Exception as e:
            logger.error(f"Could not start sync for {source.name}: {e}")
            return SyncResult(source.id, source.name, error=str(e))
        return engine.run()

    if max_workers <= 1 or len(sources) <= 1:
        return [sync_one(source) for source in sources]

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(sync_one, sources))
