"""
SQLite database module for the local contact store.

Provides persistent storage for address books and the contacts pulled
from them, plus the transaction scope used to apply each sync batch
atomically.
"""

import logging
import sqlite3
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from carddav_sync.sync.book import ContactBook
from carddav_sync.sync.contact import Contact

# SQL Schema for address books and contacts
SCHEMA = """
CREATE TABLE IF NOT EXISTS contact_books (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    source TEXT NOT NULL,
    url TEXT,
    ctag TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS contacts (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    book_id TEXT,
    email TEXT NOT NULL,
    name TEXT,
    info TEXT,
    etag TEXT,
    source TEXT NOT NULL,
    hidden INTEGER NOT NULL DEFAULT 0,
    refs INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_contacts_book_etag ON contacts(book_id, etag);
CREATE INDEX IF NOT EXISTS idx_contacts_email ON contacts(email);
CREATE INDEX IF NOT EXISTS idx_contact_books_account ON contact_books(account_id);
"""

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a contact store operation fails."""

    pass


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class ContactStore:
    """
    SQLite contact store.

    Provides methods for:
    - Finding and saving address books
    - Finding, upserting and deleting contacts
    - Listing the etags stored for a book
    - Grouping writes in a transaction

    Usage:
        store = ContactStore('/path/to/contacts.db')
        store.initialize()

        with store.transaction("apply batch"):
            store.delete_contacts_by_etag(book.id, stale)
            for contact in contacts:
                store.save_contact(contact)

        # Or use in-memory for testing:
        store = ContactStore(':memory:')
        store.initialize()
    """

    def __init__(self, db_path: str):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None
        self._transaction_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        In-memory databases share one connection so the schema persists;
        file databases get a fresh connection per use.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:")
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Commits on success and rolls back on error. Inside ``transaction()``
        the open transaction's connection is yielded and left uncommitted.

        Raises:
            StoreError: If SQLite reports an error
        """
        if self._transaction_connection is not None:
            yield self._transaction_connection
            return

        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    @contextmanager
    def transaction(self, name: str = "transaction") -> Generator[None, None, None]:
        """
        Run every store call in the block inside one SQLite transaction.

        Args:
            name: Label used in debug logs

        Raises:
            StoreError: If a transaction is already open or SQLite fails
        """
        if self.in_transaction:
            raise StoreError(f"Cannot open {name}: a transaction is already active")

        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        self._transaction_connection = conn
        logger.debug(f"BEGIN {name}")
        try:
            yield
            conn.commit()
            logger.debug(f"COMMIT {name}")
        except sqlite3.Error as e:
            conn.rollback()
            logger.debug(f"ROLLBACK {name}")
            raise StoreError(f"{name} failed: {e}") from e
        except BaseException:
            conn.rollback()
            logger.debug(f"ROLLBACK {name}")
            raise
        finally:
            self._transaction_connection = None
            if not is_shared:
                conn.close()

    @property
    def in_transaction(self) -> bool:
        return self._transaction_connection is not None

    def initialize(self) -> None:
        """Create the tables and indexes if they don't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    # =========================================================================
    # Contact Book Operations
    # =========================================================================

    def find_book(self, book_id: str) -> Optional[ContactBook]:
        """
        Get an address book by id.

        Returns:
            The ContactBook, or None if not found
        """
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM contact_books WHERE id = ?", (book_id,)
            ).fetchone()
            return ContactBook.from_row(row) if row else None

    def save_book(self, book: ContactBook) -> None:
        """Insert or update an address book, stamping ``updated_at``."""
        book.updated_at = _utcnow()
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO contact_books (id, account_id, source, url, ctag, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    account_id = excluded.account_id,
                    source = excluded.source,
                    url = excluded.url,
                    ctag = excluded.ctag,
                    updated_at = excluded.updated_at
                """,
                (
                    book.id,
                    book.account_id,
                    book.source,
                    book.url,
                    book.ctag,
                    book.updated_at,
                ),
            )

    def list_books(self) -> list[ContactBook]:
        """Get all address books ordered by id."""
        with self.connection() as conn:
            rows = conn.execute("SELECT * FROM contact_books ORDER BY id").fetchall()
            return [ContactBook.from_row(row) for row in rows]

    def delete_book(self, book_id: str) -> int:
        """
        Delete an address book and all of its contacts.

        Returns:
            Number of contacts deleted
        """
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM contacts WHERE book_id = ?", (book_id,))
            deleted = cursor.rowcount
            conn.execute("DELETE FROM contact_books WHERE id = ?", (book_id,))
            return deleted

    # =========================================================================
    # Contact Operations
    # =========================================================================

    def find_contact(self, contact_id: str) -> Optional[Contact]:
        """
        Get a contact by id.

        Returns:
            The Contact, or None if not found
        """
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM contacts WHERE id = ?", (contact_id,)
            ).fetchone()
            return Contact.from_row(row) if row else None

    def save_contact(self, contact: Contact) -> None:
        """Insert or overwrite a contact by id."""
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO contacts (
                    id, account_id, book_id, email, name, info,
                    etag, source, hidden, refs
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    account_id = excluded.account_id,
                    book_id = excluded.book_id,
                    email = excluded.email,
                    name = excluded.name,
                    info = excluded.info,
                    etag = excluded.etag,
                    source = excluded.source,
                    hidden = excluded.hidden,
                    refs = excluded.refs
                """,
                (
                    contact.id,
                    contact.account_id,
                    contact.book_id,
                    contact.email,
                    contact.name,
                    contact.info_json(),
                    contact.etag,
                    contact.source,
                    int(contact.hidden),
                    contact.refs,
                ),
            )

    def get_contacts(self, book_id: str) -> list[Contact]:
        """Get all contacts of a book ordered by id."""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM contacts WHERE book_id = ? ORDER BY id", (book_id,)
            ).fetchall()
            return [Contact.from_row(row) for row in rows]

    def count_contacts(self, book_id: str) -> int:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM contacts WHERE book_id = ?", (book_id,)
            )
            result: int = cursor.fetchone()[0]
            return result

    def get_etags(self, book_id: str) -> set[str]:
        """
        Get the set of etags stored on the contacts of a book.

        Rows fanned out from one payload share an etag, so the set has one
        entry per stored payload revision.
        """
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT DISTINCT etag FROM contacts "
                "WHERE book_id = ? AND etag IS NOT NULL",
                (book_id,),
            ).fetchall()
            return {row["etag"] for row in rows}

    def delete_contacts_by_etag(self, book_id: str, etags: Iterable[str]) -> int:
        """
        Delete every contact of a book whose etag is in ``etags``.

        Returns:
            Number of contacts deleted
        """
        deleted = 0
        with self.connection() as conn:
            for etag in etags:
                cursor = conn.execute(
                    "DELETE FROM contacts WHERE book_id = ? AND etag = ?",
                    (book_id, etag),
                )
                deleted += cursor.rowcount
        return deleted

    # =========================================================================
    # Utility Operations
    # =========================================================================

    def vacuum(self) -> None:
        """Vacuum the database to reclaim space."""
        with self.connection() as conn:
            conn.execute("VACUUM")

    def close(self) -> None:
        if self._shared_connection is not None:
            self._shared_connection.close()
            self._shared_connection = None

    def __repr__(self) -> str:
        return f"ContactStore(db_path={self.db_path!r})"
