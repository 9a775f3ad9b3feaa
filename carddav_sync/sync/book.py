"""
ContactBook data model.

A ContactBook is the local record of one remote address book. Books for
external sources use the deterministic id ``external-<source id>``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from carddav_sync.sync.contact import EXTERNAL_CARDDAV_SOURCE

BOOK_ID_PREFIX = "external-"


def book_id_for_source(source_id: str) -> str:
    """Return the ContactBook id used for an external source."""
    return f"{BOOK_ID_PREFIX}{source_id}"


@dataclass
class ContactBook:
    """
    Local address book record.

    Attributes:
        id: Book id (``external-<source id>``)
        account_id: Account the book's contacts belong to
        source: Origin tag
        url: Canonical collection URL
        ctag: Last collection ctag seen on the server (advisory only)
        updated_at: ISO-8601 UTC time of the last save
    """

    id: str
    account_id: str
    source: str = EXTERNAL_CARDDAV_SOURCE
    url: str = ""
    ctag: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> ContactBook:
        """Create a ContactBook from a ``contact_books`` table row."""
        return cls(
            id=row["id"],
            account_id=row["account_id"],
            source=row["source"],
            url=row["url"] or "",
            ctag=row["ctag"],
            updated_at=row["updated_at"],
        )
