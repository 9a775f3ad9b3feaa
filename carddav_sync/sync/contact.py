"""
Contact data model for the local contact store.

A Contact is one row per (vCard payload, email address) pair. Rows fanned
out from the same payload share a ContactInfo value and display name.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional

# Source tag stored on books and contacts created by the external sync
EXTERNAL_CARDDAV_SOURCE = "external-carddav"

# Initial reference count for contacts imported from an address book
CONTACT_MAX_REFS = 100000


@dataclass(frozen=True)
class ContactInfo:
    """
    Immutable description of the payload a contact was built from.

    Attributes:
        vcf: Raw vCard text as returned by the server
        href: Path of the item inside the remote collection
        photo: Photo value (URI or base64 data), when the card has one
    """

    vcf: str
    href: str
    photo: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Return a new dict each call so rows never share mutable state."""
        info: dict[str, Any] = {"vcf": self.vcf, "href": self.href}
        if self.photo:
            info["photo"] = self.photo
        return info


@dataclass
class Contact:
    """
    Local contact record.

    Attributes:
        id: Deterministic id derived from the source id and vCard UID/href
        account_id: Owning account
        email: Email address of this row
        source: Origin tag (EXTERNAL_CARDDAV_SOURCE for synced rows)
        book_id: Owning ContactBook id
        name: Display name
        info: JSON-serialisable info blob (vcf, href, optional photo)
        etag: Revision token of the payload this row was built from
        hidden: True for rows built from group cards
        refs: Reference count used for ranking
    """

    id: str
    account_id: str
    email: str
    source: str = EXTERNAL_CARDDAV_SOURCE
    book_id: Optional[str] = None
    name: str = ""
    info: dict[str, Any] = field(default_factory=dict)
    etag: Optional[str] = None
    hidden: bool = False
    refs: int = CONTACT_MAX_REFS

    def info_json(self) -> str:
        return json.dumps(self.info, sort_keys=True)

    @classmethod
    def from_row(cls, row: Any) -> "Contact":
        """Create a Contact from a ``contacts`` table row."""
        return cls(
            id=row["id"],
            account_id=row["account_id"],
            email=row["email"],
            source=row["source"],
            book_id=row["book_id"],
            name=row["name"] or "",
            info=json.loads(row["info"]) if row["info"] else {},
            etag=row["etag"],
            hidden=bool(row["hidden"]),
            refs=row["refs"],
        )

    def __repr__(self) -> str:
        return (
            f"Contact(id={self.id!r}, email={self.email!r}, "
            f"name={self.name!r}, etag={self.etag!r})"
        )
