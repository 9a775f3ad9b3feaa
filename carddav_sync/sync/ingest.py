"""
Conversion of fetched address book items into local contacts.

One vCard payload becomes one Contact per email address. Payloads with no
body, no parseable card or no email are skipped with an explicit reason.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from carddav_sync.api.dav_xml import DavResponse
from carddav_sync.sync.contact import EXTERNAL_CARDDAV_SOURCE, Contact, ContactInfo
from carddav_sync.sync.vcard import VCard

CONTACT_ID_PREFIX = "ext-"

logger = logging.getLogger(__name__)


class SkipReason(str, Enum):
    """Why an item produced no contacts."""

    EMPTY = "empty"  # Server returned no address data
    INVALID = "invalid"  # Address data is not a complete vCard
    NO_EMAIL = "no_email"  # Card has no email address


@dataclass
class IngestResult:
    """
    Outcome of ingesting one response item.

    Attributes:
        contacts: Contacts to upsert (empty when skipped)
        skip_reason: Set when the item was skipped
        etag: Etag of the item
        href: Href of the item
        is_group: True when the card describes a contact group
        created: Number of contacts that did not exist locally yet
    """

    contacts: list[Contact] = field(default_factory=list)
    skip_reason: Optional[SkipReason] = None
    etag: str = ""
    href: str = ""
    is_group: bool = False
    created: int = 0

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None


def contact_base_id(source_id: str, uid: str, href: str) -> str:
    """Deterministic id of the first contact built from a payload."""
    return f"{CONTACT_ID_PREFIX}{source_id}-{uid or href}"


def contact_id(base_id: str, index: int) -> str:
    """Id of the contact for the email at ``index`` of a payload."""
    return base_id if index == 0 else f"{base_id}-{index}"


class ContactIngester:
    """
    Builds contacts from address book response items.

    Existing rows are looked up by id through ``find_contact`` so that an
    updated payload overwrites the same rows instead of adding new ones.

    Usage:
        ingester = ContactIngester("work", "local", book.id, store.find_contact)
        for item in document.responses():
            result = ingester.ingest(item)
    """

    def __init__(
        self,
        source_id: str,
        account_id: str,
        book_id: str,
        find_contact: Callable[[str], Optional[Contact]],
    ):
        self.source_id = source_id
        self.account_id = account_id
        self.book_id = book_id
        self.find_contact = find_contact

    def ingest(self, item: DavResponse) -> IngestResult:
        """
        Turn one response item into zero or more contacts.

        Args:
            item: Response handle carrying etag, href and address data

        Returns:
            IngestResult with the contacts to save or the skip reason
        """
        etag = item.etag
        href = item.href
        vcard_text = item.address_data
        result = IngestResult(etag=etag, href=href)

        if not vcard_text.strip():
            logger.info(f"Received addressbook entry {etag} with an empty body")
            result.skip_reason = SkipReason.EMPTY
            return result

        card = VCard(vcard_text)
        if card.incomplete:
            logger.info(f"Unable to decode vcard at {href} ({etag})")
            result.skip_reason = SkipReason.INVALID
            return result

        emails = card.emails
        if not any(emails):
            logger.debug(f"Skipping {href}: no email addresses")
            result.skip_reason = SkipReason.NO_EMAIL
            return result

        base_id = contact_base_id(self.source_id, card.uid, href)
        name = card.formatted_name or card.structured_name
        info = ContactInfo(vcf=vcard_text, href=href, photo=card.photo)
        result.is_group = card.is_group

        for index, email in enumerate(emails):
            if not email:
                continue

            cid = contact_id(base_id, index)
            contact = self.find_contact(cid)
            if contact is None:
                contact = Contact(
                    id=cid,
                    account_id=self.account_id,
                    email=email,
                    source=EXTERNAL_CARDDAV_SOURCE,
                )
                result.created += 1

            contact.book_id = self.book_id
            contact.info = info.to_dict()
            contact.name = name
            contact.email = email
            contact.etag = etag
            contact.hidden = result.is_group
            result.contacts.append(contact)

        return result
