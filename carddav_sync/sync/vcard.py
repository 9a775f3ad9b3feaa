"""
vCard parsing for address book payloads.

Wraps vobject so the rest of the sync code only deals with the handful
of fields it stores: UID, formatted name, structured name, emails, photo
and the card kind used to recognise contact groups.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import vobject
from vobject.base import VObjectError

# Kind markers identifying group (distribution list) cards
GROUP_KIND = "group"
KIND_PROPERTIES = ("kind", "x-addressbookserver-kind")

logger = logging.getLogger(__name__)


def _join_name_part(part: Any) -> str:
    if isinstance(part, (list, tuple)):
        return " ".join(p for p in part if p)
    return part or ""


class VCard:
    """
    Parsed vCard payload.

    A card is ``incomplete`` when vobject cannot parse the text or when the
    text does not contain a VCARD component. Accessors on an incomplete card
    return empty values.

    Usage:
        card = VCard(vcard_text)
        if not card.incomplete:
            print(card.formatted_name, card.emails)
    """

    def __init__(self, text: str):
        self.text = text
        self._card: Any = None
        try:
            card = vobject.readOne(text)
        except (VObjectError, ValueError, LookupError, StopIteration) as e:
            logger.debug(f"vCard parse error: {e}")
            return

        if (getattr(card, "name", None) or "").upper() == "VCARD":
            self._card = card

    @property
    def incomplete(self) -> bool:
        return self._card is None

    def _values(self, key: str) -> list[Any]:
        if self._card is None:
            return []
        return [line.value for line in self._card.contents.get(key, [])]

    def _first(self, key: str) -> Any:
        values = self._values(key)
        return values[0] if values else None

    @property
    def uid(self) -> str:
        value = self._first("uid")
        return value.strip() if isinstance(value, str) else ""

    @property
    def formatted_name(self) -> str:
        value = self._first("fn")
        return value.strip() if isinstance(value, str) else ""

    @property
    def structured_name(self) -> str:
        """N property as "given additional family" with empty parts dropped."""
        value = self._first("n")
        if value is None:
            return ""
        if isinstance(value, str):
            # Unparsed N value: family;given;additional;prefix;suffix
            parts = value.split(";")
            ordered = parts[1:3] + parts[:1] if len(parts) > 1 else parts
        else:
            ordered = [value.given, value.additional, value.family]
        return " ".join(
            p for p in (_join_name_part(part).strip() for part in ordered) if p
        )

    @property
    def emails(self) -> list[str]:
        """Email values in card order; blank entries are kept as ''."""
        return [
            value.strip() if isinstance(value, str) else ""
            for value in self._values("email")
        ]

    @property
    def photo(self) -> str | None:
        """
        Photo value as a string.

        Inline binary photos are decoded by vobject, so they are re-encoded
        as base64; URI photos are returned unchanged.
        """
        value = self._first("photo")
        if not value:
            return None
        if isinstance(value, bytes):
            return base64.b64encode(value).decode("ascii")
        return str(value)

    @property
    def kind(self) -> str:
        for key in KIND_PROPERTIES:
            value = self._first(key)
            if isinstance(value, str) and value.strip():
                return value.strip().lower()
        return ""

    @property
    def is_group(self) -> bool:
        return self.kind == GROUP_KIND

    def __repr__(self) -> str:
        if self.incomplete:
            return "VCard(incomplete)"
        return f"VCard(uid={self.uid!r}, fn={self.formatted_name!r})"
