"""
WebDAV multistatus document parsing.

Wraps an ElementTree parse of a 207 Multi-Status body and exposes its
``<d:response>`` elements as lightweight handles with the properties the
sync engine needs (href, etag, address data, ctag, display name).
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Iterator
from typing import Optional

# XML namespaces used by CardDAV servers
DAV_NS = "DAV:"
CARDDAV_NS = "urn:ietf:params:xml:ns:carddav"
CALENDARSERVER_NS = "http://calendarserver.org/ns/"

NS = {"d": DAV_NS, "c": CARDDAV_NS, "cs": CALENDARSERVER_NS}


class DavParseError(ValueError):
    """Raised when a response body is not a parseable XML document."""

    pass


def _text(element: Optional[ET.Element]) -> str:
    if element is None or element.text is None:
        return ""
    return element.text


class DavResponse:
    """
    One ``<d:response>`` element of a multistatus document.

    Each property lookup searches the whole response subtree, so values
    are found regardless of which ``<d:propstat>`` block carries them.
    """

    def __init__(self, element: ET.Element):
        self.element = element

    def _find(self, path: str) -> str:
        return _text(self.element.find(path, NS))

    @property
    def href(self) -> str:
        return self._find(".//d:href").strip()

    @property
    def etag(self) -> str:
        return self._find(".//d:getetag").strip()

    @property
    def address_data(self) -> str:
        """Raw vCard text, or an empty string when the server sent none."""
        return self._find(".//c:address-data")

    @property
    def ctag(self) -> str:
        return self._find(".//cs:getctag").strip()

    @property
    def display_name(self) -> str:
        return self._find(".//d:displayname").strip()

    def __repr__(self) -> str:
        return f"DavResponse(href={self.href!r}, etag={self.etag!r})"


class DavDocument:
    """
    Parsed multistatus document.

    Usage:
        doc = DavDocument(response_text, url)
        for item in doc.responses():
            print(item.href, item.etag)

    ``responses()`` walks the parsed tree again on every call, so the
    sequence can be consumed any number of times.
    """

    def __init__(self, text: str | bytes, url: str = ""):
        self.url = url
        try:
            self.root = ET.fromstring(text)
        except ET.ParseError as e:
            raise DavParseError(f"Invalid XML response from {url}: {e}") from e

    def responses(self) -> Iterator[DavResponse]:
        """Yield a handle for every ``<d:response>`` element."""
        for element in self.root.iter(f"{{{DAV_NS}}}response"):
            yield DavResponse(element)

    def __len__(self) -> int:
        return sum(1 for _ in self.responses())
