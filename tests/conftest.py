"""
Shared fixtures for the carddav_sync tests.

Provides builders for vCard payloads and multistatus documents, and an
in-process fake CardDAV server that the sync engine can talk to instead
of a real HTTP client.
"""

from xml.sax.saxutils import escape

import pytest

from carddav_sync.api.carddav_client import CardDAVError
from carddav_sync.api.dav_xml import DavDocument
from carddav_sync.config.sources import SourceConfig
from carddav_sync.storage.db import ContactStore

BOOK_URL = "https://dav.example.com/addressbooks/alice/contacts/"
BOOK_PATH = "/addressbooks/alice/contacts/"


def build_vcard(uid=None, fn=None, emails=(), n=None, kind=None, extra=()):
    """Build a vCard 3.0 payload."""
    lines = ["BEGIN:VCARD", "VERSION:3.0"]
    if uid:
        lines.append(f"UID:{uid}")
    if fn is not None:
        lines.append(f"FN:{fn}")
    if n is not None:
        lines.append(f"N:{n}")
    for email in emails:
        lines.append(f"EMAIL;TYPE=INTERNET:{email}")
    if kind:
        lines.append(f"X-ADDRESSBOOKSERVER-KIND:{kind}")
    lines.extend(extra)
    lines.append("END:VCARD")
    return "\n".join(lines) + "\n"


def build_response(href, etag=None, vcard=None, ctag=None, display_name=None):
    """Build one <d:response> element."""
    props = []
    if etag is not None:
        props.append(f"<d:getetag>{escape(etag)}</d:getetag>")
    if vcard is not None:
        props.append(f"<card:address-data>{escape(vcard)}</card:address-data>")
    if ctag is not None:
        props.append(f"<cs:getctag>{escape(ctag)}</cs:getctag>")
    if display_name is not None:
        props.append(f"<d:displayname>{escape(display_name)}</d:displayname>")
    return (
        "<d:response>"
        f"<d:href>{escape(href)}</d:href>"
        "<d:propstat>"
        f"<d:prop>{''.join(props)}</d:prop>"
        "<d:status>HTTP/1.1 200 OK</d:status>"
        "</d:propstat>"
        "</d:response>"
    )


def build_multistatus(*responses):
    """Wrap response elements in a multistatus document."""
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<d:multistatus xmlns:d="DAV:" '
        'xmlns:card="urn:ietf:params:xml:ns:carddav" '
        'xmlns:cs="http://calendarserver.org/ns/">'
        f"{''.join(responses)}"
        "</d:multistatus>"
    )


class FakeCardDAVServer:
    """
    In-memory address book exposing the CardDAVClient methods used by the
    sync engine.

    Items are stored as href -> (etag, vcard). Every call is recorded in
    ``calls`` as (method name, argument) tuples.
    """

    def __init__(self, ctag="ctag-1"):
        self.items = {}
        self.ctag = ctag
        self.calls = []
        self.fail_on = set()
        self.fail_multiget_after = None
        self.omit_content = set()

    def put(self, href, etag, vcard):
        self.items[href] = (etag, vcard)

    def remove(self, href):
        del self.items[href]

    def _check(self, name):
        if name in self.fail_on:
            raise CardDAVError(f"{name} failed: 500 Server Error")

    def propfind_ctag(self, url):
        self.calls.append(("propfind_ctag", url))
        self._check("propfind_ctag")
        return DavDocument(
            build_multistatus(build_response(BOOK_PATH, ctag=self.ctag)), url
        )

    def list_etags(self, url):
        self.calls.append(("list_etags", url))
        self._check("list_etags")
        responses = [build_response(BOOK_PATH)]
        responses += [
            build_response(href, etag=etag) for href, (etag, _) in self.items.items()
        ]
        return DavDocument(build_multistatus(*responses), url)

    def multiget(self, url, hrefs):
        self.calls.append(("multiget", list(hrefs)))
        self._check("multiget")
        count = sum(1 for name, _ in self.calls if name == "multiget")
        if self.fail_multiget_after is not None and count > self.fail_multiget_after:
            raise CardDAVError("REPORT failed: connection reset")

        responses = []
        for href in hrefs:
            if href not in self.items:
                continue
            etag, vcard = self.items[href]
            content = "" if href in self.omit_content else vcard
            responses.append(build_response(href, etag=etag, vcard=content))
        return DavDocument(build_multistatus(*responses), url)

    @property
    def multiget_calls(self):
        return [arg for name, arg in self.calls if name == "multiget"]


@pytest.fixture
def vcard():
    """Factory fixture building vCard payloads."""
    return build_vcard


@pytest.fixture
def multistatus():
    """Factory fixture building multistatus documents from response fields."""

    def _build(*items):
        return build_multistatus(*(build_response(**fields) for fields in items))

    return _build


@pytest.fixture
def server():
    """Empty fake CardDAV server."""
    return FakeCardDAVServer()


@pytest.fixture
def source():
    """Source configuration pointing at the fake server's book."""
    return SourceConfig(
        id="work",
        name="Work",
        url=BOOK_URL,
        username="alice",
        password="secret",
    )


@pytest.fixture
def store():
    """Initialized in-memory contact store."""
    contact_store = ContactStore(":memory:")
    contact_store.initialize()
    yield contact_store
    contact_store.close()
