"""
CardDAV client for pulling contacts from an external address book.

Provides a thin interface over the WebDAV/CardDAV requests used by the
sync engine:
- PROPFIND for collection metadata (ctag, display name)
- REPORT addressbook-query for the etag listing of every item
- REPORT addressbook-multiget for the vCard content of selected items

Requests are authenticated with HTTP Basic credentials. There is no retry
logic: a failed request raises CardDAVError and the caller decides what to do.
"""

import base64
import logging
from collections.abc import Sequence
from typing import Optional
from xml.sax.saxutils import escape

import requests
from requests.exceptions import RequestException

from carddav_sync.api.dav_xml import CARDDAV_NS, DavDocument, DavParseError

# Maximum number of hrefs in a single addressbook-multiget request
MULTIGET_BATCH_SIZE = 90

# Seconds to wait for the TCP connection to be established
DEFAULT_CONNECT_TIMEOUT = 40.0

# Request bodies
PROPFIND_CTAG_BODY = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<d:propfind xmlns:d="DAV:" xmlns:cs="http://calendarserver.org/ns/">'
    "<d:prop><cs:getctag/><d:displayname/></d:prop>"
    "</d:propfind>"
)

ADDRESSBOOK_QUERY_BODY = (
    '<c:addressbook-query xmlns:d="DAV:" xmlns:c="urn:ietf:params:xml:ns:carddav">'
    "<d:prop><d:getetag /></d:prop>"
    "</c:addressbook-query>"
)

MULTIGET_TEMPLATE = (
    '<c:addressbook-multiget xmlns:d="DAV:" xmlns:c="urn:ietf:params:xml:ns:carddav">'
    "<d:prop><d:getetag /><c:address-data /></d:prop>"
    "{hrefs}"
    "</c:addressbook-multiget>"
)

logger = logging.getLogger(__name__)


class CardDAVError(Exception):
    """Raised when a CardDAV request fails or returns an unusable response."""

    pass


def normalize_url(url: str) -> str:
    """Prefix ``https://`` to URLs that do not carry an http(s) scheme."""
    if not url.startswith("http"):
        return "https://" + url
    return url


def build_multiget_body(hrefs: Sequence[str]) -> str:
    """Build an addressbook-multiget body with one ``<d:href>`` per path."""
    payload = "".join(f"<d:href>{escape(href)}</d:href>" for href in hrefs)
    return MULTIGET_TEMPLATE.format(hrefs=payload)


class CardDAVClient:
    """
    CardDAV client bound to one set of credentials.

    Attributes:
        username: Account user name for Basic authentication
        connect_timeout: Connect timeout in seconds
        session: requests.Session used for all calls

    Usage:
        client = CardDAVClient("alice", "secret")

        doc = client.propfind_ctag("dav.example.com/addressbooks/alice/default/")
        listing = client.list_etags(url)
        contents = client.multiget(url, ["/addressbooks/alice/default/1.vcf"])
    """

    def __init__(
        self,
        username: str,
        password: str,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the CardDAV client.

        Args:
            username: User name for Basic authentication
            password: Password for Basic authentication
            connect_timeout: Seconds allowed for connecting (default 40)
            session: Optional preconfigured requests session
        """
        self.username = username
        self._password = password
        self.connect_timeout = connect_timeout
        self.session = session or requests.Session()

    def authorization_header(self) -> str:
        """Value of the Basic ``Authorization`` header."""
        plain = f"{self.username}:{self._password}"
        encoded = base64.b64encode(plain.encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"

    def _headers(self, payload: str, depth: str) -> dict[str, str]:
        headers = {
            "Authorization": self.authorization_header(),
            "Prefer": "return-minimal",
            "Content-Type": "application/xml; charset=utf-8",
            "Depth": depth,
        }
        if CARDDAV_NS in payload:
            headers["Accept"] = "text/vcard; version=4.0"
        return headers

    def request(
        self, url: str, method: str, payload: str = "", depth: str = "1"
    ) -> DavDocument:
        """
        Perform a WebDAV request and parse the XML response.

        Args:
            url: Target URL, coerced to https:// when it has no scheme
            method: HTTP method (PROPFIND, REPORT, ...)
            payload: XML request body
            depth: Value of the Depth header

        Returns:
            The parsed response document

        Raises:
            CardDAVError: On connection failure, non-2xx status or invalid XML
        """
        url = normalize_url(url)
        logger.debug(f"{method} {url} (depth={depth}, {len(payload)} bytes)")

        try:
            response = self.session.request(
                method,
                url,
                data=payload.encode("utf-8"),
                headers=self._headers(payload, depth),
                # Only the connect phase is bounded
                timeout=(self.connect_timeout, None),
            )
            response.raise_for_status()
        except RequestException as e:
            logger.debug(f"{method} {url} failed: {e}")
            raise CardDAVError(f"{method} {url} failed: {e}") from e

        try:
            return DavDocument(response.content, url)
        except DavParseError as e:
            raise CardDAVError(str(e)) from e

    def propfind_ctag(self, url: str) -> DavDocument:
        """Fetch the collection ctag and display name (depth 0)."""
        return self.request(url, "PROPFIND", PROPFIND_CTAG_BODY, depth="0")

    def list_etags(self, url: str) -> DavDocument:
        """Fetch the etag of every item in the collection."""
        return self.request(url, "REPORT", ADDRESSBOOK_QUERY_BODY)

    def multiget(self, url: str, hrefs: Sequence[str]) -> DavDocument:
        """
        Fetch etag and vCard data for the given item paths.

        Raises:
            ValueError: If more than MULTIGET_BATCH_SIZE hrefs are requested
            CardDAVError: If the request fails
        """
        if len(hrefs) > MULTIGET_BATCH_SIZE:
            raise ValueError(
                f"multiget accepts at most {MULTIGET_BATCH_SIZE} hrefs, "
                f"got {len(hrefs)}"
            )
        return self.request(url, "REPORT", build_multiget_body(hrefs))

    def close(self) -> None:
        self.session.close()

    def __repr__(self) -> str:
        return f"CardDAVClient(username={self.username!r})"
