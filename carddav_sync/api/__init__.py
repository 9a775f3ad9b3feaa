"""
carddav_sync.api - CardDAV transport and response parsing.
"""

from carddav_sync.api.carddav_client import (
    MULTIGET_BATCH_SIZE,
    CardDAVClient,
    CardDAVError,
)
from carddav_sync.api.dav_xml import DavDocument, DavResponse

__all__ = [
    "MULTIGET_BATCH_SIZE",
    "CardDAVClient",
    "CardDAVError",
    "DavDocument",
    "DavResponse",
]
