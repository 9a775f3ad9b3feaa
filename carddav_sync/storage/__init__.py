"""
carddav_sync.storage - SQLite contact store.
"""

from carddav_sync.storage.db import ContactStore, StoreError

__all__ = ["ContactStore", "StoreError"]
