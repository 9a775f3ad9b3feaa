"""
carddav_sync - one-way CardDAV address book reconciliation.

Pulls contacts from externally configured CardDAV sources into a local
SQLite contact store.
"""

__version__ = "0.3.0"
