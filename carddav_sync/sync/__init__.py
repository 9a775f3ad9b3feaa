"""
carddav_sync.sync - Reconciliation engine and contact models.
"""
