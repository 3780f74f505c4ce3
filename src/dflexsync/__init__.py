"""
Dflex Sync - manufacturing order synchronisation backend.

Merges raw ERP snapshots with user overrides and spreadsheet-style
formula columns into the definitive pre-production rows.
"""

__version__ = "0.1.0"
