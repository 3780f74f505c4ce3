"""Core utilities for Dflex Sync."""

from dflexsync.core.config import settings

__all__ = ["settings"]
