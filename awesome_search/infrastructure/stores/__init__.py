"""Snapshot source implementations."""
from .sqlite_store import SqliteSnapshotSource

__all__ = ["SqliteSnapshotSource"]
