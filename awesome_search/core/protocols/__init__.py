"""Protocol interfaces for dependency injection."""
from .snapshot_source import SnapshotSourceProtocol

__all__ = [
    "SnapshotSourceProtocol",
]
