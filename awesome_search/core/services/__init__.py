"""Core business services."""
from .index_builder import IndexBuilder
from .query_engine import QueryEngine
from .refresh_service import RefreshService
from .snapshot_manager import Lease, SnapshotManager

__all__ = [
    "IndexBuilder",
    "QueryEngine",
    "RefreshService",
    "SnapshotManager",
    "Lease",
]
