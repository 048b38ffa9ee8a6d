"""Snapshot source protocol for dependency injection."""
from typing import Optional, Protocol, runtime_checkable

from ..models.entities import DocumentSnapshot


@runtime_checkable
class SnapshotSourceProtocol(Protocol):
    """Protocol for the backing store the ingestion pipeline produces."""

    def exists(self) -> bool:
        """Whether the backing storage is present."""
        ...

    def fingerprint(self) -> Optional[tuple[int, int]]:
        """Cheap change marker (size, mtime_ns), None when missing."""
        ...

    def file_info(self) -> dict:
        """Size and modification time of the backing storage.

        Returns:
            Dict with "size" (bytes) and "modified" (ISO 8601).
        """
        ...

    def load(self) -> DocumentSnapshot:
        """Read a consistent snapshot of every entity.

        Returns:
            Loaded document snapshot.
        """
        ...
