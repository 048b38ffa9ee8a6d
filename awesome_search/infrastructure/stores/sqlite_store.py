import hashlib
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from awesome_search.core.errors import BuildFailure, StoreError, StoreUnavailable
from awesome_search.core.models.entities import (
    AwesomeList,
    DocumentSnapshot,
    Readme,
    Repository,
)

logger = logging.getLogger(__name__)

_LIST_COLUMNS = (
    "id", "name", "url", "description", "category", "stars", "forks",
    "last_commit", "level", "parent_id", "added_at", "last_updated",
)
_REPOSITORY_COLUMNS = (
    "id", "awesome_list_id", "name", "url", "description", "stars", "forks",
    "watchers", "language", "topics", "last_commit", "created_at", "added_at",
)
_README_COLUMNS = (
    "id", "repository_id", "content", "raw_content", "version_hash", "indexed_at",
)
_REQUIRED = {
    "awesome_lists": {"id", "name", "url"},
    "repositories": {"id", "awesome_list_id", "name", "url"},
    "readmes": {"id", "repository_id"},
}


class SqliteSnapshotSource:
    """Reads the SQLite database produced by the ingestion pipeline."""

    def __init__(self, db_path: str, chunk_size: int = 1 << 20):
        """Initialize source.

        Args:
            db_path: Path to the database file, "~" is expanded.
            chunk_size: Read size used when hashing the file.
        """
        self._path = Path(db_path).expanduser()
        self._chunk_size = chunk_size

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def fingerprint(self) -> Optional[tuple[int, int]]:
        try:
            stat = self._path.stat()
        except FileNotFoundError:
            return None
        return stat.st_size, stat.st_mtime_ns

    def file_info(self) -> dict:
        try:
            stat = self._path.stat()
        except FileNotFoundError:
            raise StoreUnavailable(f"Database file not found at {self._path}") from None
        return {
            "size": stat.st_size,
            "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
        }

    def _compute_hash(self) -> str:
        digest = hashlib.sha256()
        with open(self._path, "rb") as f:
            for chunk in iter(lambda: f.read(self._chunk_size), b""):
                digest.update(chunk)
        return digest.hexdigest()[:16]

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(f"{self._path.as_uri()}?mode=ro", uri=True)
        conn.row_factory = sqlite3.Row
        return conn

    def _columns(self, conn: sqlite3.Connection, table: str) -> set[str]:
        rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
        return {row["name"] for row in rows}

    def _select(self, conn: sqlite3.Connection, table: str, wanted: tuple[str, ...]) -> list[dict]:
        """Select wanted columns, reading absent optional ones as None."""
        present = self._columns(conn, table)
        missing_required = _REQUIRED[table] - present
        if missing_required:
            raise BuildFailure(
                f"Table {table} is missing or lacks columns: {sorted(missing_required)}"
            )

        selected = [c for c in wanted if c in present]
        rows = conn.execute(
            f"SELECT {', '.join(selected)} FROM {table} ORDER BY id"
        ).fetchall()
        return [{c: (row[c] if c in present else None) for c in wanted} for row in rows]

    def load(self) -> DocumentSnapshot:
        """Load every list, repository and readme in one read transaction."""
        if not self.exists():
            raise StoreUnavailable(f"Database file not found at {self._path}")

        try:
            snapshot_id = self._compute_hash()
        except OSError as e:
            raise StoreError("hash", str(self._path), e) from e

        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreError("open", str(self._path), e) from e

        try:
            conn.execute("BEGIN")
            lists = self._select(conn, "awesome_lists", _LIST_COLUMNS)
            repos = self._select(conn, "repositories", _REPOSITORY_COLUMNS)
            readmes = self._select(conn, "readmes", _README_COLUMNS)
            conn.execute("COMMIT")
        except sqlite3.DatabaseError as e:
            # "file is not a database" and friends mean the snapshot itself is bad
            if isinstance(e, sqlite3.OperationalError) and "locked" in str(e):
                raise StoreError("read", str(self._path), e) from e
            raise BuildFailure(f"Unreadable snapshot {self._path}: {e}") from e
        finally:
            conn.close()

        logger.info(
            f"Loaded snapshot {snapshot_id}: {len(lists)} lists, "
            f"{len(repos)} repositories, {len(readmes)} readmes"
        )

        try:
            return DocumentSnapshot.from_records(
                snapshot_id=snapshot_id,
                lists=[AwesomeList(**row) for row in lists],
                repositories=[Repository(**row) for row in repos],
                readmes=[Readme(**row) for row in readmes],
            )
        except TypeError as e:
            raise BuildFailure(f"Corrupt snapshot {self._path}: {e}") from e
